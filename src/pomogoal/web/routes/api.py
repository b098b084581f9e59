"""Service health route."""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["api"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database_connected: bool
    database_size_mb: float
    total_goals: int


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """API health check."""
    db = getattr(request.app.state, "db", None)
    if db is None or not db.is_connected:
        return HealthResponse(
            status="unhealthy: database not connected",
            database_connected=False,
            database_size_mb=0,
            total_goals=0,
        )

    size = await db.get_size_mb()
    count = await db.fetch_one("SELECT COUNT(*) AS count FROM goals")
    return HealthResponse(
        status="healthy",
        database_connected=True,
        database_size_mb=size,
        total_goals=count["count"] if count else 0,
    )
