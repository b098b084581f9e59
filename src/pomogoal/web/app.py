"""FastAPI application serving the goal store and session store."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from pomogoal import __version__
from pomogoal.core.config import get_config
from pomogoal.storage.database import Database

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    """Database connection owned by the application."""
    db: Database | None = getattr(request.app.state, "db", None)
    if db is None or not db.is_connected:
        raise HTTPException(status_code=503, detail="Database not connected")
    return db


async def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Identifier of the authenticated user, supplied by the auth layer in front of us."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


def create_app(db_path: Path | str | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    resolved_path = db_path or get_config().db_path

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting goal store...")
        app.state.db = Database(resolved_path)
        await app.state.db.connect()

        yield

        await app.state.db.close()
        app.state.db = None
        logger.info("Goal store shutdown complete")

    app = FastAPI(
        title="pomogoal",
        description="Goal and Pomodoro session store",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from pomogoal.web.routes import analytics, api, goals

    app.include_router(goals.router)
    app.include_router(analytics.router)
    app.include_router(api.router)

    return app


def run_server(host: str | None = None, port: int | None = None) -> None:
    """Run the web server."""
    import uvicorn

    config = get_config()
    host = host or config.web.host
    port = port or config.web.port

    logger.info(f"Starting goal store at http://{host}:{port}")

    uvicorn.run(
        "pomogoal.web.app:create_app",
        host=host,
        port=port,
        factory=True,
        log_level="info",
    )
