"""HTTP client for the goal store and session store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from pomogoal.core.config import StoreConfig
from pomogoal.focus.models import SessionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store call. Failures carry the error text and are never raised."""
    success: bool
    goal_auto_completed: bool = False
    error: str | None = None


class StoreClient:
    """Talks to the goal/session store over HTTP.

    Every call opens its own session and never raises for network or
    server failures; they are logged and reported as ``success=False``.
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self.api_url = config.base_url.rstrip("/")
        self.user_id = config.user_id
        self._timeout = aiohttp.ClientTimeout(total=config.timeout_seconds)

    @property
    def headers(self) -> dict[str, str]:
        return {"X-User-Id": str(self.user_id), "Content-Type": "application/json"}

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        async with aiohttp.ClientSession(timeout=self._timeout, headers=self.headers) as session:
            async with session.request(method, f"{self.api_url}{path}", json=payload) as resp:
                resp.raise_for_status()
                return await resp.json()

    async def complete_goal(self, goal_id: int) -> StoreResult:
        """Mark a goal completed (``POST /goals/{id}/complete``)."""
        try:
            data = await self._request("POST", f"/goals/{goal_id}/complete")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error marking goal {goal_id} as completed: {e}")
            return StoreResult(success=False, error=str(e))

        if data.get("success"):
            logger.info(f"Goal {goal_id} marked as completed")
            return StoreResult(success=True)

        logger.error(f"Goal store refused to complete goal {goal_id}: {data}")
        return StoreResult(success=False, error=str(data.get("message") or data.get("error")))

    async def record_session(self, record: SessionRecord) -> StoreResult:
        """Record a completed work interval (``POST /goals/pomodoro``)."""
        try:
            data = await self._request("POST", "/goals/pomodoro", record.to_store_payload())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error saving session: {e}")
            return StoreResult(success=False, error=str(e))

        if data.get("success"):
            logger.debug(f"Session saved: {data}")
            return StoreResult(success=True, goal_auto_completed=bool(data.get("goalUpdated")))

        logger.error(f"Error saving session: {data.get('error')}")
        return StoreResult(success=False, error=str(data.get("error")))

    async def fetch_timer_bootstrap(self) -> dict[str, Any]:
        """Active goals and today's sessions (``GET /goals/timer``); empty on failure."""
        try:
            data = await self._request("GET", "/goals/timer")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to load timer data from store: {e}")
            return {}
        return data if isinstance(data, dict) else {}
