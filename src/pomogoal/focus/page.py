"""Timer page assembly: builds the timer from bootstrap data and restores today's sessions."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from pomogoal.core.config import TimerSettings
from pomogoal.focus.goals import GoalSelector
from pomogoal.focus.models import TimerBootstrap
from pomogoal.focus.pomodoro import FocusTimer
from pomogoal.focus.session_log import SessionLog
from pomogoal.storage.local_cache import LocalSessionCache

logger = logging.getLogger(__name__)


class TimerPage:
    """A loaded timer page: goal selector, session log and timer for one user."""

    def __init__(self, timer: FocusTimer, bootstrap: TimerBootstrap):
        self.timer = timer
        self.bootstrap = bootstrap
        self._auto_start_task: asyncio.Task | None = None

    @classmethod
    def create(
        cls,
        bootstrap: TimerBootstrap,
        user_id: str | int | None,
        cache: LocalSessionCache | None = None,
        store: Any = None,
        settings: TimerSettings | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> TimerPage:
        goals = GoalSelector.from_goals(bootstrap.goals)
        session_log = SessionLog(cache, user_id=user_id, clock=clock)
        timer = FocusTimer(
            settings=settings,
            goals=goals,
            session_log=session_log,
            store=store,
            clock=clock,
        )
        return cls(timer, bootstrap)

    @property
    def goals(self) -> GoalSelector:
        return self.timer.goals

    @property
    def session_log(self) -> SessionLog:
        return self.timer.session_log

    async def load(self) -> None:
        """Restore sessions, apply bootstrap parameters and auto-start if asked."""
        self.session_log.rehydrate(self.bootstrap.sessions)

        if self.bootstrap.goal_id is not None:
            self.timer.bind_goal(self.bootstrap.goal_id)
        self.timer.configure(self.bootstrap.work_minutes, self.bootstrap.break_minutes)

        self.session_log.refresh_labels(self.goals.labels())

        if self.bootstrap.auto_start:
            self._auto_start_task = asyncio.create_task(self._delayed_start())

    async def _delayed_start(self) -> None:
        await asyncio.sleep(self.timer.settings.auto_start_delay)
        self._auto_start_task = None
        await self.timer.start()

    async def close(self) -> None:
        """Cancel a pending auto-start and shut the timer down."""
        if self._auto_start_task and not self._auto_start_task.done():
            self._auto_start_task.cancel()
            try:
                await self._auto_start_task
            except asyncio.CancelledError:
                pass
        await self.timer.shutdown()
