"""Shared fixtures: a controllable clock, a fake store and a headless timer."""

import asyncio
from datetime import datetime, timedelta

import pytest

from pomogoal.core.config import TimerSettings
from pomogoal.focus.goals import GoalSelector
from pomogoal.focus.models import GoalOption, TimerConfig
from pomogoal.focus.pomodoro import FocusTimer
from pomogoal.focus.session_log import SessionLog
from pomogoal.storage.local_cache import LocalSessionCache
from pomogoal.sync.store_client import StoreResult


class FakeClock:
    """Manually advanced clock starting at 10:00 today."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now().replace(hour=10, minute=0, second=0, microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeStore:
    """In-memory goal/session store recording what it was sent."""

    def __init__(self, goal_auto_completed: bool = False, fail: bool = False):
        self.goal_auto_completed = goal_auto_completed
        self.fail = fail
        self.sessions = []
        self.completed_goals = []

    async def record_session(self, record):
        self.sessions.append(record)
        if self.fail:
            return StoreResult(success=False, error="connection refused")
        return StoreResult(
            success=True,
            goal_auto_completed=self.goal_auto_completed
            and record.pomodoro_index >= record.target_count,
        )

    async def complete_goal(self, goal_id):
        self.completed_goals.append(goal_id)
        if self.fail:
            return StoreResult(success=False, error="connection refused")
        return StoreResult(success=True)


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks (auto-advance, store submissions) run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


async def run_interval(timer: FocusTimer, clock: FakeClock) -> None:
    """Tick the running interval down to zero, one clock second per tick."""
    for _ in range(timer.state.seconds_remaining):
        clock.advance(1)
        if await timer.tick():
            return
    raise AssertionError("interval did not complete")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    # Ticks are driven by the tests; the background loop never fires.
    return TimerSettings(
        tick_seconds=3600,
        work_to_break_delay=0,
        break_to_work_delay=0,
        auto_start_delay=0,
    )


@pytest.fixture
def cache(tmp_path):
    return LocalSessionCache(tmp_path / "session_cache.json")


@pytest.fixture
def goals():
    return GoalSelector(
        [
            GoalOption(id=1, label="Write report", estimated_pomodoros=3),
            GoalOption(id=2, label="Read paper", estimated_pomodoros=1),
            GoalOption(id=3, label="Refactor parser", estimated_pomodoros=2),
        ]
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
async def timer(settings, goals, cache, store, clock):
    session_log = SessionLog(cache, user_id="42", clock=clock)
    focus_timer = FocusTimer(
        config=TimerConfig(work_seconds=3, break_seconds=2),
        settings=settings,
        goals=goals,
        session_log=session_log,
        store=store,
        clock=clock,
    )
    yield focus_timer
    await focus_timer.shutdown()
