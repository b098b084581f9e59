"""Pomodoro timer state machine with goal progress accounting."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Coroutine

from pomogoal.core.config import TimerSettings
from pomogoal.focus.goals import GoalSelector
from pomogoal.focus.models import (
    Controls,
    GoalProgress,
    SessionKind,
    SessionRecord,
    TimerConfig,
    TimerPhase,
    TimerState,
)
from pomogoal.focus.session_log import GOAL_COMPLETED_NOTE, SessionLog

logger = logging.getLogger(__name__)


class FocusTimer:
    """Work/break countdown bound to an optional goal.

    A completed work interval produces a SessionRecord, appends it to the
    session log and submits it to the session store without waiting for the
    answer. When the goal's pomodoro target is reached the run ends and the
    goal is marked complete; otherwise the timer chains into a break and then
    into the next work interval on its own.

    Usage:
        timer = FocusTimer(goals=selector, session_log=log, store=client)
        timer.on_tick = lambda state: print(state.time_remaining_display)
        timer.on_run_complete = lambda progress: print("Task Completed!")

        timer.bind_goal(42)
        await timer.start()
        # ... timer runs ...
        await timer.pause()
        await timer.start()  # resume
        await timer.reset()
    """

    def __init__(
        self,
        config: TimerConfig | None = None,
        settings: TimerSettings | None = None,
        goals: GoalSelector | None = None,
        session_log: SessionLog | None = None,
        store: Any = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the timer.

        Args:
            config: Interval lengths; defaults to ``settings`` minutes
            settings: Tick interval and auto-advance delays
            goals: Live goal selector used for binding and label snapshots
            session_log: Log receiving completed sessions
            store: Object with async ``record_session`` and ``complete_goal``
                (normally a StoreClient); None keeps everything local
            clock: Source of the current local time
        """
        self.settings = settings or TimerSettings()
        self.config = config or TimerConfig.from_minutes(
            self.settings.work_minutes, self.settings.break_minutes
        )
        self.goals = goals if goals is not None else GoalSelector()
        self.session_log = session_log if session_log is not None else SessionLog(clock=clock)
        self.store = store
        self._clock = clock

        self._state = TimerState(seconds_remaining=self.config.work_seconds)
        self._progress = GoalProgress()
        self._inputs_locked = False

        self._task: asyncio.Task | None = None
        self._advance_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

        # Callbacks
        self.on_tick: Callable[[TimerState], Awaitable[None] | None] | None = None
        self.on_state_change: Callable[[TimerState], Awaitable[None] | None] | None = None
        self.on_session_recorded: Callable[[SessionRecord, int], Awaitable[None] | None] | None = None
        self.on_run_complete: Callable[[GoalProgress], Awaitable[None] | None] | None = None
        self.on_goal_completed: Callable[[int, str | None], Awaitable[None] | None] | None = None

    # Read-only views

    @property
    def state(self) -> TimerState:
        """Get current timer state (copy)."""
        return replace(self._state)

    @property
    def progress(self) -> GoalProgress:
        """Get current goal progress (copy)."""
        return replace(self._progress)

    @property
    def inputs_locked(self) -> bool:
        """Whether duration fields and the goal selector are locked."""
        return self._inputs_locked

    @property
    def auto_advance_pending(self) -> bool:
        return self._advance_task is not None and not self._advance_task.done()

    @property
    def controls(self) -> Controls:
        """Enabled state of start/pause and the configuration inputs."""
        running = self._state.phase is TimerPhase.RUNNING
        # The hand-off into a break is not something the user can act on.
        into_break = self.auto_advance_pending and self._state.kind is SessionKind.BREAK
        return Controls(
            start_enabled=not running and not into_break,
            pause_enabled=running,
            inputs_locked=self._inputs_locked,
            start_label="Resume" if self._state.phase is TimerPhase.PAUSED else "Start",
        )

    # Configuration

    def configure(self, work_minutes: Any = None, break_minutes: Any = None) -> bool:
        """Apply new interval lengths; ignored unless idle with inputs unlocked.

        Unparsable or non-positive values fall back to the defaults; None keeps
        the current value.
        """
        if self._state.phase is not TimerPhase.IDLE or self._inputs_locked:
            logger.debug("Ignoring duration change while a run is in progress")
            return False

        self.config = TimerConfig.from_minutes(
            self.config.work_minutes if work_minutes is None else work_minutes,
            self.config.break_minutes if break_minutes is None else break_minutes,
        )
        self._state.kind = SessionKind.WORK
        self._state.seconds_remaining = self.config.work_seconds
        logger.debug(
            f"Timer configured: {self.config.work_minutes}m work / {self.config.break_minutes}m break"
        )
        return True

    def bind_goal(self, goal_id: Any) -> bool:
        """Bind the timer to a goal (or to none); ignored while inputs are locked."""
        if self._inputs_locked or self._state.phase is not TimerPhase.IDLE:
            logger.debug("Ignoring goal change while a run is in progress")
            return False

        option = self.goals.select(goal_id)
        if option:
            self._progress.bind(option.id, option.label, option.estimated_pomodoros)
            logger.info(f"Bound goal: {option.label} ({option.estimated_pomodoros} pomodoro(s))")
        else:
            self._progress.bind(None, None, 1)
            if goal_id is not None:
                logger.debug(f"Goal {goal_id} is not available, timer unbound")
        return True

    # State machine operations

    async def start(self) -> None:
        """Start a fresh interval or resume a paused one."""
        async with self._lock:
            if self._state.phase is TimerPhase.RUNNING:
                return

            # A manual start supersedes a pending hand-off.
            self._drop_advance()

            if self._state.phase is TimerPhase.PAUSED:
                logger.info("Timer resumed")
            else:
                if self._state.kind is SessionKind.WORK and self._progress.is_complete:
                    # A finished run starts over for the same binding.
                    self._progress.completed_count = 0
                self._state.session_started_at = self._clock()
                logger.info(f"Timer started: {self._state.kind.value}")

            self._state.phase = TimerPhase.RUNNING
            self._inputs_locked = True
            self._task = asyncio.create_task(self._tick_loop())

        await self._emit(self.on_state_change, self.state)

    async def pause(self) -> None:
        """Pause a running interval. Inputs stay locked."""
        async with self._lock:
            if self._state.phase is not TimerPhase.RUNNING:
                return

            self._state.phase = TimerPhase.PAUSED
            self._drop_advance()
            await self._cancel(self._task)
            self._task = None
            logger.info("Timer paused")

        await self._emit(self.on_state_change, self.state)

    async def reset(self) -> None:
        """Return to an idle work interval and release the inputs."""
        async with self._lock:
            await self._cancel(self._advance_task)
            self._advance_task = None
            await self._cancel(self._task)
            self._task = None

            self._state = TimerState(
                phase=TimerPhase.IDLE,
                kind=SessionKind.WORK,
                seconds_remaining=self.config.work_seconds,
            )
            self._progress.completed_count = 0
            self._inputs_locked = False
            logger.info("Timer reset")

        await self._emit(self.on_state_change, self.state)

    async def tick(self) -> bool:
        """Advance the countdown by one second.

        Returns True when this tick completed the interval.
        """
        if self._state.phase is not TimerPhase.RUNNING:
            return False

        self._state.seconds_remaining = max(0, self._state.seconds_remaining - 1)
        await self._emit(self.on_tick, self.state)

        if self._state.seconds_remaining > 0:
            return False

        await self._complete_interval()
        return True

    async def _tick_loop(self) -> None:
        """Main countdown loop."""
        try:
            while self._state.phase is TimerPhase.RUNNING:
                await asyncio.sleep(self.settings.tick_seconds)
                if await self.tick():
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in timer tick loop: {e}")

    # Session accounting

    async def _complete_interval(self) -> None:
        """Handle an interval reaching zero."""
        self._stop_countdown()
        ended_at = self._clock()
        self._state.phase = TimerPhase.IDLE

        if self._state.kind is SessionKind.WORK:
            await self._complete_work(ended_at)
        else:
            await self._complete_break()

    async def _complete_work(self, ended_at: datetime) -> None:
        pomodoro_index = self._progress.record_pomodoro()
        goal_id = self._progress.goal_id

        record = SessionRecord(
            started_at=self._state.session_started_at or ended_at,
            ended_at=ended_at,
            goal_id=goal_id,
            # Resolved now; a goal that vanished from the selector gets no label.
            goal_label=self.goals.label_for(goal_id) if goal_id is not None else None,
            pomodoro_index=pomodoro_index,
            target_count=self._progress.target_count,
        )
        log_index = self.session_log.append(record)
        self._spawn(self._submit_session(record, log_index))

        if self._progress.is_complete:
            self._load_interval(SessionKind.WORK)
            self._inputs_locked = False
            logger.info(
                f"Task completed: {self._progress.completed_count} of "
                f"{self._progress.target_count} pomodoro(s)"
            )
            if goal_id is not None:
                self._spawn(self._complete_goal(goal_id))
        else:
            self._load_interval(SessionKind.BREAK)
            logger.info(
                f"Pomodoro {pomodoro_index} of {self._progress.target_count} complete, starting break"
            )
            self._schedule_advance(self.settings.work_to_break_delay)

        await self._emit(self.on_session_recorded, record, log_index)
        await self._emit(self.on_state_change, self.state)
        if self._progress.is_complete:
            await self._emit(self.on_run_complete, self.progress)

    async def _complete_break(self) -> None:
        self._load_interval(SessionKind.WORK)

        if self._progress.completed_count < self._progress.target_count:
            logger.info(
                f"Break complete, ready for pomodoro {self._progress.completed_count + 1} "
                f"of {self._progress.target_count}"
            )
            self._schedule_advance(self.settings.break_to_work_delay)
        else:
            self._inputs_locked = False
            logger.info("Break complete, goal target already met")

        await self._emit(self.on_state_change, self.state)

    def _load_interval(self, kind: SessionKind) -> None:
        self._state.kind = kind
        self._state.seconds_remaining = self.config.duration_for(kind)

    def _schedule_advance(self, delay: float) -> None:
        self._advance_task = asyncio.create_task(self._auto_advance(delay))

    async def _auto_advance(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._advance_task = None
        await self.start()

    # Store continuations (fire-and-forget)

    async def _submit_session(self, record: SessionRecord, log_index: int) -> None:
        if self.store is None:
            return
        try:
            result = await self.store.record_session(record)
        except Exception as e:
            logger.error(f"Error saving session: {e}")
            return

        if not result.success:
            logger.warning(f"Session was not saved: {result.error}")
            return

        if result.goal_auto_completed and record.goal_id is not None:
            self.session_log.annotate(log_index, GOAL_COMPLETED_NOTE)

    async def _complete_goal(self, goal_id: int) -> None:
        if self.store is None:
            return
        label = self.goals.label_for(goal_id)
        try:
            result = await self.store.complete_goal(goal_id)
        except Exception as e:
            logger.error(f"Error marking goal as completed: {e}")
            return

        if not result.success:
            logger.warning(f"Goal {goal_id} was not marked complete: {result.error}")
            return

        self.goals.remove(goal_id)
        if self._progress.goal_id == goal_id and not self._inputs_locked:
            self._progress.bind(None, None, 1)

        await self._emit(self.on_goal_completed, goal_id, label)

    # Task helpers

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _drop_advance(self) -> None:
        task, self._advance_task = self._advance_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    def _stop_countdown(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    @staticmethod
    async def _cancel(task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait_for_background(self) -> None:
        """Wait for outstanding store submissions."""
        while True:
            pending = [task for task in self._background if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop the countdown and any pending auto-advance, then drain submissions."""
        async with self._lock:
            await self._cancel(self._advance_task)
            self._advance_task = None
            await self._cancel(self._task)
            self._task = None
        await self.wait_for_background()

    @staticmethod
    async def _emit(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error in timer callback {getattr(callback, '__name__', callback)}: {e}")

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the current run."""
        return {
            "phase": self._state.phase.value,
            "kind": self._state.kind.value,
            "time_remaining": self._state.time_remaining_display,
            "goal_id": self._progress.goal_id,
            "goal_label": self._progress.goal_label,
            "pomodoros_completed": self._progress.completed_count,
            "pomodoros_target": self._progress.target_count,
            "progress_percent": self._progress.percent,
            "remaining_minutes": self._progress.remaining_minutes(self.config),
            "sessions_today": len(self.session_log),
            "session_started_at": (
                self._state.session_started_at.isoformat()
                if self._state.session_started_at
                else None
            ),
        }
