"""Tests for the focus timer state machine and session accounting."""

import asyncio

import pytest

from conftest import FakeStore, run_interval, settle
from pomogoal.focus.goals import GoalSelector
from pomogoal.focus.models import SessionKind, TimerConfig, TimerPhase
from pomogoal.focus.pomodoro import FocusTimer
from pomogoal.focus.session_log import GOAL_COMPLETED_NOTE, SessionLog


class TestStateMachine:
    async def test_initial_state(self, timer):
        state = timer.state
        assert state.phase is TimerPhase.IDLE
        assert state.kind is SessionKind.WORK
        assert state.seconds_remaining == 3
        assert state.session_started_at is None
        assert not timer.inputs_locked

    async def test_start_locks_inputs_and_records_start(self, timer, clock):
        await timer.start()

        assert timer.state.phase is TimerPhase.RUNNING
        assert timer.state.session_started_at == clock.now
        assert timer.inputs_locked
        assert timer.controls.pause_enabled
        assert not timer.controls.start_enabled

    async def test_start_while_running_is_noop(self, timer, clock):
        await timer.start()
        clock.advance(1)
        await timer.tick()
        before = timer.state

        clock.advance(5)
        await timer.start()

        after = timer.state
        assert after.seconds_remaining == before.seconds_remaining
        assert after.session_started_at == before.session_started_at

    async def test_pause_keeps_inputs_locked(self, timer, clock):
        await timer.start()
        clock.advance(1)
        await timer.tick()
        await timer.pause()

        assert timer.state.phase is TimerPhase.PAUSED
        assert timer.inputs_locked
        assert timer.controls.start_label == "Resume"
        assert not timer.bind_goal(2)
        assert not timer.configure(50, 10)

    async def test_tick_does_nothing_while_paused(self, timer, clock):
        await timer.start()
        await timer.pause()
        remaining = timer.state.seconds_remaining

        assert await timer.tick() is False
        assert timer.state.seconds_remaining == remaining

    async def test_pause_only_from_running(self, timer):
        await timer.pause()
        assert timer.state.phase is TimerPhase.IDLE

    async def test_resume_keeps_session_start(self, timer, clock):
        await timer.start()
        started_at = timer.state.session_started_at
        clock.advance(1)
        await timer.tick()
        await timer.pause()

        clock.advance(30)
        await timer.start()

        assert timer.state.phase is TimerPhase.RUNNING
        assert timer.state.session_started_at == started_at
        assert timer.state.seconds_remaining == 2

    async def test_reset_returns_to_idle_work(self, timer, clock):
        timer.bind_goal(1)
        await timer.start()
        await run_interval(timer, clock)
        await settle()
        assert timer.state.kind is SessionKind.BREAK

        await timer.reset()

        state = timer.state
        assert state.phase is TimerPhase.IDLE
        assert state.kind is SessionKind.WORK
        assert state.seconds_remaining == 3
        assert timer.progress.completed_count == 0
        assert timer.progress.goal_id == 1
        assert not timer.inputs_locked

    async def test_reset_cancels_pending_auto_advance(self, settings, goals, clock):
        settings.work_to_break_delay = 60
        focus_timer = FocusTimer(
            config=TimerConfig(work_seconds=2, break_seconds=2),
            settings=settings,
            goals=goals,
            clock=clock,
        )
        focus_timer.bind_goal(1)
        await focus_timer.start()
        await run_interval(focus_timer, clock)
        assert focus_timer.auto_advance_pending

        await focus_timer.reset()
        await settle()

        assert not focus_timer.auto_advance_pending
        assert focus_timer.state.phase is TimerPhase.IDLE
        await focus_timer.shutdown()

    async def test_manual_start_during_handoff_cancels_it(self, timer, settings, clock):
        settings.break_to_work_delay = 0.05
        timer.bind_goal(1)
        await timer.start()
        await run_interval(timer, clock)
        await settle()
        await run_interval(timer, clock)
        assert timer.auto_advance_pending

        # User starts the next work interval early, then pauses it.
        await timer.start()
        await timer.pause()
        await asyncio.sleep(0.1)

        assert timer.state.phase is TimerPhase.PAUSED
        assert timer.state.kind is SessionKind.WORK
        assert not timer.auto_advance_pending

    async def test_configure_only_when_idle(self, timer):
        assert timer.configure(50, 10)
        assert timer.state.seconds_remaining == 50 * 60
        assert timer.config.break_seconds == 10 * 60

        await timer.start()
        assert not timer.configure(15, 3)
        assert timer.config.work_seconds == 50 * 60

    async def test_configure_falls_back_to_defaults(self, timer):
        timer.configure("abc", 0)
        assert timer.config.work_seconds == 25 * 60
        assert timer.config.break_seconds == 5 * 60

    async def test_callback_errors_do_not_stop_timer(self, timer, clock):
        def broken(state):
            raise ValueError("display gone")

        timer.on_tick = broken
        await timer.start()
        await run_interval(timer, clock)

        assert len(timer.session_log) == 1


class TestSessionAccounting:
    async def test_work_completion_produces_one_record(self, timer, clock):
        await timer.start()
        await run_interval(timer, clock)

        assert len(timer.session_log) == 1
        record = timer.session_log[0]
        assert record.duration_seconds == 3
        assert record.is_work_session
        assert record.pomodoro_index == 1

    async def test_longer_work_duration(self, timer, clock):
        timer.config = TimerConfig(work_seconds=90, break_seconds=30)
        await timer.reset()
        await timer.start()
        await run_interval(timer, clock)

        record = timer.session_log[0]
        assert abs(record.duration_seconds - 90) <= 1

    async def test_target_one_goal_is_terminal(self, timer, clock, store):
        timer.bind_goal(2)
        completed = []
        timer.on_run_complete = completed.append

        await timer.start()
        await run_interval(timer, clock)
        await settle()

        assert timer.state.kind is SessionKind.WORK
        assert timer.state.phase is TimerPhase.IDLE
        assert not timer.inputs_locked
        assert not timer.auto_advance_pending
        assert len(completed) == 1
        assert completed[0].completed_count == 1
        assert store.completed_goals == [2]

    async def test_multi_pomodoro_goal_chains_work_break_work(self, timer, clock):
        timer.bind_goal(1)

        await timer.start()
        await run_interval(timer, clock)
        await settle()

        assert timer.state.kind is SessionKind.BREAK
        assert timer.state.phase is TimerPhase.RUNNING
        assert timer.state.seconds_remaining == 2
        assert timer.inputs_locked

        await run_interval(timer, clock)
        await settle()

        progress = timer.progress
        assert timer.state.kind is SessionKind.WORK
        assert timer.state.phase is TimerPhase.RUNNING
        assert progress.completed_count == 1
        assert progress.target_count == 3
        assert len(timer.session_log) == 1

    async def test_full_goal_run(self, timer, clock, store):
        timer.bind_goal(3)
        await timer.start()

        await run_interval(timer, clock)  # work 1
        await settle()
        await run_interval(timer, clock)  # break
        await settle()
        await run_interval(timer, clock)  # work 2
        await settle()

        records = timer.session_log.records
        assert [r.pomodoro_index for r in records] == [1, 2]
        assert all(r.target_count == 2 for r in records)
        assert all(r.goal_label == "Refactor parser" for r in records)
        assert timer.state.phase is TimerPhase.IDLE
        assert not timer.inputs_locked
        assert store.completed_goals == [3]
        assert 3 not in timer.goals
        assert timer.progress.goal_id is None

    async def test_no_goal_defaults_to_single_pomodoro(self, timer, clock, store):
        assert timer.progress.target_count == 1

        await timer.start()
        await run_interval(timer, clock)
        await settle()

        record = timer.session_log[0]
        assert record.goal_id is None
        assert record.goal_label is None
        assert timer.state.phase is TimerPhase.IDLE
        assert not timer.inputs_locked
        assert store.completed_goals == []

    async def test_completed_count_never_exceeds_target(self, timer, clock):
        for _ in range(3):
            await timer.start()
            await run_interval(timer, clock)
            await settle()
            progress = timer.progress
            assert progress.completed_count <= progress.target_count

        assert [r.pomodoro_index for r in timer.session_log] == [1, 1, 1]

    async def test_break_completion_does_not_create_record(self, timer, clock):
        timer.bind_goal(1)
        await timer.start()
        await run_interval(timer, clock)
        await settle()
        await run_interval(timer, clock)

        assert len(timer.session_log) == 1

    async def test_label_omitted_when_goal_vanishes(self, timer, clock):
        timer.bind_goal(3)
        await timer.start()
        await run_interval(timer, clock)
        await settle()

        timer.goals.remove(3)
        await run_interval(timer, clock)
        await settle()
        await run_interval(timer, clock)

        first, second = timer.session_log.records
        assert first.goal_label == "Refactor parser"
        assert second.goal_id == 3
        assert second.goal_label is None

    async def test_session_submitted_to_store(self, timer, clock, store):
        timer.bind_goal(2)
        await timer.start()
        await run_interval(timer, clock)
        await timer.wait_for_background()

        assert len(store.sessions) == 1
        assert store.sessions[0].goal_id == 2

    async def test_auto_completed_goal_annotates_entry(self, settings, goals, cache, clock):
        store = FakeStore(goal_auto_completed=True)
        focus_timer = FocusTimer(
            config=TimerConfig(work_seconds=2, break_seconds=1),
            settings=settings,
            goals=goals,
            session_log=SessionLog(cache, user_id="42", clock=clock),
            store=store,
            clock=clock,
        )
        focus_timer.bind_goal(2)
        await focus_timer.start()
        await run_interval(focus_timer, clock)
        await focus_timer.wait_for_background()

        assert focus_timer.session_log[0].annotation == GOAL_COMPLETED_NOTE
        assert focus_timer.session_log.entries()[0].annotation == GOAL_COMPLETED_NOTE
        assert cache.load("42")[0]["annotation"] == GOAL_COMPLETED_NOTE
        await focus_timer.shutdown()

    async def test_store_failure_keeps_local_state(self, settings, goals, cache, clock):
        store = FakeStore(fail=True)
        focus_timer = FocusTimer(
            config=TimerConfig(work_seconds=2, break_seconds=1),
            settings=settings,
            goals=goals,
            session_log=SessionLog(cache, user_id="42", clock=clock),
            store=store,
            clock=clock,
        )
        focus_timer.bind_goal(2)
        await focus_timer.start()
        await run_interval(focus_timer, clock)
        await focus_timer.wait_for_background()

        assert len(focus_timer.session_log) == 1
        assert focus_timer.session_log[0].annotation is None
        assert 2 in focus_timer.goals
        assert focus_timer.progress.goal_id == 2
        assert len(cache.load("42")) == 1
        await focus_timer.shutdown()

    async def test_session_persisted_to_cache(self, timer, clock, cache):
        await timer.start()
        await run_interval(timer, clock)

        cached = cache.load("42")
        assert len(cached) == 1
        assert cached[0]["duration_seconds"] == 3


class TestCountdownLoop:
    async def test_loop_runs_interval_to_completion(self, settings, clock):
        settings.tick_seconds = 0
        finished = []
        focus_timer = FocusTimer(
            config=TimerConfig(work_seconds=3, break_seconds=1),
            settings=settings,
            clock=clock,
        )
        focus_timer.on_run_complete = finished.append

        await focus_timer.start()
        await settle(50)

        assert len(finished) == 1
        assert len(focus_timer.session_log) == 1
        assert focus_timer.state.phase is TimerPhase.IDLE
        await focus_timer.shutdown()


def test_summary_reports_progress(goals):
    focus_timer = FocusTimer(config=TimerConfig(work_seconds=1500, break_seconds=300), goals=goals)
    focus_timer.bind_goal(1)

    summary = focus_timer.get_summary()

    assert summary["phase"] == "idle"
    assert summary["goal_label"] == "Write report"
    assert summary["pomodoros_target"] == 3
    assert summary["remaining_minutes"] == 3 * 25 + 2 * 5


@pytest.mark.parametrize("goal_id,target", [(1, 3), (None, 1), (99, 1)])
def test_bind_goal_sets_target(goals, goal_id, target):
    focus_timer = FocusTimer(goals=goals)
    focus_timer.bind_goal(goal_id)
    assert focus_timer.progress.target_count == target
    assert focus_timer.progress.completed_count == 0


def test_empty_collaborators_are_kept(cache, clock):
    selector = GoalSelector()
    session_log = SessionLog(cache, user_id="42", clock=clock)

    focus_timer = FocusTimer(goals=selector, session_log=session_log, clock=clock)

    assert focus_timer.goals is selector
    assert focus_timer.session_log is session_log
