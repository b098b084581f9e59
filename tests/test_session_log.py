"""Tests for today's session log and its reconciliation with cache and server."""

from datetime import timedelta

from conftest import run_interval, settle
from pomogoal.cli.presenter import ConsolePresenter
from pomogoal.focus.models import SessionRecord
from pomogoal.focus.session_log import EMPTY_PLACEHOLDER, SessionLog, filter_to_day
from pomogoal.storage.local_cache import LocalSessionCache


def make_record(start, minutes=25, **kwargs):
    return SessionRecord(started_at=start, ended_at=start + timedelta(minutes=minutes), **kwargs)


def server_session(start, goal_id=None, goal_text=None, number=1, total=1):
    return {
        "id": 7,
        "startTime": start.isoformat(),
        "endTime": (start + timedelta(minutes=25)).isoformat(),
        "duration": 1500,
        "isWorkSession": True,
        "goalId": goal_id,
        "goalText": goal_text,
        "pomodoroNumber": number,
        "totalPomodoros": total,
    }


class TestRehydrate:
    def test_cache_round_trip(self, cache, clock):
        log = SessionLog(cache, user_id="42", clock=clock)
        log.append(make_record(clock.now, goal_id=1, goal_label="Write report", target_count=3))
        log.append(make_record(clock.now + timedelta(minutes=30), goal_id=1, goal_label="Write report",
                               pomodoro_index=2, target_count=3))

        reloaded = SessionLog(cache, user_id="42", clock=clock)
        source = reloaded.rehydrate()

        assert source == "cache"
        assert reloaded.records == log.records

    def test_cache_is_keyed_per_user(self, cache, clock):
        SessionLog(cache, user_id="42", clock=clock).append(make_record(clock.now))

        other = SessionLog(cache, user_id="7", clock=clock)
        assert other.rehydrate() == "empty"
        assert len(other) == 0

    def test_server_sessions_take_precedence(self, cache, clock):
        cached = SessionLog(cache, user_id="42", clock=clock)
        cached.append(make_record(clock.now, goal_label="From cache"))

        log = SessionLog(cache, user_id="42", clock=clock)
        source = log.rehydrate([server_session(clock.now, goal_id=1, goal_text="From server")])

        assert source == "server"
        assert [r.goal_label for r in log] == ["From server"]
        assert log[0].id == 7

    def test_falls_back_to_cache_when_server_has_nothing_today(self, cache, clock):
        SessionLog(cache, user_id="42", clock=clock).append(make_record(clock.now))
        yesterday = clock.now - timedelta(days=1)

        log = SessionLog(cache, user_id="42", clock=clock)
        source = log.rehydrate([server_session(yesterday)])

        assert source == "cache"
        assert len(log) == 1

    def test_yesterdays_cache_yields_empty_log(self, cache, clock):
        yesterday = clock.now - timedelta(days=1)
        cache.save("42", [make_record(yesterday).to_dict(), make_record(yesterday + timedelta(hours=1)).to_dict()])
        rendered = []

        log = SessionLog(cache, user_id="42", clock=clock)
        log.on_change = rendered.append
        source = log.rehydrate()

        assert source == "empty"
        assert len(log) == 0
        assert rendered == [[]]
        assert ConsolePresenter.render_sessions(log.entries()).plain == EMPTY_PLACEHOLDER

    def test_day_boundary_is_local_midnight(self, clock):
        midnight = clock.now.replace(hour=0, minute=0, second=0)
        records = [
            make_record(midnight, minutes=1),
            make_record(midnight - timedelta(seconds=1), minutes=1),
        ]
        assert filter_to_day(records, clock.now.date()) == [records[0]]

    def test_malformed_entries_are_skipped(self, cache, clock):
        cache.save("42", [{"goal_id": 1}, make_record(clock.now).to_dict()])

        log = SessionLog(cache, user_id="42", clock=clock)
        log.rehydrate()

        assert len(log) == 1

    def test_unreadable_cache_is_treated_as_empty(self, tmp_path, clock):
        path = tmp_path / "session_cache.json"
        path.write_text("{not json")

        log = SessionLog(LocalSessionCache(path), user_id="42", clock=clock)

        assert log.rehydrate() == "empty"


class TestMutations:
    def test_cache_write_failure_is_not_fatal(self, tmp_path, clock):
        # A directory where the cache file should be makes every write fail.
        log = SessionLog(LocalSessionCache(tmp_path), user_id="42", clock=clock)

        index = log.append(make_record(clock.now))

        assert index == 0
        assert len(log) == 1
        assert log.persist() is False

    def test_every_mutation_rerenders(self, cache, clock):
        rendered = []
        log = SessionLog(cache, user_id="42", clock=clock)
        log.on_change = rendered.append

        log.append(make_record(clock.now))
        log.append(make_record(clock.now + timedelta(minutes=30)))
        log.annotate(0, "Goal marked as completed!")

        assert [len(entries) for entries in rendered] == [1, 2, 2]
        assert rendered[-1][0].annotation == "Goal marked as completed!"
        assert rendered[-1][1].annotation is None

    def test_annotate_missing_index(self, clock):
        log = SessionLog(clock=clock)
        assert log.annotate(3, "note") is None

    def test_refresh_labels_follows_renames_only(self, cache, clock):
        log = SessionLog(cache, user_id="42", clock=clock)
        log.append(make_record(clock.now, goal_id=1, goal_label="Draft"))
        log.append(make_record(clock.now, goal_id=2, goal_label="Deleted goal"))
        log.append(make_record(clock.now))

        changed = log.refresh_labels({1: "Final draft", 3: "Unrelated"})

        assert changed == 1
        assert [r.goal_label for r in log] == ["Final draft", "Deleted goal", None]
        assert cache.load("42")[0]["goal_label"] == "Final draft"

    def test_entry_text(self, clock):
        log = SessionLog(clock=clock)
        log.append(make_record(clock.now, goal_id=1, goal_label="Write report", pomodoro_index=2, target_count=3))
        log.append(make_record(clock.now, goal_id=5))
        log.append(make_record(clock.now, minutes=50))

        first, second, third = log.entries()
        assert first.title == "Session 1 - 25 minutes (10:25)"
        assert first.goal_text == "Working on: Write report"
        assert first.pomodoro_text == "Pomodoro 2 of 3"
        assert second.goal_text == "Goal info not available"
        assert third.goal_text == "No goal selected"
        assert third.title.startswith("Session 3 - 50 minutes")


async def test_deleted_goal_keeps_cached_label(timer, clock, cache):
    timer.bind_goal(1)
    await timer.start()
    await run_interval(timer, clock)
    await settle()

    # Goal deleted elsewhere while the break runs.
    timer.goals.remove(1)
    await run_interval(timer, clock)
    await settle()
    await run_interval(timer, clock)

    labels = [entry["goal_label"] for entry in cache.load("42")]
    assert labels == ["Write report", None]
    assert 1 not in timer.goals

    reloaded = SessionLog(cache, user_id="42", clock=clock)
    reloaded.rehydrate()
    reloaded.refresh_labels(timer.goals.labels())
    assert reloaded[0].goal_label == "Write report"
    assert reloaded.entries()[1].goal_text == "Goal info not available"


def test_non_object_cache_entries_are_skipped(cache, clock):
    cache.save("42", ["garbage", 5, None])

    log = SessionLog(cache, user_id="42", clock=clock)

    assert log.rehydrate() == "empty"
    assert len(log) == 0


def test_non_object_server_entries_fall_back_to_cache(cache, clock):
    SessionLog(cache, user_id="42", clock=clock).append(make_record(clock.now))

    log = SessionLog(cache, user_id="42", clock=clock)

    assert log.rehydrate([None, "garbage"]) == "cache"
    assert len(log) == 1
