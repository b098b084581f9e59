"""Today's session log: in-memory records kept in step with the local cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Callable, Iterable, Iterator, Mapping

from pomogoal.focus.models import SessionRecord
from pomogoal.storage.local_cache import LocalSessionCache

logger = logging.getLogger(__name__)

EMPTY_PLACEHOLDER = "No sessions completed today. Complete a Pomodoro session to see it here."
GOAL_COMPLETED_NOTE = "Goal marked as completed!"


@dataclass(frozen=True)
class SessionEntry:
    """One line of the displayed session list."""
    index: int
    title: str
    goal_text: str
    pomodoro_text: str
    annotation: str | None = None

    @classmethod
    def from_record(cls, index: int, record: SessionRecord) -> SessionEntry:
        minutes = record.duration_seconds // 60
        if record.goal_label:
            goal_text = f"Working on: {record.goal_label}"
        elif record.goal_id is not None:
            goal_text = "Goal info not available"
        else:
            goal_text = "No goal selected"

        return cls(
            index=index,
            title=f"Session {index + 1} - {minutes} minutes ({record.ended_at:%H:%M})",
            goal_text=goal_text,
            pomodoro_text=f"Pomodoro {record.pomodoro_index} of {record.target_count}",
            annotation=record.annotation,
        )


def parse_sessions(raw_sessions: Iterable[Mapping[str, Any]], source: str) -> list[SessionRecord]:
    """Parse session dicts, skipping (and logging) malformed ones."""
    records = []
    for raw in raw_sessions:
        if not isinstance(raw, Mapping):
            logger.warning(f"Skipping malformed {source} session: not an object: {raw!r}")
            continue
        try:
            records.append(SessionRecord.from_dict(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {source} session: {e}")
    return records


def filter_to_day(records: Iterable[SessionRecord], day: date) -> list[SessionRecord]:
    """Keep records whose start falls on ``day`` (local time)."""
    return [record for record in records if record.started_on(day)]


class SessionLog:
    """Ordered log of today's completed work intervals.

    Every mutation rewrites the user's cache entry and regenerates the
    displayed entries. Cache failures are logged; the in-memory log stays
    authoritative.

    Usage:
        log = SessionLog(LocalSessionCache(path), user_id="42")
        log.on_change = lambda entries: render(entries)
        log.rehydrate(server_sessions)
        index = log.append(record)
        log.annotate(index, GOAL_COMPLETED_NOTE)
    """

    def __init__(
        self,
        cache: LocalSessionCache | None = None,
        user_id: str | int | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.cache = cache
        self.user_id = user_id
        self._clock = clock
        self._records: list[SessionRecord] = []

        # Callbacks
        self.on_change: Callable[[list[SessionEntry]], None] | None = None

    @property
    def records(self) -> list[SessionRecord]:
        """Copy of the records, oldest first."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(list(self._records))

    def __getitem__(self, index: int) -> SessionRecord:
        return self._records[index]

    def today(self) -> date:
        return self._clock().date()

    # Loading

    def rehydrate(self, server_sessions: Iterable[Mapping[str, Any]] | None = None) -> str:
        """Rebuild the log at load time.

        Server-provided sessions for today win; if there are none, today's
        sessions from the local cache are used. Returns the source used
        (``"server"``, ``"cache"`` or ``"empty"``).
        """
        today = self.today()
        records = filter_to_day(parse_sessions(server_sessions or [], "server"), today)
        source = "server"

        if not records:
            records = filter_to_day(self._load_cached(), today)
            source = "cache" if records else "empty"

        self._records = records
        logger.info(f"Session log loaded from {source}: {len(records)} session(s) today")
        self._notify()
        return source

    def _load_cached(self) -> list[SessionRecord]:
        if self.cache is None or self.user_id is None:
            return []
        try:
            raw = self.cache.load(self.user_id)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading saved sessions: {e}")
            return []
        return parse_sessions(raw, "cached")

    # Mutations

    def append(self, record: SessionRecord) -> int:
        """Append a completed session and return its index."""
        self._records.append(record)
        self._changed()
        return len(self._records) - 1

    def annotate(self, index: int, note: str) -> SessionRecord | None:
        """Attach a note to an entry; returns the new record or None if the index is gone."""
        if not 0 <= index < len(self._records):
            logger.debug(f"No session at index {index} to annotate")
            return None
        record = replace(self._records[index], annotation=note)
        self._records[index] = record
        self._changed()
        return record

    def refresh_labels(self, labels: Mapping[int, str]) -> int:
        """Update labels of sessions whose goal is still live (renames).

        Sessions whose goal is no longer offered keep their stored label.
        Returns the number of records changed.
        """
        changed = 0
        for i, record in enumerate(self._records):
            if record.goal_id is None or record.goal_id not in labels:
                continue
            label = labels[record.goal_id]
            if record.goal_label != label:
                self._records[i] = replace(record, goal_label=label)
                changed += 1

        if changed:
            logger.debug(f"Refreshed {changed} session label(s)")
            self._changed()
        return changed

    # Persistence and display

    def persist(self) -> bool:
        """Rewrite the user's cache entry with the full log."""
        if self.cache is None or self.user_id is None:
            return False
        try:
            self.cache.save(self.user_id, [record.to_dict() for record in self._records])
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving sessions to cache: {e}")
            return False
        return True

    def entries(self) -> list[SessionEntry]:
        """Displayed entries, regenerated from the records."""
        return [SessionEntry.from_record(i, record) for i, record in enumerate(self._records)]

    def total_focus_seconds(self) -> int:
        return sum(record.duration_seconds for record in self._records)

    def _changed(self) -> None:
        self.persist()
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            try:
                self.on_change(self.entries())
            except Exception as e:
                logger.error(f"Error in on_change callback: {e}")
