"""Data model for the focus timer: configuration, state, progress and session records."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_WORK_MINUTES = 25
DEFAULT_BREAK_MINUTES = 5


class TimerPhase(Enum):
    """Run status of the timer."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class SessionKind(Enum):
    """Kind of interval being counted down."""
    WORK = "work"
    BREAK = "break"


def parse_positive_int(value: Any, default: int) -> int:
    """Parse a user supplied number, falling back to ``default``.

    Fractions are truncated (``"2.5"`` is 2). Zero, negative and unparsable
    values all yield the default.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default
    return parsed if parsed > 0 else default


def coerce_goal_id(value: Any) -> int | None:
    """Normalize a goal id coming from a form value, JSON or the cache."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparsable goal id: {value!r}")
        return None


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp into a naive local datetime."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def format_minutes(total_minutes: int) -> str:
    """Format minutes as ``1h 5m`` or ``45m``."""
    if total_minutes >= 60:
        hours, minutes = divmod(total_minutes, 60)
        return f"{hours}h {minutes}m"
    return f"{total_minutes}m"


@dataclass
class TimerConfig:
    """Interval lengths in seconds."""
    work_seconds: int = DEFAULT_WORK_MINUTES * 60
    break_seconds: int = DEFAULT_BREAK_MINUTES * 60

    def __post_init__(self) -> None:
        if self.work_seconds <= 0:
            self.work_seconds = DEFAULT_WORK_MINUTES * 60
        if self.break_seconds <= 0:
            self.break_seconds = DEFAULT_BREAK_MINUTES * 60

    @classmethod
    def from_minutes(cls, work: Any = None, brk: Any = None) -> TimerConfig:
        """Build from user entered minute values, substituting defaults."""
        return cls(
            work_seconds=parse_positive_int(work, DEFAULT_WORK_MINUTES) * 60,
            break_seconds=parse_positive_int(brk, DEFAULT_BREAK_MINUTES) * 60,
        )

    @property
    def work_minutes(self) -> int:
        return self.work_seconds // 60

    @property
    def break_minutes(self) -> int:
        return self.break_seconds // 60

    def duration_for(self, kind: SessionKind) -> int:
        """Seconds in an interval of the given kind."""
        if kind is SessionKind.WORK:
            return self.work_seconds
        return self.break_seconds


@dataclass
class TimerState:
    """Current state of the timer."""
    phase: TimerPhase = TimerPhase.IDLE
    kind: SessionKind = SessionKind.WORK
    seconds_remaining: int = DEFAULT_WORK_MINUTES * 60
    session_started_at: datetime | None = None

    @property
    def time_remaining_display(self) -> str:
        """Format time remaining as MM:SS."""
        minutes, seconds = divmod(max(0, self.seconds_remaining), 60)
        return f"{minutes:02d}:{seconds:02d}"


@dataclass
class GoalProgress:
    """Pomodoros completed against the bound goal's target."""
    goal_id: int | None = None
    goal_label: str | None = None
    completed_count: int = 0
    target_count: int = 1

    def bind(self, goal_id: int | None, label: str | None, target_count: int) -> None:
        """Bind a new goal (or none); always restarts the count."""
        self.goal_id = goal_id
        self.goal_label = label if goal_id is not None else None
        self.target_count = max(1, target_count) if goal_id is not None else 1
        self.completed_count = 0

    def record_pomodoro(self) -> int:
        """Count a completed work interval and return its 1-based index."""
        if self.completed_count >= self.target_count:
            raise RuntimeError(
                f"Goal target already reached ({self.completed_count}/{self.target_count})"
            )
        self.completed_count += 1
        return self.completed_count

    @property
    def is_complete(self) -> bool:
        """Terminal condition for the bound goal's run."""
        return self.completed_count == self.target_count

    @property
    def remaining(self) -> int:
        return self.target_count - self.completed_count

    @property
    def percent(self) -> int:
        if self.target_count <= 0:
            return 0
        return round(self.completed_count / self.target_count * 100)

    @property
    def counter_text(self) -> str:
        return f"Pomodoro {self.completed_count} of {self.target_count}"

    def remaining_minutes(self, config: TimerConfig) -> int:
        """Work plus in-between break minutes still ahead for this goal."""
        remaining = self.remaining
        work = remaining * config.work_minutes
        breaks = (remaining - 1) * config.break_minutes if remaining - 1 > 0 else 0
        return work + breaks


@dataclass(frozen=True)
class SessionRecord:
    """One completed work interval. Immutable apart from replacement with an annotation."""
    started_at: datetime
    ended_at: datetime
    goal_id: int | None = None
    goal_label: str | None = None
    pomodoro_index: int = 1
    target_count: int = 1
    is_work_session: bool = True
    annotation: str | None = None
    id: int | None = None

    @property
    def duration_seconds(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds())

    def started_on(self, day: date) -> bool:
        """Whether the interval started on the given local calendar day."""
        return self.started_at.date() == day

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the local cache."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "is_work_session": self.is_work_session,
            "goal_id": self.goal_id,
            "goal_label": self.goal_label,
            "pomodoro_index": self.pomodoro_index,
            "target_count": self.target_count,
            "annotation": self.annotation,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionRecord:
        """Parse a cached record or a server-provided session.

        Server sessions use the wire names (``startTime``, ``goalText``,
        ``pomodoroNumber``...); cached records use attribute names.
        """
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return default

        started = pick("started_at", "startTime")
        ended = pick("ended_at", "endTime")
        if started is None or ended is None:
            raise ValueError(f"Session is missing start or end time: {dict(data)}")

        record_id = pick("id")
        return cls(
            started_at=parse_timestamp(started),
            ended_at=parse_timestamp(ended),
            goal_id=coerce_goal_id(pick("goal_id", "goalId")),
            goal_label=pick("goal_label", "goalText"),
            pomodoro_index=parse_positive_int(pick("pomodoro_index", "pomodoroNumber"), 1),
            target_count=parse_positive_int(pick("target_count", "totalPomodoros"), 1),
            is_work_session=bool(pick("is_work_session", "isWorkSession", default=True)),
            annotation=pick("annotation"),
            id=record_id if isinstance(record_id, int) else None,
        )

    def to_store_payload(self) -> dict[str, Any]:
        """Body for ``POST /goals/pomodoro``."""
        return {
            "goalId": self.goal_id,
            "startTime": self.started_at.astimezone().isoformat(),
            "endTime": self.ended_at.astimezone().isoformat(),
            "completed": True,
            "pomodoroNumber": self.pomodoro_index,
            "totalPomodoros": self.target_count,
        }


@dataclass(frozen=True)
class GoalOption:
    """An active goal offered by the goal selector."""
    id: int
    label: str
    estimated_pomodoros: int = 1

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GoalOption:
        goal_id = coerce_goal_id(data.get("id"))
        if goal_id is None:
            raise ValueError(f"Goal has no usable id: {dict(data)}")
        return cls(
            id=goal_id,
            label=str(data.get("title") or data.get("label") or f"Goal {goal_id}"),
            estimated_pomodoros=parse_positive_int(data.get("estimated_pomodoros"), 1),
        )


@dataclass
class TimerBootstrap:
    """Parameters read once when the timer page loads."""
    goal_id: int | None = None
    work_minutes: int = DEFAULT_WORK_MINUTES
    break_minutes: int = DEFAULT_BREAK_MINUTES
    auto_start: bool = False
    sessions: list[dict[str, Any]] = field(default_factory=list)
    goals: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> TimerBootstrap:
        """Parse query-style parameters (``goalId``, ``duration``, ``breakDuration``, ``autoStart``)."""
        auto_start = params.get("autoStart", params.get("auto_start"))
        if isinstance(auto_start, bool):
            auto = auto_start
        else:
            auto = str(auto_start).lower() in ("true", "1") if auto_start is not None else False

        return cls(
            goal_id=coerce_goal_id(params.get("goalId", params.get("goal_id"))),
            work_minutes=parse_positive_int(
                params.get("duration", params.get("work_minutes")), DEFAULT_WORK_MINUTES
            ),
            break_minutes=parse_positive_int(
                params.get("breakDuration", params.get("break_minutes")), DEFAULT_BREAK_MINUTES
            ),
            auto_start=auto,
            sessions=list(params.get("sessions") or []),
            goals=list(params.get("goals") or []),
        )


@dataclass(frozen=True)
class Controls:
    """Enabled/disabled state of the timer controls."""
    start_enabled: bool
    pause_enabled: bool
    inputs_locked: bool
    start_label: str = "Start"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
