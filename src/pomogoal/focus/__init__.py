"""Focus timer with goal progress accounting and today's session log."""

from pomogoal.focus.goals import GoalSelector
from pomogoal.focus.models import (
    Controls,
    GoalOption,
    GoalProgress,
    SessionKind,
    SessionRecord,
    TimerBootstrap,
    TimerConfig,
    TimerPhase,
    TimerState,
)
from pomogoal.focus.page import TimerPage
from pomogoal.focus.pomodoro import FocusTimer
from pomogoal.focus.session_log import SessionEntry, SessionLog

__all__ = [
    "Controls",
    "FocusTimer",
    "GoalOption",
    "GoalProgress",
    "GoalSelector",
    "SessionEntry",
    "SessionKind",
    "SessionLog",
    "SessionRecord",
    "TimerBootstrap",
    "TimerConfig",
    "TimerPage",
    "TimerPhase",
    "TimerState",
]
