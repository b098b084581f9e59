"""Terminal presentation of the focus timer, driven by timer and session log callbacks."""

from __future__ import annotations

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pomogoal.focus.models import (
    GoalProgress,
    SessionKind,
    TimerPhase,
    TimerState,
    format_minutes,
)
from pomogoal.focus.pomodoro import FocusTimer
from pomogoal.focus.session_log import EMPTY_PLACEHOLDER, SessionEntry


def status_text(state: TimerState, progress: GoalProgress) -> str:
    """Status line for the current timer state."""
    next_pomodoro = f"Pomodoro {progress.completed_count + 1} of {progress.target_count}"

    if state.phase is TimerPhase.PAUSED:
        return "Paused"
    if state.kind is SessionKind.BREAK:
        return "Break Time"
    if state.phase is TimerPhase.RUNNING:
        return f"Work Time ({next_pomodoro})"
    if progress.completed_count > 0 and progress.is_complete:
        return "Task Completed! 🎉"
    if progress.completed_count > 0:
        return f"Ready for {next_pomodoro}"
    return "Ready to start"


def progress_bar(percent: int, width: int = 20) -> str:
    filled = round(width * percent / 100)
    return "█" * filled + "░" * (width - filled)


class ConsolePresenter:
    """Renders the timer, goal progress and today's sessions with rich.

    The presenter only reads state handed to it by callbacks; it never
    drives the timer.
    """

    def __init__(self, timer: FocusTimer, console: Console | None = None):
        self.timer = timer
        self.console = console or Console()
        self._entries: list[SessionEntry] = timer.session_log.entries()
        self._notifications: list[str] = []
        self._live: Live | None = None

        timer.on_tick = self._on_timer_update
        timer.on_state_change = self._on_timer_update
        timer.on_run_complete = self._on_run_complete
        timer.on_goal_completed = self._on_goal_completed
        timer.session_log.on_change = self._on_sessions_changed

    def __enter__(self) -> ConsolePresenter:
        self._live = Live(self.render(), console=self.console, refresh_per_second=4)
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._live:
            self._live.update(self.render())
            self._live.__exit__(*exc_info)
            self._live = None

    # Callbacks

    def _on_timer_update(self, state: TimerState) -> None:
        self.refresh()

    def _on_sessions_changed(self, entries: list[SessionEntry]) -> None:
        self._entries = entries
        self.refresh()

    def _on_run_complete(self, progress: GoalProgress) -> None:
        self.refresh()

    def _on_goal_completed(self, goal_id: int, label: str | None) -> None:
        name = label or f"Goal {goal_id}"
        self._notifications.append(f'Goal Completed! "{name}" has been marked as completed.')
        self.refresh()

    def refresh(self) -> None:
        if self._live:
            self._live.update(self.render())

    # Rendering

    def render(self) -> Group:
        state = self.timer.state
        progress = self.timer.progress
        config = self.timer.config

        header = Table(show_header=False, box=None, padding=(0, 2))
        header.add_column("Key", style="cyan")
        header.add_column("Value")
        header.add_row("Time", Text(state.time_remaining_display, style="bold"))
        header.add_row("Status", status_text(state, progress))
        header.add_row("Goal", progress.goal_label or "None selected")
        header.add_row(
            "Progress",
            f"{progress_bar(progress.percent)} {progress.percent}%  {progress.counter_text}",
        )
        header.add_row(
            "Remaining", format_minutes(progress.remaining_minutes(config))
        )

        parts: list = [Panel(header, title="Focus Timer", border_style="green")]
        parts.append(self.render_sessions(self._entries))
        for note in self._notifications:
            parts.append(Text(note, style="green"))
        return Group(*parts)

    @staticmethod
    def render_sessions(entries: list[SessionEntry]) -> Panel | Text:
        if not entries:
            return Text(EMPTY_PLACEHOLDER, style="dim")

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Session")
        table.add_column("Status", justify="right")
        for entry in entries:
            lines = f"[bold]{entry.title}[/bold]\n[dim]{entry.goal_text}[/dim]\n[dim]{entry.pomodoro_text}[/dim]"
            if entry.annotation:
                lines += f"\n[green italic]{entry.annotation}[/green italic]"
            table.add_row(lines, "[green]Completed[/green]")
        return Panel(table, title="Today's Completed Sessions", border_style="blue")
