"""CLI commands for pomogoal using Typer."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pomogoal import __version__
from pomogoal.core.config import get_config

app = typer.Typer(
    name="pomogoal",
    help="Goal tracking with a Pomodoro focus timer.",
    add_completion=False,
)

console = Console()


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    else:
        handlers.append(logging.StreamHandler())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Reduce noise from external libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


@app.command()
def timer(
    goal: int = typer.Option(None, "--goal", "-g", help="Goal id to work on"),
    work: str = typer.Option(None, "--work", "-w", help="Work interval in minutes"),
    brk: str = typer.Option(None, "--break", "-b", help="Break interval in minutes"),
    offline: bool = typer.Option(
        False, "--offline", help="Do not contact the goal/session store"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
) -> None:
    """Run a focus timer until the goal's pomodoros are done.

    Examples:
        pomogoal timer -g 3
        pomogoal timer -w 50 -b 10 --offline
    """
    config = get_config()
    # The live display owns the terminal, so logs go to a file.
    setup_logging(log_level, config.log_dir / "timer.log")

    async def run_timer() -> None:
        from pomogoal.cli.presenter import ConsolePresenter
        from pomogoal.focus.models import TimerBootstrap
        from pomogoal.focus.page import TimerPage
        from pomogoal.storage.local_cache import LocalSessionCache
        from pomogoal.sync.store_client import StoreClient

        store = None if offline else StoreClient(config.store)
        data = await store.fetch_timer_bootstrap() if store else {}

        bootstrap = TimerBootstrap.from_params(
            {
                "goalId": goal,
                "duration": work or config.timer.work_minutes,
                "breakDuration": brk or config.timer.break_minutes,
                "autoStart": True,
                "sessions": data.get("sessions"),
                "goals": data.get("goals"),
            }
        )
        page = TimerPage.create(
            bootstrap,
            user_id=config.store.user_id,
            cache=LocalSessionCache(config.cache_path),
            store=store,
            settings=config.timer,
        )

        finished = asyncio.Event()
        presenter = ConsolePresenter(page.timer, console)
        page.timer.on_run_complete = lambda progress: (presenter.refresh(), finished.set())

        with presenter:
            try:
                await page.load()
                await finished.wait()
            finally:
                await page.close()

        summary = page.timer.get_summary()
        console.print("\n[bold]Session Summary:[/bold]")
        console.print(
            f"  Pomodoros completed: {summary['pomodoros_completed']} of {summary['pomodoros_target']}"
        )
        console.print(f"  Sessions today: {summary['sessions_today']}")

    try:
        asyncio.run(run_timer())
    except KeyboardInterrupt:
        console.print("\n[yellow]Timer stopped[/yellow]")


@app.command()
def sessions() -> None:
    """Show today's sessions from the local cache."""
    from pomogoal.cli.presenter import ConsolePresenter
    from pomogoal.focus.session_log import SessionLog
    from pomogoal.storage.local_cache import LocalSessionCache

    config = get_config()
    log = SessionLog(LocalSessionCache(config.cache_path), user_id=config.store.user_id)
    log.rehydrate()

    console.print(ConsolePresenter.render_sessions(log.entries()))
    if len(log):
        console.print(f"Total focus today: {log.total_focus_seconds() // 60} minutes")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", "-p", help="Port"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
) -> None:
    """Run the goal and session store server."""
    from pomogoal.web.app import run_server

    setup_logging(log_level)
    run_server(host=host, port=port)


@app.command(name="config-show")
def config_show() -> None:
    """Show the effective configuration."""
    config = get_config()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Config file", str(config.config_file))
    table.add_row("Data dir", str(config.data_dir))
    table.add_row("Session cache", str(config.cache_path))
    table.add_row("Database", str(config.db_path))
    table.add_row("Work / break", f"{config.timer.work_minutes}m / {config.timer.break_minutes}m")
    table.add_row("Store URL", config.store.base_url)
    table.add_row("User", config.store.user_id)
    table.add_row("Server", f"{config.web.host}:{config.web.port}")

    console.print(Panel(table, title="pomogoal configuration", border_style="blue"))


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"pomogoal {__version__}")


@app.callback()
def main_callback() -> None:
    """pomogoal - goal tracking with a Pomodoro focus timer."""


if __name__ == "__main__":
    app()
