"""
locklearn-notify command line.

Usage:
    locklearn-notify plan --frequency high --time 09:00 --time 14:00
    locklearn-notify quiet 23:30
    locklearn-notify delay --wrong --latency 3000
    locklearn-notify run user-1 --duration 3600
    locklearn-notify history user-1 --days 7
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .adaptive import compute_next_delay
from .config import get_settings
from .exceptions import InvalidScheduleError
from .notifications import NotificationManager
from .planner import plan_times, times_per_day
from .responses import ResponseHandler
from .service import NotificationLearningService
from .state_store import SqliteNotificationStore
from .time_windows import is_quiet_hour, time_of_day_bucket
from .transports import LogTransport

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="locklearn-notify",
    help="Notification-based micro learning scheduler",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Commands
# =============================================================================


@app.command()
def plan(
    frequency: str = typer.Option("medium", "--frequency", "-f", help="low, medium or high"),
    times: Optional[list[str]] = typer.Option(
        None,
        "--time", "-t",
        help="Preferred HH:MM time (repeatable)",
    ),
) -> None:
    """Show the daily trigger times a schedule would get."""
    settings = get_settings()
    try:
        planned = plan_times(
            times or [],
            times_per_day(frequency),
            default_anchor=settings.default_anchor_time,
        )
    except InvalidScheduleError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    quiet_start, quiet_end = settings.get_quiet_hours()

    table = Table(title=f"{frequency} frequency")
    table.add_column("#", style="dim")
    table.add_column("Time", style="bold")
    table.add_column("Part of day")
    table.add_column("Quiet")

    for index, hhmm in enumerate(planned):
        quiet = is_quiet_hour(hhmm, quiet_start, quiet_end)
        table.add_row(
            str(index),
            hhmm,
            time_of_day_bucket(hhmm),
            "[yellow]yes[/yellow]" if quiet else "[green]no[/green]",
        )

    console.print(table)


@app.command()
def quiet(
    at: str = typer.Argument(..., help="Wall-clock time HH:MM"),
    start: Optional[str] = typer.Option(None, "--start", help="Quiet hours start"),
    end: Optional[str] = typer.Option(None, "--end", help="Quiet hours end"),
) -> None:
    """Check whether a time falls inside quiet hours."""
    default_start, default_end = get_settings().get_quiet_hours()
    start = start or default_start
    end = end or default_end

    try:
        result = is_quiet_hour(at, start, end)
    except InvalidScheduleError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if result:
        console.print(f"[yellow]{at} is quiet[/yellow] ({start}-{end})")
    else:
        console.print(f"[green]{at} is not quiet[/green] ({start}-{end})")


@app.command()
def delay(
    wrong: bool = typer.Option(False, "--wrong", help="Last answer was incorrect"),
    latency: int = typer.Option(10000, "--latency", "-l", help="Response latency in ms"),
    base: Optional[int] = typer.Option(None, "--base", "-b", help="Base delay in minutes"),
) -> None:
    """Compute the adaptive delay before the next prompt."""
    settings = get_settings()
    minutes = compute_next_delay(
        base or settings.base_delay_minutes,
        is_correct=not wrong,
        response_latency_ms=latency,
        minimum_minutes=settings.minimum_delay_minutes,
    )
    console.print(f"Next prompt in [bold]{minutes}[/bold] minutes")


@app.command()
def run(
    user_id: str = typer.Argument(..., help="Learner id"),
    frequency: Optional[str] = typer.Option(None, "--frequency", "-f", help="low, medium or high"),
    timezone: Optional[str] = typer.Option(None, "--timezone", "-z", help="IANA timezone"),
    duration: Optional[float] = typer.Option(
        None,
        "--duration", "-d",
        help="Stop after this many seconds (default: until interrupted)",
    ),
) -> None:
    """Run the scheduler for one learner with the configured transport."""
    overrides = {"frequency": frequency, "timezone": timezone}

    async def _run() -> None:
        async with NotificationLearningService(get_settings()) as service:
            schedule = await service.start_learning(user_id, overrides)
            if schedule is None:
                console.print("[yellow]Notification learning is disabled.[/yellow]")
                return
            planned = service.scheduler.planned_times(user_id)
            console.print(
                f"[bold cyan]{user_id}[/bold cyan]: {len(planned)} prompts a day at "
                f"{', '.join(planned)} ({schedule.timezone})"
            )
            if duration is not None:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()

    try:
        asyncio.run(_run())
    except InvalidScheduleError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


@app.command()
def history(
    user_id: str = typer.Argument(..., help="Learner id"),
    days: int = typer.Option(7, "--days", help="Look-back window in days"),
    db_path: Optional[Path] = typer.Option(None, "--db", help="SQLite state database"),
) -> None:
    """Show a learner's recent notification statistics."""
    settings = get_settings()
    path = db_path or settings.state_db_path
    if not path:
        console.print("[red]No state database configured (LOCKLEARN_STATE_DB_PATH or --db).[/red]")
        raise typer.Exit(1)

    store = SqliteNotificationStore(path)
    try:
        handler = ResponseHandler(NotificationManager(LogTransport(), store=store))
        stats = handler.get_history(user_id, days=days)
    finally:
        store.close()

    console.print(f"\n[bold cyan]History for {user_id}[/bold cyan] (last {days} days)")

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Notifications sent", str(stats.total_notifications))
    table.add_row("Responded", str(stats.responded))
    table.add_row("Expired", str(stats.expired))
    table.add_row("Accuracy", f"{stats.accuracy:.1f}%")
    table.add_row("Avg response time", f"{stats.average_response_time_seconds:.1f}s")
    console.print(table)

    if stats.category_performance:
        category_table = Table()
        category_table.add_column("Category")
        category_table.add_column("Accuracy")
        for entry in stats.category_performance:
            category_table.add_row(entry.category, f"{entry.accuracy:.1f}%")
        console.print(category_table)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")

    app()


if __name__ == "__main__":
    main()
