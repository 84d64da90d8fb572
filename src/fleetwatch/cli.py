from __future__ import annotations

import asyncio
import logging

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from fleetwatch.db import init_db
from fleetwatch.errors import StoreUnavailable
from fleetwatch.models import Status, format_deadline
from fleetwatch.services.delivery import ConsoleNotificationPort
from fleetwatch.services.notifications import NotificationService
from fleetwatch.services.runner import Outcome

app = typer.Typer(help="fleetwatch — truck deadline tracker")
console = Console()

_STATUS_STYLE = {Status.OK: "green", Status.WARNING: "yellow", Status.OVERDUE: "red"}


def _service() -> NotificationService:
    init_db()
    return NotificationService(ConsoleNotificationPort(console))


def _load(coro):
    """Run a read coroutine, turning store failures into a one-line error."""
    try:
        return asyncio.run(coro)
    except StoreUnavailable as exc:
        console.print(f"[red]Could not read fleet data:[/red] {exc}")
        raise typer.Exit(code=1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the fleetwatch API server."""
    import uvicorn

    uvicorn.run("fleetwatch.web:create_app", host=host, port=port, reload=reload, factory=True)


@app.command()
def check(
    scheduled: bool = typer.Option(
        False, "--scheduled", help="Skip if today's check already ran (for cron/systemd timers)"
    ),
) -> None:
    """Check deadlines now and notify about approaching ones."""
    service = _service()
    if scheduled:
        result = asyncio.run(service.run_scheduled_check())
    else:
        try:
            result = asyncio.run(service.run_manual_check())
        except StoreUnavailable as exc:
            console.print(f"[red]Deadline check failed:[/red] {exc}")
            raise typer.Exit(code=1)

    if result.outcome is Outcome.FAILED:
        raise typer.Exit(code=1)
    if result.outcome is Outcome.DISABLED:
        console.print("[dim]Notifications are disabled.[/dim]")
    elif result.outcome is Outcome.ALREADY_CHECKED:
        console.print("[dim]Already checked today.[/dim]")
    elif not result.warnings:
        console.print("[green]All clear! No approaching deadlines.[/green]")


@app.command()
def status() -> None:
    """Show fleet deadline summary and per-truck status."""
    service = _service()
    summary = _load(service.summary())
    aggregator = _load(service.aggregator())

    console.print(
        f"Trucks: [bold]{summary.total_trucks}[/bold]  "
        f"Upcoming: [yellow]{summary.upcoming_count}[/yellow]  "
        f"Overdue: [red]{summary.overdue_count}[/red]  "
        f"Warning horizon: {summary.warning_days} days"
    )
    if summary.next_check_time:
        console.print(f"Next check: {summary.next_check_time:%Y-%m-%d %H:%M}")

    table = Table(title="Deadlines")
    table.add_column("Truck", style="cyan")
    table.add_column("Field", style="white")
    table.add_column("Date", style="dim")
    table.add_column("Days", justify="right")
    table.add_column("Status")
    for truck in aggregator.trucks:
        truck_status = aggregator.status_for(truck.id)
        for f in truck_status.custom_fields:
            style = _STATUS_STYLE[f.status]
            table.add_row(
                truck.name, f.label, format_deadline(f.date), str(f.days_until),
                f"[{style}]{f.status.value}[/{style}]",
            )
    console.print(table)


@app.command()
def trucks() -> None:
    """List registered trucks."""
    service = _service()
    rows = _load(service.trucks.list())
    if not rows:
        console.print("[dim]No trucks yet.[/dim]")
        return

    table = Table(title="Trucks")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Note")
    table.add_column("Fields", justify="right")
    for t in rows:
        table.add_row(t.id, t.name, t.note or "—", str(len(t.custom_fields)))
    console.print(table)


@app.command()
def settings(
    enable: bool | None = typer.Option(None, "--enable/--disable", help="Turn notifications on or off"),
    time: str | None = typer.Option(None, "--time", help="Daily check time, HH:MM"),
    warning_days: int | None = typer.Option(None, "--warning-days", min=1, help="Warning horizon in days"),
) -> None:
    """Show or change notification settings."""
    service = _service()
    changes = {}
    if time is not None:
        changes["daily_time"] = time
    if warning_days is not None:
        changes["warning_days"] = warning_days

    try:
        if enable is True:
            asyncio.run(service.enable())
        elif enable is False:
            asyncio.run(service.disable())
        current = asyncio.run(service.update_settings(**changes)) if changes else asyncio.run(service.get_settings())
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)

    table = Table(title="Notification Settings")
    table.add_column("Setting", style="magenta")
    table.add_column("Value", style="white")
    table.add_row("Enabled", "yes" if current.enabled else "no")
    table.add_row("Daily time", current.daily_time)
    table.add_row("Warning days", str(current.warning_days))
    table.add_row("Timezone", current.timezone)
    console.print(table)


@app.command()
def schedule() -> None:
    """Show the registered daily trigger and the next check time."""
    service = _service()
    trigger = asyncio.run(service.port.registered_trigger())
    if trigger is None:
        console.print("[dim]No daily trigger registered.[/dim]")
        return
    hour, minute = trigger
    console.print(f"Daily trigger at {hour:02d}:{minute:02d}")
    next_time = asyncio.run(service.next_check_time())
    if next_time:
        console.print(f"Next check: {next_time:%Y-%m-%d %H:%M}")
