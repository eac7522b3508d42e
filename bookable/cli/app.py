"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_calendar import GraphCalendarSource
from ..adapters.json_ledger import JsonLedgerSource
from ..adapters.mock_calendar import MockCalendarSource
from ..config import AppConfig, build_schedule, load_app_config
from ..domain.availability import resolve_open_dates
from ..domain.exceptions import BookableError, InvalidInput
from ..domain.models import ScheduleConfig
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="bookable",
    help="Bookable appointment slots for a single-location business",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Read calendar events from the mock data file instead of Microsoft Graph.")]
DurationOption = Annotated[int, typer.Option("--duration", "-d", help="Service duration in minutes")]

REJECTION_MESSAGES = {
    "in_past": "the start time has already passed",
    "outside_booking_window": "the date is outside the booking window",
    "closed": "the business is closed that day",
    "outside_business_hours": "the appointment would fall outside business hours",
    "conflict": "it clashes with an existing commitment (buffer included)",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config_file: Optional[Path]) -> tuple[AppConfig, ScheduleConfig]:
    config = load_app_config(config_file)
    return config, build_schedule(config.schedule)


def _build_service(config: AppConfig, schedule: ScheduleConfig, mock: bool) -> AvailabilityService:
    """Wire the calendar feed, the ledger and the schedule together."""
    if mock:
        calendar = MockCalendarSource(timezone=schedule.timezone, data_file=config.mock_calendar_path)
    else:
        authenticator = GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
            authority_url=config.graph.get_authority_url()
        )
        calendar = GraphCalendarSource(
            access_token=authenticator.get_access_token(),
            timezone=schedule.timezone,
            calendar_user=config.graph.calendar_user,
        )

    ledger = JsonLedgerSource(path=config.ledger_path, timezone=schedule.timezone)
    return AvailabilityService(calendar_source=calendar, ledger_source=ledger, config=schedule)


def _parse_date(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        raise InvalidInput(f"Invalid date '{value}', expected YYYY-MM-DD: {e}") from e


def _parse_start(value: str, tz: str):
    """Timestamps without an offset are read as business-local time."""
    try:
        return pendulum.parse(value, tz=tz)
    except ValueError as e:
        raise InvalidInput(f"Invalid start time '{value}': {e}") from e


def _fail(error: BookableError) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(2 if isinstance(error, InvalidInput) else 1)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date in business-local time (YYYY-MM-DD)")],
    duration: DurationOption = 60,
    config_file: ConfigOption = None,
    mock: MockOption = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print slots as JSON.")] = False,
):
    """
    Show every slot of a day and whether it can be booked.

    Examples:

        bookable slots 2026-10-20 --duration 60 --mock

        bookable slots 2026-10-20 -d 90 --json
    """
    try:
        config, schedule = _load(config_file)
        day = _parse_date(date, schedule.timezone)
        service = _build_service(config, schedule, mock)
        evaluated = asyncio.run(service.get_slots_for_date(day, duration))
    except BookableError as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps(
            {
                "date": day.to_date_string(),
                "duration": duration,
                "timezone": schedule.timezone,
                "slots": [slot.to_dict() for slot in evaluated],
            },
            indent=2,
        ))
        return

    if not evaluated:
        console.print(f"[yellow]Closed on {day.format('dddd, YYYY-MM-DD')}.[/yellow]")
        return

    table = Table(
        title=f"{day.format('dddd, YYYY-MM-DD')} ({duration} min, {schedule.timezone})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Start", style="bold")
    table.add_column("End")
    table.add_column("Status")

    for slot in evaluated:
        end_label = slot.end.in_timezone(schedule.timezone).format("h:mm A")
        status = "[green]available[/green]" if slot.available else "[dim]taken[/dim]"
        table.add_row(slot.display_label, end_label, status)

    free = sum(1 for slot in evaluated if slot.available)
    console.print()
    console.print(table)
    console.print(f"[bold]{free}[/bold] of {len(evaluated)} slot(s) available\n")


@app.command()
def dates(
    duration: DurationOption = 60,
    config_file: ConfigOption = None,
):
    """
    List the open dates within the booking window.
    """
    try:
        _, schedule = _load(config_file)
        # Open dates only need the schedule; no commitments are read
        open_dates = resolve_open_dates(duration, schedule, pendulum.now("UTC"))
    except BookableError as e:
        _fail(e)

    console.print(f"\n[bold cyan]{len(open_dates)} open date(s) in the next {schedule.booking_window_days} days:[/bold cyan]")
    for day in open_dates:
        console.print(f"  {day.format('ddd YYYY-MM-DD')}")
    console.print()


@app.command()
def check(
    start: Annotated[str, typer.Argument(help="Slot start (ISO 8601; without offset it is business-local)")],
    duration: DurationOption = 60,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Re-validate a single slot right before booking it.

    Exits with 0 when the slot is still available and 1 when it is not.
    """
    try:
        config, schedule = _load(config_file)
        candidate = _parse_start(start, schedule.timezone)
        service = _build_service(config, schedule, mock)
        rejection = asyncio.run(service.explain_slot(candidate, duration))
    except BookableError as e:
        _fail(e)

    label = candidate.in_timezone(schedule.timezone).format("dddd, YYYY-MM-DD h:mm A")
    if rejection is None:
        console.print(f"[bold green]✓ {label} is available[/bold green]")
        return

    console.print(f"[bold red]✗ {label} is not available:[/bold red] {REJECTION_MESSAGES[rejection.value]}")
    raise typer.Exit(1)


@app.command()
def show_config(
    config_file: ConfigOption = None,
):
    """
    Show the resolved schedule configuration.
    """
    try:
        _, schedule = _load(config_file)
    except BookableError as e:
        _fail(e)

    table = Table(title="Business hours", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Hours")

    for day, hours in schedule.hours.items():
        table.add_row(day.name.capitalize(), str(hours) if hours else "[dim]closed[/dim]")

    console.print()
    console.print(table)
    console.print(f"Timezone: [bold]{schedule.timezone}[/bold]")
    console.print(f"Buffer: {schedule.buffer_minutes} min | Interval: {schedule.slot_interval_minutes} min | "
                  f"Window: {schedule.booking_window_days} days\n")


@app.command()
def test_auth(
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Force re-authentication")] = False,
):
    """
    Test Microsoft Graph authentication by reading today's calendar.
    """
    try:
        config, schedule = _load(config_file)

        console.print("\n[bold]Testing Microsoft Graph authentication...[/bold]\n")

        authenticator = GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id,
            authority_url=config.graph.get_authority_url()
        )
        access_token = authenticator.get_access_token(force_refresh=force)

        calendar = GraphCalendarSource(
            access_token=access_token,
            timezone=schedule.timezone,
            calendar_user=config.graph.calendar_user,
        )
        today = pendulum.today(schedule.timezone)
        events = calendar.get_busy_intervals(today, today.add(days=1))
    except BookableError as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold green]✓ Authentication successful![/bold green]\n\n"
        f"[bold]Calendar:[/bold] {config.graph.calendar_user}\n"
        f"[bold]Events today:[/bold] {len(events)}\n"
        f"[bold]Token cache:[/bold] {authenticator.cache_backend}",
        title="✓ Connection test"
    ))
    if authenticator.insecure_storage_warning:
        console.print(f"[yellow]{authenticator.insecure_storage_warning}[/yellow]")
    console.print()


@app.command()
def clear_cache(
    config_file: ConfigOption = None,
):
    """
    Clear the authentication token cache.
    """
    try:
        config = load_app_config(config_file)
        authenticator = GraphAuthenticator(
            client_id=config.graph.client_id,
            tenant_id=config.graph.tenant_id
        )
        authenticator.clear_cache()
    except BookableError as e:
        _fail(e)

    console.print("\n[green]✓ Token cache cleared.[/green]")
    console.print("You will be asked to sign in again on the next run.\n")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookable[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
