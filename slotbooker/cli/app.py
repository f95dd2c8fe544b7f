"""
Main CLI application using Typer.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingError
from ..domain.models import AvailabilitySlot, Slot
from ..adapters.booking_store import BookingStore
from ..adapters.graph_authenticator import GraphAuthenticator
from ..adapters.graph_client import GraphClient
from ..adapters.mock_graph_client import MockGraphClient
from ..schemas import (
    CancelBookingRequest,
    CreateBookingRequest,
    CreateBookingWindowRequest,
    RescheduleBookingRequest,
)
from ..services.booking_service import BookingService

app = typer.Typer(
    name="slotbooker",
    help="Publish 1:1 booking windows and manage student bookings on Microsoft 365 calendars",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
MockOption = Annotated[bool, typer.Option("--mock", help="Use an in-memory calendar and database instead of Microsoft Graph.")]
MockDataOption = Annotated[Optional[Path], typer.Option("--mock-data", help="JSON file with seed events for --mock.")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig(client_id="mock", tenant_id="mock")
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, mock: bool, mock_data: Optional[Path] = None) -> BookingService:
    """Wire the calendar client and booking store for the chosen mode."""
    if mock:
        console.print("[yellow]⚠  MOCK MODE: in-memory calendar and database[/yellow]\n")
        calendar_client = MockGraphClient(
            subject=config.booking_subject,
            timezone=config.timezone,
            data_file=mock_data,
        )
        store = BookingStore("sqlite://")
    else:
        authenticator = GraphAuthenticator(
            client_id=config.client_id,
            tenant_id=config.tenant_id,
            client_secret=config.get_client_secret(),
            authority_url=config.get_authority_url()
        )
        calendar_client = GraphClient(
            authenticator=authenticator,
            subject=config.booking_subject,
            timezone=config.timezone,
        )
        store = BookingStore(config.database_url)

    return BookingService(
        calendar_client=calendar_client,
        booking_store=store,
        timezone=config.timezone,
        lookahead_days=config.defaults.lookahead_days,
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _print_slots(slots: List[Slot], timezone: str) -> None:
    for index, slot in enumerate(slots, 1):
        start = slot.start.in_timezone(timezone)
        end = slot.end.in_timezone(timezone)
        console.print(f"  {index:>2}. {start.format('ddd, DD.MM.YYYY')} | {start.format('HH:mm')} – {end.format('HH:mm')}")


def _print_availability(slots: List[AvailabilitySlot], timezone: str) -> None:
    table = Table(
        title="Availability",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Start", style="bold")
    table.add_column("End")
    table.add_column("Status")
    table.add_column("Booked by", style="dim")
    table.add_column("Event id", style="dim", overflow="fold")

    for slot in slots:
        start = slot.start.in_timezone(timezone)
        end = slot.end.in_timezone(timezone)
        if slot.available:
            status, booked_by = "[green]free[/green]", ""
        else:
            status = "[red]booked[/red]"
            booked_by = f"{slot.booked_by.name} <{slot.booked_by.email}>" if slot.booked_by else ""
        table.add_row(
            start.format("ddd DD.MM.YYYY HH:mm"),
            end.format("HH:mm"),
            status,
            booked_by,
            slot.id,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def slots(
    manager_id: Annotated[str, typer.Argument(help="Project manager id or principal name")],
    team_id: Annotated[str, typer.Option("--team", "-t", help="Team id")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    mock_data: MockDataOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw response body.")] = False,
):
    """
    Show free and booked slots of a manager for a team.

    Examples:

        slotbooker slots pm@example.com --team team-42
        slotbooker slots pm --team team-42 --mock --mock-data events.json
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock, mock_data)
        availability = service.get_time_slots(manager_id, team_id)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    if as_json:
        console.print_json(json.dumps([slot.to_dict() for slot in availability]))
    elif not availability:
        console.print("[yellow]⚠ No slots found for this team.[/yellow]")
    else:
        _print_availability(availability, config.timezone)


@app.command()
def window(
    manager_id: Annotated[str, typer.Argument(help="Project manager id or principal name")],
    start: Annotated[str, typer.Option("--start", help="Window start (ISO-8601)")],
    end: Annotated[str, typer.Option("--end", help="Window end (ISO-8601)")],
    students: Annotated[int, typer.Option("--students", "-n", help="Number of students")],
    team_id: Annotated[str, typer.Option("--team", "-t", help="Team id")],
    team_name: Annotated[str, typer.Option("--team-name", help="Team name shown in the invite")],
    slot_duration: Annotated[Optional[int], typer.Option("--slot-duration", "-d", help="Slot length in minutes")] = None,
    break_duration: Annotated[Optional[int], typer.Option("--break-duration", "-b", help="Break between slots in minutes")] = None,
    preview: Annotated[bool, typer.Option("--preview", help="Only show the slots, publish nothing.")] = False,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Split a booking window into student slots and publish them.

    Examples:

        slotbooker window pm@example.com --start 2024-11-25T09:00 --end 2024-11-25T10:00 \\
            -n 2 -d 20 -b 5 --team team-42 --team-name "Team 42" --preview
    """
    try:
        config = _load_config(config_file, mock)
        request = CreateBookingWindowRequest(
            window_start_date=start,
            window_end_date=end,
            slot_duration=slot_duration if slot_duration is not None else config.defaults.slot_duration,
            break_duration=break_duration if break_duration is not None else config.defaults.break_duration,
            number_of_students=students,
            project_manager_id=manager_id,
            team_name=team_name,
            team_id=team_id,
            preview_slots=preview,
        )
        service = _build_service(config, mock)
        created = service.create_booking_window(request)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    verb = "Preview of" if preview else "Published"
    console.print(f"[bold green]✓ {verb} {len(created)} slot(s):[/bold green]\n")
    _print_slots(created, config.timezone)
    console.print()


@app.command()
def book(
    manager_id: Annotated[str, typer.Argument(help="Project manager id or principal name")],
    event_id: Annotated[str, typer.Option("--event", "-e", help="Id of the free slot event")],
    start: Annotated[str, typer.Option("--start", help="Slot start (ISO-8601)")],
    end: Annotated[str, typer.Option("--end", help="Slot end (ISO-8601)")],
    team_id: Annotated[str, typer.Option("--team", "-t", help="Team id")],
    manager_name: Annotated[str, typer.Option("--manager-name", help="Project manager display name")],
    student_id: Annotated[str, typer.Option("--student-id", help="Student id")],
    student_name: Annotated[str, typer.Option("--student-name", help="Student name")],
    student_email: Annotated[str, typer.Option("--student-email", help="Student email")],
    config_file: ConfigOption = None,
):
    """
    Book a free slot for a student.
    """
    try:
        config = _load_config(config_file, False)
        request = CreateBookingRequest(
            project_manager_id=manager_id,
            project_manager_name=manager_name,
            student_id=student_id,
            student_name=student_name,
            student_email=student_email,
            team_id=team_id,
            start_date_time=start,
            end_date_time=end,
            event_id=event_id,
        )
        booking = _build_service(config, False).create_booking(request)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    console.print(Panel.fit(
        f"[bold]Student:[/bold] {booking.student_name} <{booking.student_email}>\n"
        f"[bold]Time:[/bold] {booking.start.in_timezone(config.timezone).format('DD.MM.YYYY HH:mm')}"
        f" – {booking.end.in_timezone(config.timezone).format('HH:mm')}\n"
        f"[bold]Join:[/bold] {booking.join_url or 'N/A'}",
        title="✓ Booked"
    ))


@app.command()
def reschedule(
    manager_id: Annotated[str, typer.Argument(help="Project manager id or principal name")],
    event_id: Annotated[str, typer.Option("--event", "-e", help="Id of the booked event")],
    start: Annotated[str, typer.Option("--start", help="New start (ISO-8601)")],
    end: Annotated[str, typer.Option("--end", help="New end (ISO-8601)")],
    config_file: ConfigOption = None,
):
    """
    Move a booked meeting.
    """
    try:
        config = _load_config(config_file, False)
        request = RescheduleBookingRequest(
            project_manager_id=manager_id,
            start_date_time=start,
            end_date_time=end,
            event_id=event_id,
        )
        booking = _build_service(config, False).reschedule_booking(request)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    console.print(
        f"[green]✓ Moved to {booking.start.in_timezone(config.timezone).format('DD.MM.YYYY HH:mm')}"
        f" – {booking.end.in_timezone(config.timezone).format('HH:mm')}[/green]"
    )


@app.command()
def cancel(
    manager_id: Annotated[str, typer.Argument(help="Project manager id or principal name")],
    event_id: Annotated[str, typer.Option("--event", "-e", help="Id of the booked event")],
    team_id: Annotated[str, typer.Option("--team", "-t", help="Team id")],
    team_name: Annotated[str, typer.Option("--team-name", help="Team name shown in the invite")],
    config_file: ConfigOption = None,
):
    """
    Cancel a booking and open its slot again.
    """
    try:
        config = _load_config(config_file, False)
        request = CancelBookingRequest(
            project_manager_id=manager_id,
            event_id=event_id,
            team_name=team_name,
            team_id=team_id,
        )
        slot = _build_service(config, False).cancel_booking(request)
    except (FileNotFoundError, ValueError, BookingError) as e:
        _fail(str(e))

    console.print(f"[green]✓ Booking cancelled. Slot {slot.id} is free again.[/green]")


@app.command()
def test_auth(
    manager_id: Annotated[str, typer.Argument(help="User whose profile is fetched")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Test Microsoft Graph authentication.
    """
    try:
        config = _load_config(config_file, mock)

        console.print("\n[bold]Testing Microsoft Graph authentication...[/bold]\n")

        if mock:
            client = MockGraphClient(subject=config.booking_subject, timezone=config.timezone)
        else:
            authenticator = GraphAuthenticator(
                client_id=config.client_id,
                tenant_id=config.tenant_id,
                client_secret=config.get_client_secret(),
                authority_url=config.get_authority_url()
            )
            client = GraphClient(
                authenticator=authenticator,
                subject=config.booking_subject,
                timezone=config.timezone,
            )
        user_info = client.test_connection(manager_id)

        console.print(Panel.fit(
            f"[bold green]✓ Authentication successful![/bold green]\n\n"
            f"[bold]User:[/bold] {user_info.get('displayName', 'N/A')}\n"
            f"[bold]Email:[/bold] {user_info.get('mail') or user_info.get('userPrincipalName', 'N/A')}",
            title="✓ Connection test"
        ))
        console.print()

    except (FileNotFoundError, ValueError, BookingError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
