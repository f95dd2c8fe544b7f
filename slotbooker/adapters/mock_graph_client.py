"""
Mock Microsoft Graph API client for running without Azure credentials.
"""

import itertools
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import AvailabilitySlot, Slot
from ..schemas import CreateBookingRequest


class MockGraphClient:
    """
    Mock client that keeps calendar events in memory.

    Events can be seeded from a JSON file of the form
    ``[{"managerId", "id", "subject", "showAs", "categories", "start", "end"}]``.
    Every write is also recorded in ``calls`` so tests can inspect it.
    """

    def __init__(
        self,
        subject: str = "Project Manager 1:1 Slot",
        timezone: str = "Asia/Kolkata",
        data_file: Optional[Path] = None,
    ):
        """
        Initialize the mock client.

        Args:
            subject: Subject marking bookable placeholder events
            timezone: IANA timezone for parsed event times
            data_file: Optional JSON file with seed events
        """
        self.subject = subject
        self.timezone = timezone
        self.events: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self._ids = itertools.count(1)

        if data_file is not None and data_file.exists():
            self._load_calendar_data(data_file)

    def _load_calendar_data(self, data_file: Path) -> None:
        """Load seed events from JSON file."""
        with open(data_file, "r", encoding="utf-8") as f:
            for event in json.load(f):
                self.add_event(
                    manager_id=event["managerId"],
                    start=pendulum.parse(event["start"], tz=self.timezone),
                    end=pendulum.parse(event["end"], tz=self.timezone),
                    subject=event.get("subject", self.subject),
                    show_as=event.get("showAs", "free"),
                    categories=event.get("categories", []),
                    event_id=event.get("id"),
                )

    def add_event(
        self,
        manager_id: str,
        start: DateTime,
        end: DateTime,
        subject: Optional[str] = None,
        show_as: str = "free",
        categories: Iterable[str] = (),
        event_id: Optional[str] = None,
    ) -> str:
        """Put an event straight into the calendar and return its id."""
        event_id = event_id or f"mock-event-{next(self._ids)}"
        self.events[event_id] = {
            "id": event_id,
            "managerId": manager_id,
            "subject": subject if subject is not None else self.subject,
            "showAs": show_as,
            "categories": list(categories),
            "start": start,
            "end": end,
        }
        return event_id

    def _get(self, manager_id: str, event_id: str) -> Dict[str, Any]:
        event = self.events.get(event_id)
        if event is None or event["managerId"] != manager_id:
            raise CalendarAPIError(f"Microsoft Graph request failed: event {event_id} not found")
        return event

    def get_time_slots(
        self,
        manager_id: str,
        team_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[AvailabilitySlot]:
        """Return free placeholder events of the team overlapping the range."""
        slots: List[AvailabilitySlot] = []

        for event in self.events.values():
            if event["managerId"] != manager_id:
                continue
            if event["showAs"] != "free" or event["subject"] != self.subject:
                continue
            if team_id not in event["categories"]:
                continue
            if event["start"] < end_time and event["end"] > start_time:
                slots.append(
                    AvailabilitySlot(id=event["id"], start=event["start"], end=event["end"])
                )

        return slots

    def create_slot_event(self, manager_id: str, slot: Slot, team_name: str, team_id: str) -> str:
        self.calls.append(("create_slot_event", (manager_id, slot, team_name, team_id)))
        return self.add_event(manager_id, slot.start, slot.end, categories=[team_id])

    def create_booking_window(
        self,
        slots: Iterable[Slot],
        team_name: str,
        team_id: str,
        manager_id: str,
    ) -> List[str]:
        return [
            self.create_slot_event(manager_id, slot, team_name, team_id)
            for slot in slots
        ]

    def create_booking_event(
        self,
        request: CreateBookingRequest,
        start: DateTime,
        end: DateTime,
    ) -> Dict[str, Any]:
        self.calls.append(("create_booking_event", request))
        # Same order as Graph: the meeting exists before the placeholder goes
        event_id = self.add_event(
            request.project_manager_id,
            start,
            end,
            subject=f"1:1 with Project Manager {request.project_manager_name}",
            show_as="busy",
        )
        try:
            self.delete_event(request.project_manager_id, request.event_id)
        except CalendarAPIError:
            del self.events[event_id]
            raise
        return self._as_resource(self.events[event_id], organizer_name=request.project_manager_name)

    def reschedule_event(
        self,
        start_time: DateTime,
        end_time: DateTime,
        event_id: str,
        manager_id: str,
    ) -> Dict[str, Any]:
        self.calls.append(("reschedule_event", (start_time, end_time, event_id, manager_id)))
        event = self._get(manager_id, event_id)
        event["start"] = start_time
        event["end"] = end_time
        return self._as_resource(event)

    def delete_event(self, manager_id: str, event_id: str) -> None:
        self.calls.append(("delete_event", (manager_id, event_id)))
        self._get(manager_id, event_id)
        del self.events[event_id]

    def parse_event_times(self, event: Dict[str, Any]) -> Tuple[DateTime, DateTime]:
        return (
            pendulum.parse(event["start"]["dateTime"], tz=self.timezone),
            pendulum.parse(event["end"]["dateTime"], tz=self.timezone),
        )

    def _as_resource(self, event: Dict[str, Any], organizer_name: str = "Mock Manager") -> Dict[str, Any]:
        """Render a stored event the way Graph returns it."""
        return {
            "id": event["id"],
            "subject": event["subject"],
            "start": {
                "dateTime": event["start"].in_timezone(self.timezone).format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": self.timezone,
            },
            "end": {
                "dateTime": event["end"].in_timezone(self.timezone).format("YYYY-MM-DDTHH:mm:ss"),
                "timeZone": self.timezone,
            },
            "originalStartTimeZone": self.timezone,
            "organizer": {
                "emailAddress": {
                    "address": f"{event['managerId']}@example.com",
                    "name": organizer_name,
                }
            },
            "onlineMeeting": {"joinUrl": f"https://teams.example.com/l/meetup-join/{event['id']}"},
        }

    def test_connection(self, manager_id: str) -> Dict[str, Any]:
        """
        Mock connection test.

        Returns:
            Mock user profile data
        """
        return {
            "displayName": "Mock User",
            "mail": f"{manager_id}@example.com",
            "userPrincipalName": f"{manager_id}@example.com",
        }

