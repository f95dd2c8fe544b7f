"""
Microsoft Graph API client for reading and writing project manager calendars.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple
from urllib.parse import quote

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import AvailabilitySlot, Slot
from ..schemas import CreateBookingRequest

logger = logging.getLogger(__name__)

# Graph returns seven fractional digits, more than datetime can hold
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class TokenProvider(Protocol):
    """Anything that can hand out a Graph access token."""

    def get_access_token(self) -> str:
        """Return a bearer token."""


class GraphClient:
    """
    Client for Microsoft Graph API calendar operations.

    Booking windows are published as free placeholder events carrying the
    configured booking subject and the team id as category. Reading uses the
    /calendar/calendarView endpoint, which expands the calendar into event
    instances for a time range.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"
    TIMEOUT_SECONDS = 30

    def __init__(
        self,
        authenticator: TokenProvider,
        subject: str,
        timezone: str = "Asia/Kolkata",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Graph API client.

        Args:
            authenticator: Source of access tokens
            subject: Subject marking bookable placeholder events
            timezone: IANA timezone used for all event times
            session: Optional requests session (tests inject one)
        """
        self.authenticator = authenticator
        self.subject = subject
        self.timezone = timezone
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.authenticator.get_access_token()}",
            "Content-Type": "application/json",
            "Prefer": f'outlook.timezone="{self.timezone}"',
        }

    def _user_url(self, user_id: str, path: str) -> str:
        return f"{self.GRAPH_API_ENDPOINT}/users/{quote(user_id, safe='@')}/{path}"

    def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """
        Send a request and decode the JSON body.

        Raises:
            CalendarAPIError: If the request fails or the body is not JSON
        """
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.TIMEOUT_SECONDS,
                **kwargs
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Graph %s %s failed: %s", method, url, e)
            raise CalendarAPIError(f"Microsoft Graph request failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise CalendarAPIError(f"Microsoft Graph returned invalid JSON: {e}") from e

    def get_time_slots(
        self,
        manager_id: str,
        team_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[AvailabilitySlot]:
        """
        Get the free placeholder slots a manager published for a team.

        Follows @odata.nextLink until the whole range has been read.

        Args:
            manager_id: Graph user id or principal name of the manager
            team_id: Team whose slots are wanted
            start_time: Start of the range
            end_time: End of the range

        Returns:
            Available slots in the order Graph returned them

        Raises:
            CalendarAPIError: If any page cannot be fetched
        """
        url: Optional[str] = self._user_url(manager_id, "calendar/calendarView")
        params: Optional[Dict[str, str]] = {
            "startDateTime": start_time.in_timezone("UTC").to_iso8601_string(),
            "endDateTime": end_time.in_timezone("UTC").to_iso8601_string(),
        }

        events: List[Dict[str, Any]] = []
        while url:
            data = self._request("GET", url, params=params)
            events.extend(data.get("value", []))
            url = data.get("@odata.nextLink")
            # nextLink already carries the query
            params = None

        logger.debug("Fetched %d events for %s", len(events), manager_id)
        return self._parse_time_slots(events, team_id)

    def _parse_time_slots(
        self,
        events: Iterable[Dict[str, Any]],
        team_id: str,
    ) -> List[AvailabilitySlot]:
        """
        Parse calendarView events into available slots.

        Event format:
        {
            "id": "AAMk...",
            "subject": "Project Manager 1:1 Slot",
            "showAs": "free",
            "categories": ["team-42"],
            "start": {"dateTime": "2024-11-25T09:00:00.0000000", "timeZone": "..."},
            "end": {"dateTime": "2024-11-25T09:20:00.0000000", "timeZone": "..."}
        }
        """
        slots: List[AvailabilitySlot] = []

        for event in events:
            if not self._is_bookable(event, team_id):
                continue

            try:
                slots.append(
                    AvailabilitySlot(
                        id=event["id"],
                        start=self._parse_datetime(event["start"]["dateTime"]),
                        end=self._parse_datetime(event["end"]["dateTime"]),
                        available=True,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Could not parse calendar event %s: %s", event.get("id"), e)
                continue

        return slots

    def _is_bookable(self, event: Dict[str, Any], team_id: str) -> bool:
        return (
            event.get("showAs", "").lower() == "free"
            and event.get("subject") == self.subject
            and team_id in (event.get("categories") or [])
        )

    def _parse_datetime(self, datetime_str: str) -> DateTime:
        """
        Parse a Graph dateTime string into a pendulum DateTime.

        Graph reports times in the zone requested via the Prefer header and
        omits the offset.
        """
        dt = pendulum.parse(_FRACTION_RE.sub(r"\1", datetime_str), tz=self.timezone)

        if isinstance(dt, DateTime):
            return dt.in_timezone(self.timezone)

        raise ValueError(f"Could not parse datetime: {datetime_str}")

    def _event_time(self, dt: DateTime) -> Dict[str, str]:
        return {
            "dateTime": dt.in_timezone(self.timezone).format("YYYY-MM-DDTHH:mm:ss"),
            "timeZone": self.timezone,
        }

    def create_slot_event(
        self,
        manager_id: str,
        slot: Slot,
        team_name: str,
        team_id: str,
    ) -> str:
        """
        Publish one free placeholder event and return its id.
        """
        payload = {
            "subject": self.subject,
            "body": {
                "contentType": "text",
                "content": f"Open 1:1 slot for team {team_name}",
            },
            "start": self._event_time(slot.start),
            "end": self._event_time(slot.end),
            "showAs": "free",
            "categories": [team_id],
        }
        event = self._request("POST", self._user_url(manager_id, "calendar/events"), json=payload)
        return event["id"]

    def create_booking_window(
        self,
        slots: Iterable[Slot],
        team_name: str,
        team_id: str,
        manager_id: str,
    ) -> List[str]:
        """
        Publish a placeholder event for every slot of a window.

        Returns:
            Ids of the created events, in slot order
        """
        event_ids = [
            self.create_slot_event(manager_id, slot, team_name, team_id)
            for slot in slots
        ]
        logger.info(
            "Published %d slots for team %s on %s's calendar",
            len(event_ids), team_id, manager_id
        )
        return event_ids

    def create_booking_event(
        self,
        request: CreateBookingRequest,
        start: DateTime,
        end: DateTime,
    ) -> Dict[str, Any]:
        """
        Schedule the 1:1 meeting and remove the consumed placeholder.

        If the placeholder cannot be deleted, for example because another
        booking already took it, the new meeting is deleted again.

        Returns:
            The created Graph event resource
        """
        payload = {
            "subject": f"1:1 with Project Manager {request.project_manager_name}",
            "start": self._event_time(start),
            "end": self._event_time(end),
            "attendees": [
                {
                    "emailAddress": {
                        "address": request.student_email,
                        "name": request.student_name,
                    },
                    "type": "required",
                }
            ],
            "isOnlineMeeting": True,
            "onlineMeetingProvider": "teamsForBusiness",
        }
        event = self._request(
            "POST",
            self._user_url(request.project_manager_id, "calendar/events"),
            json=payload,
        )
        try:
            self.delete_event(request.project_manager_id, request.event_id)
        except CalendarAPIError:
            logger.warning(
                "Placeholder %s is gone, removing meeting %s",
                request.event_id, event.get("id")
            )
            self._delete_quietly(request.project_manager_id, event.get("id"))
            raise
        return event

    def _delete_quietly(self, manager_id: str, event_id: Optional[str]) -> None:
        if not event_id:
            return
        try:
            self.delete_event(manager_id, event_id)
        except CalendarAPIError as exc:
            logger.error("Could not remove meeting %s: %s", event_id, exc)

    def reschedule_event(
        self,
        start_time: DateTime,
        end_time: DateTime,
        event_id: str,
        manager_id: str,
    ) -> Dict[str, Any]:
        """Move an event and return the updated resource."""
        payload = {
            "start": self._event_time(start_time),
            "end": self._event_time(end_time),
        }
        return self._request(
            "PATCH",
            self._user_url(manager_id, f"events/{event_id}"),
            json=payload,
        )

    def delete_event(self, manager_id: str, event_id: str) -> None:
        """Delete an event from the manager's calendar."""
        self._request("DELETE", self._user_url(manager_id, f"events/{event_id}"))

    def parse_event_times(self, event: Dict[str, Any]) -> Tuple[DateTime, DateTime]:
        """Return (start, end) of an event resource."""
        return (
            self._parse_datetime(event["start"]["dateTime"]),
            self._parse_datetime(event["end"]["dateTime"]),
        )

    def test_connection(self, manager_id: str) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching a user profile.

        Raises:
            CalendarAPIError: If connection test fails
        """
        return self._request(
            "GET",
            f"{self.GRAPH_API_ENDPOINT}/users/{quote(manager_id, safe='@')}",
        )
