"""
Application service for publishing booking windows and managing bookings.

The service coordinates the calendar adapter, the booking store and the pure
domain logic (``WindowSlotGenerator`` and ``reconcile``). Both collaborators
are described by protocols so tests can plug in stubs.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Optional, Protocol, Tuple

import pendulum
from pendulum import DateTime

from ..domain.exceptions import BookingNotFoundError, CalendarAPIError
from ..domain.models import AvailabilitySlot, BookingRecord, Slot, TimeWindow
from ..domain.reconciler import default_booking_range, reconcile
from ..domain.window_generator import WindowSlotGenerator, parse_instant
from ..schemas import (
    CancelBookingRequest,
    CreateBookingRequest,
    CreateBookingWindowRequest,
    RescheduleBookingRequest,
)

logger = logging.getLogger(__name__)


class CalendarClientProtocol(Protocol):
    """Calendar behaviour needed by the service."""

    def get_time_slots(
        self,
        manager_id: str,
        team_id: str,
        start_time: DateTime,
        end_time: DateTime,
    ) -> List[AvailabilitySlot]:
        """Return the free placeholder slots, all pages assembled."""

    def create_booking_window(
        self,
        slots: Iterable[Slot],
        team_name: str,
        team_id: str,
        manager_id: str,
    ) -> List[str]:
        """Publish placeholder events and return their ids."""

    def create_slot_event(self, manager_id: str, slot: Slot, team_name: str, team_id: str) -> str:
        """Publish a single placeholder event."""

    def create_booking_event(
        self,
        request: CreateBookingRequest,
        start: DateTime,
        end: DateTime,
    ) -> Dict[str, Any]:
        """Create the meeting and remove the consumed placeholder."""

    def reschedule_event(
        self,
        start_time: DateTime,
        end_time: DateTime,
        event_id: str,
        manager_id: str,
    ) -> Dict[str, Any]:
        """Move an event."""

    def delete_event(self, manager_id: str, event_id: str) -> None:
        """Delete an event."""

    def parse_event_times(self, event: Dict[str, Any]) -> Tuple[DateTime, DateTime]:
        """Extract start and end from an event resource."""


class BookingStoreProtocol(Protocol):
    """Persistence behaviour needed by the service."""

    def find_bookings(self, team_id: str, start: DateTime, end: DateTime) -> List[BookingRecord]:
        """Bookings of a team inside the range."""

    def get_booking(self, external_id: str) -> Optional[BookingRecord]:
        """Booking by event id."""

    def create_booking(self, record: BookingRecord) -> BookingRecord:
        """Persist a new booking."""

    def update_booking_times(self, external_id: str, start: DateTime, end: DateTime) -> BookingRecord:
        """Move a booking."""

    def delete_booking(self, external_id: str) -> BookingRecord:
        """Remove a booking."""


class _KeyEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """
    A registry of mutexes, one per key.

    Writes sharing a key run one after another. A key's mutex is dropped
    once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _KeyEntry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def locked(self, key: Hashable) -> bool:
        """Whether some caller currently holds ``key``."""
        with self._guard:
            entry = self._entries.get(key)
            return entry is not None and entry.lock.locked()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the mutex for ``key`` for the duration of the block."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _KeyEntry()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]


class BookingService:
    """
    Orchestrates window generation, availability and booking writes.

    Reads take no locks. Every write path holds the per-key lock across
    validation, the calendar write and the local write.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        booking_store: BookingStoreProtocol,
        timezone: str = "Asia/Kolkata",
        lookahead_days: int = 7,
        clock: Optional[Callable[[], DateTime]] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self._calendar_client = calendar_client
        self._booking_store = booking_store
        self._timezone = timezone
        self._lookahead_days = lookahead_days
        self._clock = clock or (lambda: pendulum.now("UTC"))
        self._generator = WindowSlotGenerator(timezone=timezone)
        self._locks = locks if locks is not None else KeyedLock()

    def booking_range(self) -> TimeWindow:
        """Range of the availability view, relative to the current time."""
        return default_booking_range(self._clock(), self._lookahead_days)

    def get_time_slots(
        self,
        manager_id: str,
        team_id: str,
        booking_range: Optional[TimeWindow] = None,
    ) -> List[AvailabilitySlot]:
        """
        Build the availability view for a manager and team.

        Args:
            manager_id: Calendar owner
            team_id: Team whose slots and bookings are shown
            booking_range: Range to query; defaults to today until the lookahead

        Returns:
            Free and booked slots in ascending start order, in the service timezone
        """
        window = booking_range or self.booking_range()

        external_slots = self._calendar_client.get_time_slots(
            manager_id, team_id, window.start, window.end
        )
        bookings = self._booking_store.find_bookings(team_id, window.start, window.end)

        logger.debug(
            "Reconciling %d calendar slots with %d bookings for team %s",
            len(external_slots), len(bookings), team_id
        )
        return [
            replace(
                slot,
                start=slot.start.in_timezone(self._timezone),
                end=slot.end.in_timezone(self._timezone),
            )
            for slot in reconcile(external_slots, bookings)
        ]

    def create_booking_window(self, request: CreateBookingWindowRequest) -> List[Slot]:
        """
        Partition a window into slots and publish them.

        In preview mode the slots are validated and returned without any
        calendar write.

        Raises:
            SlotRequestError: If the window cannot hold the request
        """
        if request.preview_slots:
            return self._generate(request)

        with self._locks.hold((request.project_manager_id, request.team_id)):
            slots = self._generate(request)
            self._calendar_client.create_booking_window(
                slots,
                request.team_name,
                request.team_id,
                request.project_manager_id,
            )

        logger.info(
            "Created booking window with %d slots for team %s",
            len(slots), request.team_id
        )
        return slots

    def _generate(self, request: CreateBookingWindowRequest) -> List[Slot]:
        return self._generator.generate_from_bounds(
            request.window_start_date,
            request.window_end_date,
            request.slot_duration,
            request.break_duration,
            request.number_of_students,
        )

    def create_booking(self, request: CreateBookingRequest) -> BookingRecord:
        """
        Book a placeholder slot for a student and record the booking.

        Raises:
            SlotRequestError: If the requested times are invalid
            CalendarAPIError: If the calendar write fails
        """
        requested = self._parse_range(request.start_date_time, request.end_date_time)

        with self._locks.hold((request.project_manager_id, request.team_id)):
            event = self._calendar_client.create_booking_event(
                request, requested.start, requested.end
            )
            start, end = self._calendar_client.parse_event_times(event)
            organizer = (event.get("organizer") or {}).get("emailAddress") or {}

            record = BookingRecord(
                external_id=event["id"],
                manager_id=request.project_manager_id,
                manager_email=organizer.get("address", ""),
                manager_name=organizer.get("name", request.project_manager_name),
                student_id=request.student_id,
                student_name=request.student_name,
                student_email=request.student_email,
                team_id=request.team_id,
                start=start,
                end=end,
                time_zone=event.get("originalStartTimeZone") or self._timezone,
                join_url=(event.get("onlineMeeting") or {}).get("joinUrl", ""),
                subject=event.get("subject", ""),
            )
            return self._booking_store.create_booking(record)

    def reschedule_booking(self, request: RescheduleBookingRequest) -> BookingRecord:
        """
        Move a booked meeting and update the local record.

        Runs under the same manager/team lock as booking and cancelling.

        Raises:
            BookingNotFoundError: If the event has no local booking
        """
        requested = self._parse_range(request.start_date_time, request.end_date_time)
        booking = self._require_booking(request.event_id)

        with self._locks.hold((request.project_manager_id, booking.team_id)):
            # A cancel may have won the lock first
            self._require_booking(request.event_id)

            event = self._calendar_client.reschedule_event(
                requested.start,
                requested.end,
                request.event_id,
                request.project_manager_id,
            )
            start, end = self._calendar_client.parse_event_times(event)
            return self._booking_store.update_booking_times(event["id"], start, end)

    def cancel_booking(self, request: CancelBookingRequest) -> AvailabilitySlot:
        """
        Cancel a booking and publish its time as a free slot again.

        The free slot is published before the meeting is deleted, so a failed
        calendar write leaves the booking and its meeting in place.

        Returns:
            The re-published slot

        Raises:
            BookingNotFoundError: If the event has no local booking
            CalendarAPIError: If a calendar write fails
        """
        booking = self._require_booking(request.event_id)

        with self._locks.hold((request.project_manager_id, booking.team_id)):
            # Read again under the lock, a reschedule may have moved it
            booking = self._require_booking(request.event_id)

            slot = Slot(start=booking.start, end=booking.end)
            slot_id = self._calendar_client.create_slot_event(
                request.project_manager_id,
                slot,
                request.team_name,
                request.team_id,
            )
            try:
                self._calendar_client.delete_event(request.project_manager_id, request.event_id)
            except CalendarAPIError:
                self._discard_event(request.project_manager_id, slot_id)
                raise
            self._booking_store.delete_booking(request.event_id)

        logger.info("Cancelled booking %s, slot %s is open again", request.event_id, slot_id)
        return AvailabilitySlot(
            id=slot_id,
            start=slot.start.in_timezone(self._timezone),
            end=slot.end.in_timezone(self._timezone),
            available=True,
        )

    def _require_booking(self, event_id: str) -> BookingRecord:
        booking = self._booking_store.get_booking(event_id)
        if booking is None:
            raise BookingNotFoundError(event_id)
        return booking

    def _discard_event(self, manager_id: str, event_id: str) -> None:
        """Remove an event written earlier in a failed operation."""
        try:
            self._calendar_client.delete_event(manager_id, event_id)
        except CalendarAPIError as exc:
            logger.error("Could not remove event %s after a failed write: %s", event_id, exc)

    def _parse_range(self, start: str, end: str) -> TimeWindow:
        return TimeWindow(
            start=parse_instant(start, "start", self._timezone),
            end=parse_instant(end, "end", self._timezone),
        )
