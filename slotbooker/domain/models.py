"""
Domain models for booking windows, slots and bookings.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pendulum import DateTime

from .exceptions import InvalidWindowError


@dataclass(frozen=True)
class TimeWindow:
    """
    Represents an immutable window with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.end <= self.start:
            raise InvalidWindowError(self.start, self.end)

    def duration_minutes(self) -> float:
        """Return the exact duration in minutes, keeping fractions."""
        return (self.end - self.start).total_seconds() / 60

    def contains(self, start: DateTime, end: DateTime) -> bool:
        """Check if the interval lies completely inside this window."""
        return self.start <= start and end <= self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('DD.MM.YYYY HH:mm')}"


@dataclass(frozen=True)
class SlotRequest:
    """A validated request to partition a window into student slots."""
    window: TimeWindow
    slot_duration: int
    break_duration: int
    student_count: int


@dataclass(frozen=True)
class Slot:
    """One placed, fixed-duration interval."""
    start: DateTime
    end: DateTime

    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def to_dict(self) -> Dict[str, str]:
        return {
            "startDateTime": self.start.to_iso8601_string(),
            "endDateTime": self.end.to_iso8601_string(),
        }

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BookedBy:
    """The student holding a booked slot."""
    id: str
    name: str
    email: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class AvailabilitySlot:
    """
    A slot in the availability view, either free or booked.

    The id is always the external calendar event id.
    """
    id: str
    start: DateTime
    end: DateTime
    available: bool = True
    booked_by: Optional[BookedBy] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "start": self.start.to_iso8601_string(),
            "end": self.end.to_iso8601_string(),
            "available": self.available,
        }
        if self.booked_by is not None:
            data["bookedBy"] = self.booked_by.to_dict()
        return data


@dataclass
class BookingRecord:
    """
    A confirmed booking as kept in the local store.

    Created once the calendar event is scheduled; only start and end change
    afterwards (on reschedule).
    """
    external_id: str
    manager_id: str
    manager_email: str
    manager_name: str
    student_id: str
    student_name: str
    student_email: str
    team_id: str
    start: DateTime
    end: DateTime
    time_zone: str = ""
    join_url: str = ""
    subject: str = ""

    def booked_by(self) -> BookedBy:
        return BookedBy(id=self.student_id, name=self.student_name, email=self.student_email)
