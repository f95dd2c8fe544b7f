"""
Core business logic for partitioning a booking window into student slots.

Pure domain logic: no API calls, no database, no clock reads. The same
inputs always produce the same slots.
"""

import math
from typing import List, Union

import pendulum
from pendulum import DateTime

from .exceptions import (
    BreakExceedsWindowError,
    CapacityExceededError,
    InvalidDurationError,
    InvalidStudentCountError,
    InvalidTimestampError,
    SlotExceedsWindowError,
    WindowTooSmallError,
)
from .models import Slot, SlotRequest, TimeWindow

Instant = Union[str, DateTime]


def parse_instant(value: Instant, which: str, timezone: str = "UTC") -> DateTime:
    """
    Parse an ISO-8601 string (or pass through a DateTime).

    Args:
        value: Timestamp string or DateTime
        which: "start" or "end", reported back on failure
        timezone: Zone applied to strings without an offset

    Raises:
        InvalidTimestampError: If the value is not a valid instant
    """
    if isinstance(value, DateTime):
        return value

    if not isinstance(value, str) or not value.strip():
        raise InvalidTimestampError(which, value)

    try:
        parsed = pendulum.parse(value.strip(), tz=timezone)
    except (ValueError, TypeError) as exc:
        raise InvalidTimestampError(which, value) from exc

    # Durations, bare times and the like are not instants
    if not isinstance(parsed, DateTime):
        raise InvalidTimestampError(which, value)

    return parsed


def max_slots(total_minutes: float, slot_duration: int, break_duration: int) -> int:
    """
    Maximum number of slots that fit into a window.

    The last slot needs no trailing break, hence the extra break added to the
    window length before dividing.
    """
    unit = slot_duration + break_duration
    return math.floor((total_minutes + break_duration) / unit)


class WindowSlotGenerator:
    """
    Generates non-overlapping, equally sized slots inside a booking window.

    Algorithm:
    1. Reject invalid timestamps, an empty window, a non-positive student count
       and out-of-range durations
    2. Compute the window capacity and reject requests it cannot hold
    3. Place slots left to right, each followed by the break, tightest packing
    """

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone

    def generate_from_bounds(
        self,
        window_start: Instant,
        window_end: Instant,
        slot_duration: int,
        break_duration: int,
        student_count: int,
    ) -> List[Slot]:
        """
        Validate raw window bounds and generate the slots.

        Args:
            window_start: ISO-8601 string or DateTime
            window_end: ISO-8601 string or DateTime
            slot_duration: Slot length in minutes
            break_duration: Break between slots in minutes
            student_count: Number of slots to place

        Returns:
            Slots in chronological order

        Raises:
            SlotRequestError: On the first violated precondition
        """
        start = parse_instant(window_start, "start", self.timezone)
        end = parse_instant(window_end, "end", self.timezone)
        window = TimeWindow(start=start, end=end)

        return self.generate(
            SlotRequest(
                window=window,
                slot_duration=slot_duration,
                break_duration=break_duration,
                student_count=student_count,
            )
        )

    def generate(self, request: SlotRequest) -> List[Slot]:
        """Generate the slots for an already constructed request."""
        self.validate(request)
        return self.place_slots(
            request.window,
            request.slot_duration,
            request.break_duration,
            request.student_count,
        )

    def validate(self, request: SlotRequest) -> int:
        """
        Check the request against the window capacity.

        Returns:
            The window capacity (maximum number of slots)
        """
        if request.student_count <= 0:
            raise InvalidStudentCountError(request.student_count)
        if request.slot_duration <= 0:
            raise InvalidDurationError("slot_duration", request.slot_duration)
        if request.break_duration < 0:
            raise InvalidDurationError("break_duration", request.break_duration)

        total_minutes = request.window.duration_minutes()
        capacity = max_slots(total_minutes, request.slot_duration, request.break_duration)

        if capacity == 0:
            raise WindowTooSmallError(request.slot_duration, total_minutes)

        # Covers n*slot + (n-1)*break > total as well, the two are equivalent
        if request.student_count > capacity:
            unit = request.slot_duration + request.break_duration
            needed = (request.student_count - 1) * unit + request.slot_duration
            raise CapacityExceededError(
                requested=request.student_count,
                maximum=capacity,
                slot_duration=request.slot_duration,
                break_duration=request.break_duration,
                total_minutes=total_minutes,
                shortfall_minutes=needed - total_minutes,
            )

        return capacity

    @staticmethod
    def place_slots(
        window: TimeWindow,
        slot_duration: int,
        break_duration: int,
        student_count: int,
    ) -> List[Slot]:
        """
        Place slots left to right without validating capacity first.

        Raises:
            SlotExceedsWindowError: A slot would end after the window
            BreakExceedsWindowError: A break would end after the window
        """
        slots: List[Slot] = []
        cursor = window.start

        for index in range(student_count):
            slot_end = cursor.add(minutes=slot_duration)
            if not window.contains(cursor, slot_end):
                raise SlotExceedsWindowError(index)

            slots.append(Slot(start=cursor, end=slot_end))

            if index < student_count - 1:
                cursor = slot_end.add(minutes=break_duration)
                if cursor > window.end:
                    raise BreakExceedsWindowError(index)

        return slots


def generate_window_slots(
    window_start: Instant,
    window_end: Instant,
    slot_duration: int,
    break_duration: int,
    student_count: int,
    timezone: str = "UTC",
) -> List[Slot]:
    """Shortcut for ``WindowSlotGenerator(timezone).generate_from_bounds(...)``."""
    return WindowSlotGenerator(timezone=timezone).generate_from_bounds(
        window_start,
        window_end,
        slot_duration,
        break_duration,
        student_count,
    )
