"""
Merges calendar slots with locally recorded bookings into one availability view.
"""

from typing import Iterable, List

from pendulum import DateTime

from .models import AvailabilitySlot, BookingRecord, TimeWindow


def booking_to_slot(booking: BookingRecord) -> AvailabilitySlot:
    """Project a stored booking onto a booked availability slot."""
    return AvailabilitySlot(
        id=booking.external_id,
        start=booking.start,
        end=booking.end,
        available=False,
        booked_by=booking.booked_by(),
    )


def reconcile(
    external_slots: Iterable[AvailabilitySlot],
    local_bookings: Iterable[BookingRecord],
) -> List[AvailabilitySlot]:
    """
    Build the availability view for a manager and team.

    The calendar is expected to report free placeholder slots only, so the two
    sources are concatenated without deduplication and sorted by start.

    Equal start times keep their input order, with calendar slots ahead of
    bookings.

    Args:
        external_slots: Free slots reported by the calendar
        local_bookings: Bookings recorded for the same team and range

    Returns:
        Availability slots in ascending start order
    """
    merged: List[AvailabilitySlot] = list(external_slots)
    merged.extend(booking_to_slot(booking) for booking in local_bookings)

    # sorted() is stable
    return sorted(merged, key=lambda slot: slot.start)


def default_booking_range(now: DateTime, lookahead_days: int = 7) -> TimeWindow:
    """
    Range of bookings folded into the availability view when none is given.

    Runs from the start of the current day until ``lookahead_days`` from now.
    """
    return TimeWindow(start=now.start_of("day"), end=now.add(days=lookahead_days))
