"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import AvailabilitySlot, BookedBy, BookingRecord, Slot, SlotRequest, TimeWindow
from .reconciler import default_booking_range, reconcile
from .window_generator import WindowSlotGenerator, generate_window_slots

__all__ = [
    "AvailabilitySlot",
    "BookedBy",
    "BookingRecord",
    "Slot",
    "SlotRequest",
    "TimeWindow",
    "WindowSlotGenerator",
    "default_booking_range",
    "generate_window_slots",
    "reconcile",
]
