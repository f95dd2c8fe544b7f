"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService, BookingStoreProtocol, CalendarClientProtocol, KeyedLock

__all__ = ["BookingService", "BookingStoreProtocol", "CalendarClientProtocol", "KeyedLock"]
