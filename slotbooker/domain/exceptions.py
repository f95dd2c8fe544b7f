"""
Domain-specific exception hierarchy for the slot booking application.
"""


def _format_minutes(minutes: float) -> str:
    """Render a minute count without a trailing ``.0``."""
    return f"{minutes:g}"


class BookingError(Exception):
    """Base class for all application-level errors."""


class SlotRequestError(BookingError, ValueError):
    """
    Raised when a booking window request cannot be honoured.

    These are caller-input errors: the message is meant to be shown to the
    person who submitted the window.
    """


class InvalidTimestampError(SlotRequestError):
    """Raised when a window bound is not a valid instant."""

    def __init__(self, which: str, value: object):
        self.which = which
        self.value = value
        super().__init__(f"Invalid {which} time format: {value}")


class InvalidWindowError(SlotRequestError):
    """Raised when the window does not end after it starts."""

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__("End time must be after start time")


class InvalidStudentCountError(SlotRequestError):
    """Raised when fewer than one student is requested."""

    def __init__(self, student_count: int):
        self.student_count = student_count
        super().__init__("Number of students must be greater than 0")


class InvalidDurationError(SlotRequestError):
    """Raised when the slot or break duration is out of range."""

    def __init__(self, field: str, value: int):
        self.field = field
        self.value = value
        bound = "greater than 0" if field == "slot_duration" else "0 or more"
        super().__init__(f"{field} must be {bound} minutes, got {value}")


class WindowTooSmallError(SlotRequestError):
    """Raised when not even a single slot fits into the window."""

    def __init__(self, slot_duration: int, total_minutes: float):
        self.slot_duration = slot_duration
        self.total_minutes = total_minutes
        super().__init__(
            f"Window is too small to accommodate even one student with "
            f"{slot_duration} minute slot. "
            f"Window length: {_format_minutes(total_minutes)} minutes"
        )


class CapacityExceededError(SlotRequestError):
    """Raised when more students are requested than the window can hold."""

    def __init__(
        self,
        requested: int,
        maximum: int,
        slot_duration: int,
        break_duration: int,
        total_minutes: float,
        shortfall_minutes: float,
    ):
        self.requested = requested
        self.maximum = maximum
        self.slot_duration = slot_duration
        self.break_duration = break_duration
        self.total_minutes = total_minutes
        self.shortfall_minutes = shortfall_minutes
        super().__init__(
            f"Cannot accommodate {requested} students in the given window. "
            f"Maximum possible students: {maximum} with {slot_duration} minute slots "
            f"and {break_duration} minute breaks. "
            f"Window length: {_format_minutes(total_minutes)} minutes. "
            f"Need {_format_minutes(shortfall_minutes)} more minutes to accommodate all students."
        )


class WindowInvariantError(AssertionError):
    """
    Raised when slot placement leaves the window despite a passed capacity check.

    Never an input error: reaching this means the capacity arithmetic and the
    placement loop disagree.
    """

    def __init__(self, index: int, message: str):
        self.index = index
        super().__init__(message)


class SlotExceedsWindowError(WindowInvariantError):
    """A placed slot would end after the window end."""

    def __init__(self, index: int):
        super().__init__(index, f"Slot {index + 1} would exceed the specified window end time")


class BreakExceedsWindowError(WindowInvariantError):
    """The break after a slot would run past the window end."""

    def __init__(self, index: int):
        super().__init__(
            index, f"Break after slot {index + 1} would exceed the specified window end time"
        )


class CalendarAPIError(BookingError):
    """Raised when calendar data cannot be fetched, written or parsed."""


class AuthenticationError(BookingError):
    """Raised when authentication or token handling fails."""


class BookingNotFoundError(BookingError):
    """Raised when no local booking exists for an external event id."""

    def __init__(self, external_id: str):
        self.external_id = external_id
        super().__init__(f"No booking found for event {external_id}")
