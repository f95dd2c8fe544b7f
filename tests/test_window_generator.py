"""
Tests for the booking window slot generator.
"""

import pendulum
import pytest

from slotbooker.domain.exceptions import (
    BreakExceedsWindowError,
    CapacityExceededError,
    InvalidDurationError,
    InvalidStudentCountError,
    InvalidTimestampError,
    InvalidWindowError,
    SlotExceedsWindowError,
    SlotRequestError,
    WindowInvariantError,
    WindowTooSmallError,
)
from slotbooker.domain.models import TimeWindow
from slotbooker.domain.window_generator import (
    WindowSlotGenerator,
    generate_window_slots,
    max_slots,
    parse_instant,
)


def _at(hour: int, minute: int = 0):
    return pendulum.datetime(2024, 11, 25, hour, minute, tz="UTC")


class TestGenerateWindowSlots:
    """Tests for slot placement."""

    def test_two_students_in_one_hour(self):
        """Test the 09:00-10:00 window with 20 minute slots and 5 minute breaks."""
        slots = generate_window_slots(
            "2024-11-25T09:00:00Z", "2024-11-25T10:00:00Z", 20, 5, 2
        )

        assert len(slots) == 2
        assert (slots[0].start, slots[0].end) == (_at(9, 0), _at(9, 20))
        assert (slots[1].start, slots[1].end) == (_at(9, 25), _at(9, 45))

    def test_accepts_datetimes(self):
        """Bounds may be passed as DateTime objects."""
        slots = generate_window_slots(_at(9), _at(10), 30, 0, 2)

        assert [s.start for s in slots] == [_at(9, 0), _at(9, 30)]
        assert slots[-1].end == _at(10)

    def test_naive_strings_use_generator_timezone(self):
        """Strings without an offset are read in the configured zone."""
        slots = generate_window_slots(
            "2024-11-25T09:00", "2024-11-25T10:00", 20, 5, 1, timezone="Asia/Kolkata"
        )

        assert slots[0].start == pendulum.datetime(2024, 11, 25, 9, 0, tz="Asia/Kolkata")

    @pytest.mark.parametrize(
        "minutes,slot_duration,break_duration,count",
        [
            (60, 20, 5, 2),
            (120, 30, 10, 3),
            (90, 30, 0, 3),
            (480, 45, 15, 8),
            (61, 15, 5, 3),
        ],
    )
    def test_slot_properties(self, minutes, slot_duration, break_duration, count):
        """Every slot has the requested length and the gap equals the break."""
        start = _at(9)
        end = start.add(minutes=minutes)

        slots = generate_window_slots(start, end, slot_duration, break_duration, count)

        assert len(slots) == count
        for slot in slots:
            assert slot.duration_minutes() == slot_duration
        for previous, current in zip(slots, slots[1:]):
            assert (current.start - previous.end).total_seconds() == break_duration * 60
        assert slots[0].start == start
        assert slots[-1].end <= end

    def test_is_deterministic(self):
        """Identical inputs yield identical slots."""
        first = generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T12:00:00Z", 25, 5, 6)
        second = generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T12:00:00Z", 25, 5, 6)

        assert first == second


class TestCapacity:
    """Tests for capacity arithmetic and rejections."""

    def test_max_slots_counts_last_slot_without_break(self):
        assert max_slots(60, 20, 5) == 2
        assert max_slots(70, 20, 5) == 3
        assert max_slots(15, 20, 5) == 0

    @pytest.mark.parametrize(
        "minutes,slot_duration,break_duration",
        [(60, 20, 5), (120, 30, 10), (45, 15, 0), (100, 7, 3)],
    )
    def test_capacity_boundary(self, minutes, slot_duration, break_duration):
        """The maximum succeeds, one more fails with CapacityExceededError."""
        start = _at(9)
        end = start.add(minutes=minutes)
        capacity = max_slots(minutes, slot_duration, break_duration)

        slots = generate_window_slots(start, end, slot_duration, break_duration, capacity)
        assert len(slots) == capacity

        with pytest.raises(CapacityExceededError) as exc_info:
            generate_window_slots(start, end, slot_duration, break_duration, capacity + 1)
        assert exc_info.value.maximum == capacity

    def test_three_students_do_not_fit(self):
        """Test the rejection details for one student too many."""
        with pytest.raises(CapacityExceededError) as exc_info:
            generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T10:00:00Z", 20, 5, 3)

        error = exc_info.value
        assert error.requested == 3
        assert error.maximum == 2
        assert error.shortfall_minutes == 10
        assert "Maximum possible students: 2 with 20 minute slots and 5 minute breaks." in str(error)
        assert "Window length: 60 minutes." in str(error)
        assert "Need 10 more minutes to accommodate all students." in str(error)

    def test_window_too_small_for_one(self):
        """A window shorter than one slot is rejected regardless of the count."""
        for count in (1, 5):
            with pytest.raises(WindowTooSmallError) as exc_info:
                generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T09:15:00Z", 20, 5, count)

            assert exc_info.value.total_minutes == 15
            assert "Window length: 15 minutes" in str(exc_info.value)

    def test_rejections_are_request_errors(self):
        """Every rejection is a caller-input error."""
        with pytest.raises(SlotRequestError):
            generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T09:15:00Z", 20, 5, 1)


class TestValidationOrder:
    """Tests for the precondition checks."""

    def test_invalid_start(self):
        with pytest.raises(InvalidTimestampError) as exc_info:
            generate_window_slots("not-a-date", "2024-11-25T10:00:00Z", 20, 5, 2)

        assert exc_info.value.which == "start"
        assert "Invalid start time format: not-a-date" in str(exc_info.value)

    def test_invalid_end(self):
        with pytest.raises(InvalidTimestampError) as exc_info:
            generate_window_slots("2024-11-25T09:00:00Z", "", 20, 5, 2)

        assert exc_info.value.which == "end"

    def test_start_is_reported_first(self):
        """With both bounds broken, the start is named."""
        with pytest.raises(InvalidTimestampError) as exc_info:
            generate_window_slots("yesterday", "tomorrow", 20, 5, 2)

        assert exc_info.value.which == "start"

    def test_end_before_start(self):
        with pytest.raises(InvalidWindowError):
            generate_window_slots("2024-11-25T10:00:00Z", "2024-11-25T09:00:00Z", 20, 5, 2)

    def test_window_checked_before_student_count(self):
        with pytest.raises(InvalidWindowError):
            generate_window_slots("2024-11-25T10:00:00Z", "2024-11-25T10:00:00Z", 20, 5, 0)

    def test_zero_students(self):
        with pytest.raises(InvalidStudentCountError):
            generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T10:00:00Z", 20, 5, 0)

    def test_non_positive_slot_duration(self):
        with pytest.raises(InvalidDurationError) as exc_info:
            generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T10:00:00Z", 0, 5, 1)

        assert exc_info.value.field == "slot_duration"

    def test_negative_break(self):
        with pytest.raises(InvalidDurationError) as exc_info:
            generate_window_slots("2024-11-25T09:00:00Z", "2024-11-25T10:00:00Z", 20, -5, 1)

        assert exc_info.value.field == "break_duration"

    def test_parse_instant_rejects_durations(self):
        """ISO durations parse but are not instants."""
        with pytest.raises(InvalidTimestampError):
            parse_instant("P1D", "start")


class TestPlacementInvariants:
    """
    The placement checks cannot fire after a passed capacity check.

    They are driven directly through place_slots to show they exist.
    """

    def test_slot_past_window_end(self):
        window = TimeWindow(start=_at(9, 0), end=_at(9, 30))

        with pytest.raises(SlotExceedsWindowError) as exc_info:
            WindowSlotGenerator.place_slots(window, 20, 5, 2)

        assert exc_info.value.index == 1
        assert isinstance(exc_info.value, WindowInvariantError)
        assert isinstance(exc_info.value, AssertionError)

    def test_break_past_window_end(self):
        window = TimeWindow(start=_at(9, 0), end=_at(9, 20))

        with pytest.raises(BreakExceedsWindowError) as exc_info:
            WindowSlotGenerator.place_slots(window, 20, 5, 2)

        assert exc_info.value.index == 0
        assert "Break after slot 1" in str(exc_info.value)

    def test_invariant_errors_are_not_request_errors(self):
        assert not issubclass(WindowInvariantError, SlotRequestError)
