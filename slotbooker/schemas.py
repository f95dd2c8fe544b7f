"""
Request models for the booking operations.

Field names follow the camelCase payloads of the HTTP layer; snake_case names
are accepted too.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, value):
        """Trim surrounding whitespace from string fields."""
        if isinstance(value, str):
            return value.strip()
        return value


class CreateBookingWindowRequest(_Request):
    """Publish a booking window for a team."""
    window_start_date: str = Field(alias="windowStartDate", min_length=1)
    window_end_date: str = Field(alias="windowEndDate", min_length=1)
    slot_duration: int = Field(alias="slotDuration")
    break_duration: int = Field(alias="breakDuration")
    number_of_students: int = Field(alias="numberOfStudents", ge=1)
    project_manager_id: str = Field(alias="projectManagerId", min_length=1)
    team_name: str = Field(alias="teamName", min_length=1)
    team_id: str = Field(alias="teamId", min_length=1)
    preview_slots: bool = Field(default=False, alias="previewSlots")


class CreateBookingRequest(_Request):
    """Book a published slot for a student."""
    project_manager_id: str = Field(alias="projectManagerId", min_length=1)
    project_manager_name: str = Field(alias="projectManagerName", min_length=1)
    student_id: str = Field(alias="studentId", min_length=1)
    student_name: str = Field(alias="studentName", min_length=1)
    student_email: str = Field(alias="studentEmail", min_length=3)
    team_id: str = Field(alias="teamId", min_length=1)
    start_date_time: str = Field(alias="startDateTime", min_length=1)
    end_date_time: str = Field(alias="endDateTime", min_length=1)
    event_id: str = Field(alias="eventId", min_length=1)

    @field_validator("student_email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        """Require a plausible email address."""
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError(f"Invalid email address: {value}")
        return value.lower()


class RescheduleBookingRequest(_Request):
    """Move an existing booking."""
    project_manager_id: str = Field(alias="projectManagerId", min_length=1)
    start_date_time: str = Field(alias="startDateTime", min_length=1)
    end_date_time: str = Field(alias="endDateTime", min_length=1)
    event_id: str = Field(alias="eventId", min_length=1)


class CancelBookingRequest(_Request):
    """Cancel a booking and hand the slot back to the team."""
    project_manager_id: str = Field(alias="projectManagerId", min_length=1)
    event_id: str = Field(alias="eventId", min_length=1)
    team_name: str = Field(alias="teamName", min_length=1)
    team_id: str = Field(alias="teamId", min_length=1)
