from datetime import date, datetime

from pydantic import Field, field_validator

from lms.models.handover import HandoverStatus
from lms.schemas.common import CamelModel


class HandoverCreate(CamelModel):
    faculty_id: str = Field(min_length=1, max_length=36)
    class_id: str | None = Field(default=None, max_length=64)
    routine_id: str | None = Field(default=None, max_length=36)
    date_of_class: date
    time_slot: str = Field(min_length=1, max_length=50)
    subject: str = Field(min_length=1, max_length=200)
    course: str = Field(min_length=1, max_length=200)
    room_no: str | None = Field(default=None, max_length=50)
    reason: str = Field(min_length=3, max_length=1000)
    substitute_id: str = Field(min_length=1, max_length=36)

    @field_validator("reason", "subject", "course")
    @classmethod
    def strip_text(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Value cannot be blank")
        return trimmed


class HandoverDecision(CamelModel):
    status: str = Field(min_length=1, max_length=20)
    remarks: str | None = Field(default=None, max_length=1000)
    substitute_id: str | None = Field(default=None, max_length=36)


class HandoverOut(CamelModel):
    id: str
    faculty_id: str
    faculty_name: str | None = None
    class_id: str | None = None
    routine_id: str | None = None
    date_of_class: date
    time_slot: str
    subject: str
    course: str
    room_no: str | None = None
    reason: str
    substitute_id: str
    substitute_name: str | None = None
    status: HandoverStatus
    remarks: str | None = None
    decided_by_id: str | None = None
    decided_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class HandoverCreateOut(CamelModel):
    success: bool = True
    message: str
    handover: HandoverOut


class AvailabilityConflictOut(CamelModel):
    conflict_type: str
    subject: str
    course: str
    day: str
    time_slot: str
    is_handover: bool
    handover_id: str | None = None


class AvailabilityOut(CamelModel):
    available: bool
    conflict: AvailabilityConflictOut | None = None


class SubstituteCandidateOut(CamelModel):
    id: str
    name: str
    email: str
    department: str
    designation: str
    subjects_known: list[str]
    qualified: bool
    available: bool
    conflict: AvailabilityConflictOut | None = None
