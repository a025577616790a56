from datetime import date, datetime
from typing import Any

from pydantic import Field, field_validator

from lms.models.routine import RoutineState, RoutineType
from lms.schemas.common import CamelModel
from lms.services.attendance_status import normalize_status
from lms.services.time_slots import normalize_day


class RoutineEntryIn(CamelModel):
    model_config = {**CamelModel.model_config, "extra": "allow"}

    id: str | None = Field(default=None, max_length=64)
    day: str
    time_slot: str = Field(min_length=1, max_length=50)
    subject: str = Field(min_length=1, max_length=200)
    course: str | None = Field(default=None, max_length=200)
    room_number: str | None = Field(default=None, max_length=50)
    department: str | None = Field(default=None, max_length=200)
    status: str | None = None
    attendance_status: str | None = None

    @field_validator("day")
    @classmethod
    def canonical_day(cls, value: str) -> str:
        day = normalize_day(value)
        if day is None:
            raise ValueError(f"Unrecognized day: {value!r}")
        return day

    @field_validator("status", "attendance_status")
    @classmethod
    def canonical_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        status = normalize_status(value)
        if status is None:
            raise ValueError(f"Unrecognized class status: {value!r}")
        return status.value

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class RoutinePublish(CamelModel):
    faculty_id: str = Field(min_length=1, max_length=36)
    entries: list[RoutineEntryIn] = Field(min_length=1, max_length=500)
    routine_type: RoutineType = RoutineType.weekly
    is_update: bool = False
    update_routine_id: str | None = Field(default=None, max_length=36)
    publish: bool = True


class RoutineOut(CamelModel):
    id: str
    faculty_id: str
    routine_type: RoutineType
    entries: list[dict[str, Any]]
    version: int
    previous_version_id: str | None = None
    is_latest: bool
    state: RoutineState
    start_date: date
    end_date: date
    created_by_id: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class RoutineHistoryItem(CamelModel):
    id: str
    version: int
    created_at: datetime
    updated_at: datetime | None = None
    routine_type: RoutineType
    entry_count: int


class RoutineResponse(CamelModel):
    routine: RoutineOut | None = None
    routine_history: list[RoutineHistoryItem] = Field(default_factory=list)


class RoutinePublishOut(CamelModel):
    success: bool = True
    routine_id: str
    version: int
    state: RoutineState
