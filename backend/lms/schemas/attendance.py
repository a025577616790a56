from datetime import date, datetime

from pydantic import AliasChoices, Field

from lms.schemas.common import CamelModel
from lms.schemas.faculty import FacultyOut
from lms.services.attendance_status import ClassStatus


class TrackedClassOut(CamelModel):
    id: str
    faculty_id: str
    faculty_name: str
    class_date: date = Field(alias="date")
    subject: str
    course: str
    department: str
    room_number: str
    time_slot: str
    start_time: str
    end_time: str
    status: ClassStatus
    routine_id: str | None = None
    is_substitute_class: bool = False
    handover_id: str | None = None
    substitute_id: str | None = None
    substitute_name: str | None = None
    original_faculty_id: str | None = None
    original_faculty_name: str | None = None
    marked_by_role: str | None = None
    absent_students: list[str] = Field(default_factory=list)
    last_updated: datetime | None = None


class FacultyScheduleOut(CamelModel):
    success: bool = True
    faculty_id: str
    class_date: date = Field(alias="date")
    grace_minutes: int
    classes: list[TrackedClassOut]


class DepartmentScheduleOut(CamelModel):
    class_date: date = Field(alias="date")
    grace_minutes: int
    classes: list[TrackedClassOut]
    faculties: list[FacultyOut]


class AttendanceMark(CamelModel):
    faculty_id: str = Field(min_length=1, max_length=36)
    entry_id: str = Field(min_length=1, max_length=64, validation_alias=AliasChoices("entryId", "classId", "entry_id"))
    class_date: date = Field(alias="date")
    status: str = Field(min_length=1, max_length=20)
    absent_students: list[str] = Field(default_factory=list, max_length=500)


class AttendanceRecordOut(CamelModel):
    id: str
    faculty_id: str
    class_date: date = Field(alias="date")
    entry_id: str
    routine_id: str | None = None
    subject: str | None = None
    time_slot: str | None = None
    status: str
    absent_students: list[str] = Field(default_factory=list)
    marked_by_id: str | None = None
    marked_by_role: str
    created_at: datetime
    updated_at: datetime | None = None


class AttendanceMarkOut(CamelModel):
    success: bool = True
    message: str
    record: AttendanceRecordOut


class MissedClassesOut(CamelModel):
    count: int
    missed_classes: list[TrackedClassOut]


class AbsentRecordOut(CamelModel):
    id: str
    class_date: date = Field(alias="date")
    faculty_id: str
    faculty_name: str | None = None
    routine_id: str | None = None
    entry_id: str
    subject: str | None = None
    absent_students: list[str]
    recorded_by: str
    recorded_at: datetime


class FacultyStatisticsOut(CamelModel):
    faculty_id: str
    faculty_name: str
    start_date: date
    end_date: date
    total_classes: int
    taken_classes: int
    missed_classes: int
    handover_classes: int
    absent_classes: int
    pending_classes: int
    attendance_percentage: float
    classes: list[TrackedClassOut]


class AbsentRecordsOut(CamelModel):
    records: list[AbsentRecordOut]
