from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.api.deps import ensure_self_or_staff, get_clock, get_current_user, get_db, require_roles
from lms.core.clock import InstituteClock
from lms.core.config import get_settings
from lms.models.faculty import Faculty
from lms.models.user import User, UserRole
from lms.schemas.attendance import (
    AbsentRecordOut,
    AbsentRecordsOut,
    AttendanceMark,
    AttendanceMarkOut,
    AttendanceRecordOut,
    DepartmentScheduleOut,
    FacultyScheduleOut,
    FacultyStatisticsOut,
    MissedClassesOut,
    TrackedClassOut,
)
from lms.services import attendance as attendance_service

router = APIRouter()
staff_only = require_roles(UserRole.hod, UserRole.admin)


@router.get("/faculty/class-attendance-tracking", response_model=FacultyScheduleOut)
def faculty_schedule(
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    class_date: date | None = Query(default=None, alias="date"),
    current_user: User = Depends(get_current_user),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> FacultyScheduleOut:
    faculty_id = faculty_id or current_user.id
    ensure_self_or_staff(current_user, faculty_id)
    class_date = class_date or clock.today()
    classes = attendance_service.track_faculty_day(db, faculty_id=faculty_id, class_date=class_date, now=clock.now())
    return FacultyScheduleOut(
        faculty_id=faculty_id,
        class_date=class_date,
        grace_minutes=get_settings().attendance_grace_minutes,
        classes=[TrackedClassOut.model_validate(item) for item in classes],
    )


@router.post(
    "/faculty/class-attendance-tracking",
    response_model=AttendanceMarkOut,
    status_code=status.HTTP_201_CREATED,
)
def mark_attendance(
    payload: AttendanceMark,
    current_user: User = Depends(require_roles(UserRole.faculty)),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> AttendanceMarkOut:
    record = attendance_service.mark_attendance(
        db,
        actor=current_user,
        faculty_id=payload.faculty_id,
        entry_id=payload.entry_id,
        class_date=payload.class_date,
        status=payload.status,
        absent_students=payload.absent_students,
        now=clock.now(),
    )
    db.commit()
    db.refresh(record)
    return AttendanceMarkOut(
        message="Attendance status updated successfully.",
        record=AttendanceRecordOut.model_validate(record),
    )


@router.get("/hod/class-attendance-tracking", response_model=DepartmentScheduleOut)
def department_schedule(
    class_date: date | None = Query(default=None, alias="date"),
    department: str | None = Query(default=None),
    current_user: User = Depends(staff_only),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> DepartmentScheduleOut:
    class_date = class_date or clock.today()
    classes = attendance_service.track_all_faculty_day(
        db,
        class_date=class_date,
        now=clock.now(),
        department=department,
    )
    faculty_query = select(Faculty).order_by(Faculty.name)
    if department:
        faculty_query = faculty_query.where(Faculty.department == department)
    return DepartmentScheduleOut(
        class_date=class_date,
        grace_minutes=get_settings().attendance_grace_minutes,
        classes=[TrackedClassOut.model_validate(item) for item in classes],
        faculties=list(db.execute(faculty_query).scalars()),
    )


@router.post("/hod/class-attendance-tracking", response_model=AttendanceMarkOut)
def override_attendance(
    payload: AttendanceMark,
    current_user: User = Depends(staff_only),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> AttendanceMarkOut:
    record = attendance_service.override_attendance(
        db,
        actor=current_user,
        faculty_id=payload.faculty_id,
        entry_id=payload.entry_id,
        class_date=payload.class_date,
        status=payload.status,
        absent_students=payload.absent_students,
        now=clock.now(),
    )
    db.commit()
    db.refresh(record)
    return AttendanceMarkOut(
        message="Attendance status updated successfully.",
        record=AttendanceRecordOut.model_validate(record),
    )


@router.get("/attendance/missed", response_model=MissedClassesOut)
def missed_classes(
    include_history: bool = Query(default=False, alias="all"),
    current_user: User = Depends(staff_only),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> MissedClassesOut:
    classes = attendance_service.missed_classes(db, now=clock.now(), include_history=include_history)
    return MissedClassesOut(
        count=len(classes),
        missed_classes=[TrackedClassOut.model_validate(item) for item in classes],
    )


@router.get("/hod/absent-records", response_model=AbsentRecordsOut)
def absent_records(
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
) -> AbsentRecordsOut:
    records = attendance_service.list_absent_records(
        db,
        faculty_id=faculty_id,
        start_date=start_date,
        end_date=end_date,
    )
    return AbsentRecordsOut(records=[AbsentRecordOut.model_validate(item) for item in records])


@router.get("/hod/faculty-statistics", response_model=FacultyStatisticsOut)
def faculty_statistics(
    faculty_id: str = Query(alias="facultyId"),
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    current_user: User = Depends(get_current_user),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> FacultyStatisticsOut:
    ensure_self_or_staff(current_user, faculty_id)
    stats = attendance_service.faculty_statistics(
        db,
        faculty_id=faculty_id,
        start_date=start_date,
        end_date=end_date,
        now=clock.now(),
    )
    return FacultyStatisticsOut(
        faculty_id=stats.faculty_id,
        faculty_name=stats.faculty_name,
        start_date=stats.start_date,
        end_date=stats.end_date,
        total_classes=stats.total_classes,
        taken_classes=stats.taken_classes,
        missed_classes=stats.missed_classes,
        handover_classes=stats.handover_classes,
        absent_classes=stats.absent_classes,
        pending_classes=stats.pending_classes,
        attendance_percentage=stats.attendance_percentage,
        classes=[TrackedClassOut.model_validate(item) for item in stats.classes],
    )
