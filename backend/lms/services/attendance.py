"""Daily class tracking, attendance marking and attendance reporting.

Classes for a day are rebuilt on every read from the routine version in
force on that date, today's attendance records and the approved handovers.
The only persisted state is what a user explicitly marks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.core.config import get_settings
from lms.core.exceptions import (
    AuthorizationFailedError,
    ConflictError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from lms.db.base import utcnow
from lms.models.attendance import AbsentRecord, AttendanceRecord
from lms.models.faculty import Faculty
from lms.models.handover import HandoverRequest, HandoverStatus
from lms.models.notification import NotificationType
from lms.models.user import User, UserRole
from lms.services.attendance_status import MARKABLE_STATUSES, ClassStatus, derive_status, normalize_status
from lms.services.audit import log_activity
from lms.services.notifications import create_notification
from lms.services.routines import published_versions, routine_in_force
from lms.services.time_slots import format_minutes, matches_day, parse_time_slot

logger = logging.getLogger(__name__)

HANDOVER_ENTRY_PREFIX = "handover-"
MAX_REPORT_DAYS = 366


@dataclass
class TrackedClass:
    id: str
    faculty_id: str
    faculty_name: str
    class_date: date
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
    absent_students: list[str] = field(default_factory=list)
    last_updated: datetime | None = None


@dataclass
class _Facts:
    """Everything needed to derive statuses over a date range."""

    faculty: dict[str, Faculty]
    versions: dict[str, list]
    records: dict[tuple[str, date, str], AttendanceRecord]
    handovers: list[HandoverRequest]


def _load_facts(db: Session, start: date, end: date, faculty_id: str | None = None) -> _Facts:
    faculty_query = select(Faculty)
    if faculty_id:
        faculty_query = faculty_query.where(Faculty.id == faculty_id)
    faculty = {item.id: item for item in db.execute(faculty_query.order_by(Faculty.name)).scalars()}

    record_query = select(AttendanceRecord).where(
        AttendanceRecord.class_date >= start,
        AttendanceRecord.class_date <= end,
    )
    handover_query = select(HandoverRequest).where(
        HandoverRequest.status == HandoverStatus.approved,
        HandoverRequest.date_of_class >= start,
        HandoverRequest.date_of_class <= end,
    )
    if faculty_id:
        record_query = record_query.where(AttendanceRecord.faculty_id == faculty_id)
        handover_query = handover_query.where(
            (HandoverRequest.faculty_id == faculty_id) | (HandoverRequest.substitute_id == faculty_id)
        )

    records = {
        (record.faculty_id, record.class_date, record.entry_id): record
        for record in db.execute(record_query).scalars()
    }
    handovers = list(db.execute(handover_query.order_by(HandoverRequest.created_at)).scalars())
    versions = published_versions(db, list(faculty))
    return _Facts(faculty=faculty, versions=versions, records=records, handovers=handovers)


def _slot(text: str | None):
    settings = get_settings()
    return parse_time_slot(
        text,
        default_duration_minutes=settings.default_class_duration_minutes,
        fallback_start=settings.fallback_class_start,
    )


def _handover_for_entry(handovers: list[HandoverRequest], faculty_id: str, entry: dict) -> HandoverRequest | None:
    entry_id = str(entry.get("id") or "")
    for handover in handovers:
        if handover.faculty_id != faculty_id:
            continue
        if handover.class_id:
            if handover.class_id == entry_id:
                return handover
        elif handover.time_slot == entry.get("timeSlot") and handover.subject == entry.get("subject"):
            return handover
    return None


def _classes_for(facts: _Facts, faculty: Faculty, class_date: date, now: datetime) -> list[TrackedClass]:
    grace = get_settings().attendance_grace_minutes
    day_handovers = [item for item in facts.handovers if item.date_of_class == class_date]
    classes: list[TrackedClass] = []

    routine = routine_in_force(facts.versions.get(faculty.id, []), class_date)
    for entry in (routine.entries or []) if routine is not None else []:
        if not matches_day(entry.get("day"), class_date):
            continue
        entry_id = str(entry.get("id") or "")
        slot = _slot(entry.get("timeSlot"))
        record = facts.records.get((faculty.id, class_date, entry_id))
        handover = _handover_for_entry(day_handovers, faculty.id, entry)
        status = derive_status(
            slot=slot,
            class_date=class_date,
            now=now,
            grace_minutes=grace,
            record_status=record.status if record is not None else None,
            entry_status=entry.get("attendanceStatus") or entry.get("status"),
            handover_status=ClassStatus.handed_over if handover is not None else entry.get("handoverStatus"),
            is_substitute_class=bool(entry.get("handover")),
        )
        classes.append(
            TrackedClass(
                id=entry_id,
                faculty_id=faculty.id,
                faculty_name=faculty.name,
                class_date=class_date,
                subject=entry.get("subject") or "N/A",
                course=entry.get("course") or "N/A",
                department=entry.get("department") or faculty.department,
                room_number=entry.get("roomNumber") or entry.get("roomNo") or "",
                time_slot=entry.get("timeSlot") or "",
                start_time=format_minutes(slot.start_minutes),
                end_time=format_minutes(slot.end_minutes),
                status=status,
                routine_id=routine.id,
                handover_id=handover.id if handover is not None else None,
                substitute_id=handover.substitute_id if handover is not None else None,
                substitute_name=handover.substitute_name if handover is not None else None,
                marked_by_role=record.marked_by_role if record is not None else None,
                absent_students=list(record.absent_students or []) if record is not None else [],
                last_updated=(record.updated_at or record.created_at) if record is not None else None,
            )
        )

    for handover in day_handovers:
        if handover.substitute_id != faculty.id:
            continue
        entry_id = f"{HANDOVER_ENTRY_PREFIX}{handover.id}"
        slot = _slot(handover.time_slot)
        record = facts.records.get((faculty.id, class_date, entry_id))
        classes.append(
            TrackedClass(
                id=entry_id,
                faculty_id=faculty.id,
                faculty_name=faculty.name,
                class_date=class_date,
                subject=handover.subject,
                course=handover.course,
                department=faculty.department,
                room_number=handover.room_no or "TBD",
                time_slot=handover.time_slot,
                start_time=format_minutes(slot.start_minutes),
                end_time=format_minutes(slot.end_minutes),
                status=derive_status(
                    slot=slot,
                    class_date=class_date,
                    now=now,
                    grace_minutes=grace,
                    record_status=record.status if record is not None else None,
                    is_substitute_class=True,
                ),
                routine_id=handover.routine_id,
                is_substitute_class=True,
                handover_id=handover.id,
                original_faculty_id=handover.faculty_id,
                original_faculty_name=handover.faculty_name,
                marked_by_role=record.marked_by_role if record is not None else None,
                absent_students=list(record.absent_students or []) if record is not None else [],
                last_updated=(record.updated_at or record.created_at) if record is not None else None,
            )
        )

    classes.sort(key=lambda item: (item.start_time, item.subject))
    return classes


def track_faculty_day(db: Session, *, faculty_id: str, class_date: date, now: datetime) -> list[TrackedClass]:
    facts = _load_facts(db, class_date, class_date, faculty_id=faculty_id)
    faculty = facts.faculty.get(faculty_id)
    if faculty is None:
        raise ResourceNotFoundError("Faculty", faculty_id)
    return _classes_for(facts, faculty, class_date, now)


def track_all_faculty_day(
    db: Session,
    *,
    class_date: date,
    now: datetime,
    department: str | None = None,
) -> list[TrackedClass]:
    facts = _load_facts(db, class_date, class_date)
    classes: list[TrackedClass] = []
    for faculty in facts.faculty.values():
        if department and faculty.department != department:
            continue
        classes.extend(_classes_for(facts, faculty, class_date, now))
    classes.sort(key=lambda item: (item.start_time, item.faculty_name, item.subject))
    return classes


def _find_class(db: Session, *, faculty_id: str, entry_id: str, class_date: date, now: datetime) -> TrackedClass:
    for tracked in track_faculty_day(db, faculty_id=faculty_id, class_date=class_date, now=now):
        if tracked.id == entry_id:
            return tracked
    raise ResourceNotFoundError("Class", entry_id)


def _sync_absentees(db: Session, tracked: TrackedClass, record: AttendanceRecord, recorded_by: str) -> None:
    """Keep the single absentee row of a class in step with its attendance record."""
    absent = db.execute(
        select(AbsentRecord).where(
            AbsentRecord.faculty_id == tracked.faculty_id,
            AbsentRecord.class_date == tracked.class_date,
            AbsentRecord.entry_id == tracked.id,
        )
    ).scalar_one_or_none()
    if normalize_status(record.status) != ClassStatus.taken or not record.absent_students:
        if absent is not None:
            db.delete(absent)
        return

    if absent is None:
        absent = AbsentRecord(
            class_date=tracked.class_date,
            faculty_id=tracked.faculty_id,
            entry_id=tracked.id,
        )
        db.add(absent)
    absent.faculty_name = tracked.faculty_name
    absent.routine_id = tracked.routine_id
    absent.subject = tracked.subject
    absent.absent_students = list(record.absent_students)
    absent.recorded_by = recorded_by
    absent.recorded_at = utcnow()


def _parse_markable(status: str | ClassStatus) -> ClassStatus:
    parsed = normalize_status(status)
    if parsed not in MARKABLE_STATUSES:
        raise ValidationFailedError(
            "Invalid attendance status",
            details={"allowed": sorted(item.value for item in MARKABLE_STATUSES)},
        )
    return parsed


def mark_attendance(
    db: Session,
    *,
    actor: User,
    faculty_id: str,
    entry_id: str,
    class_date: date,
    status: str | ClassStatus,
    now: datetime,
    absent_students: list[str] | None = None,
) -> AttendanceRecord:
    """Faculty marking their own class while its window is open."""
    if actor.role == UserRole.faculty and actor.id != faculty_id:
        raise AuthorizationFailedError("Faculty can only mark attendance for their own classes")
    parsed = _parse_markable(status)
    tracked = _find_class(db, faculty_id=faculty_id, entry_id=entry_id, class_date=class_date, now=now)

    existing = db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.faculty_id == faculty_id,
            AttendanceRecord.class_date == class_date,
            AttendanceRecord.entry_id == entry_id,
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError(
            "Attendance has already been marked for this class",
            details={"status": existing.status, "markedByRole": existing.marked_by_role},
        )
    if tracked.status not in (ClassStatus.window_open, ClassStatus.handover):
        raise ConflictError(
            "Attendance can only be marked while the class window is open",
            details={"status": tracked.status.value},
        )
    if tracked.status == ClassStatus.handover and not tracked.is_substitute_class:
        raise ConflictError("Class has been handed over", details={"status": tracked.status.value})

    record = AttendanceRecord(
        faculty_id=faculty_id,
        class_date=class_date,
        entry_id=entry_id,
        routine_id=tracked.routine_id,
        subject=tracked.subject,
        time_slot=tracked.time_slot,
        status=parsed.value,
        absent_students=list(absent_students or []),
        marked_by_id=actor.id,
        marked_by_role=UserRole.faculty.value,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "Attendance has already been marked for this class",
            details={"entryId": entry_id, "date": class_date.isoformat()},
        ) from exc
    _sync_absentees(db, tracked, record, recorded_by="Faculty")
    log_activity(
        db,
        user=actor,
        action="attendance.marked",
        entity_type="attendance",
        entity_id=record.id,
        details={"entryId": entry_id, "status": parsed.value},
    )
    return record


def override_attendance(
    db: Session,
    *,
    actor: User,
    faculty_id: str,
    entry_id: str,
    class_date: date,
    status: str | ClassStatus,
    now: datetime,
    absent_students: list[str] | None = None,
) -> AttendanceRecord:
    """HOD correction: creates or replaces the record and tells the faculty."""
    parsed = _parse_markable(status)
    tracked = _find_class(db, faculty_id=faculty_id, entry_id=entry_id, class_date=class_date, now=now)

    record = db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.faculty_id == faculty_id,
            AttendanceRecord.class_date == class_date,
            AttendanceRecord.entry_id == entry_id,
        )
    ).scalar_one_or_none()
    previous_status = record.status if record is not None else tracked.status.value
    if record is None:
        record = AttendanceRecord(
            faculty_id=faculty_id,
            class_date=class_date,
            entry_id=entry_id,
            routine_id=tracked.routine_id,
            subject=tracked.subject,
            time_slot=tracked.time_slot,
        )
        db.add(record)
    record.status = parsed.value
    record.absent_students = list(absent_students or [])
    record.marked_by_id = actor.id
    record.marked_by_role = UserRole.hod.value
    db.flush()

    _sync_absentees(db, tracked, record, recorded_by="HOD")
    create_notification(
        db,
        user_id=faculty_id,
        title="Attendance Updated by HOD",
        description=(
            f'Your attendance for the class on {class_date.isoformat()} ({tracked.subject}, {tracked.time_slot}) '
            f'was updated to "{parsed.value}" by your HOD.'
        ),
        notification_type=NotificationType.attendance,
        related_id=record.id,
        sender_id=actor.id,
    )
    log_activity(
        db,
        user=actor,
        action="attendance.overridden",
        entity_type="attendance",
        entity_id=record.id,
        details={"entryId": entry_id, "from": previous_status, "to": parsed.value},
    )
    return record


def missed_classes(db: Session, *, now: datetime, include_history: bool = False) -> list[TrackedClass]:
    """Classes whose window closed without being taken or handed over.

    Only today by default; ``include_history`` walks back over the configured
    lookback period, newest day first.
    """
    today = now.date()
    start = today
    if include_history:
        start = today - timedelta(days=get_settings().missed_class_lookback_days - 1)
    facts = _load_facts(db, start, today)

    missed: list[TrackedClass] = []
    class_date = today
    while class_date >= start:
        for faculty in facts.faculty.values():
            missed.extend(
                tracked
                for tracked in _classes_for(facts, faculty, class_date, now)
                if tracked.status == ClassStatus.missed
            )
        class_date -= timedelta(days=1)
    return missed


def list_absent_records(
    db: Session,
    *,
    faculty_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[AbsentRecord]:
    query = select(AbsentRecord)
    if faculty_id:
        query = query.where(AbsentRecord.faculty_id == faculty_id)
    if start_date:
        query = query.where(AbsentRecord.class_date >= start_date)
    if end_date:
        query = query.where(AbsentRecord.class_date <= end_date)
    return list(db.execute(query.order_by(AbsentRecord.class_date.desc(), AbsentRecord.recorded_at.desc())).scalars())


@dataclass
class FacultyStatistics:
    faculty_id: str
    faculty_name: str
    start_date: date
    end_date: date
    total_classes: int = 0
    taken_classes: int = 0
    missed_classes: int = 0
    handover_classes: int = 0
    absent_classes: int = 0
    pending_classes: int = 0
    classes: list[TrackedClass] = field(default_factory=list)

    @property
    def attendance_percentage(self) -> float:
        if not self.total_classes:
            return 0.0
        return round(self.taken_classes / self.total_classes * 100, 2)


def faculty_statistics(
    db: Session,
    *,
    faculty_id: str,
    start_date: date,
    end_date: date,
    now: datetime,
) -> FacultyStatistics:
    if end_date < start_date:
        raise ValidationFailedError("End date must not be before start date")
    if (end_date - start_date).days >= MAX_REPORT_DAYS:
        raise ValidationFailedError(f"Date range cannot exceed {MAX_REPORT_DAYS} days")

    facts = _load_facts(db, start_date, end_date, faculty_id=faculty_id)
    faculty = facts.faculty.get(faculty_id)
    if faculty is None:
        raise ResourceNotFoundError("Faculty", faculty_id)

    stats = FacultyStatistics(
        faculty_id=faculty.id,
        faculty_name=faculty.name,
        start_date=start_date,
        end_date=end_date,
    )
    class_date = start_date
    while class_date <= end_date:
        for tracked in _classes_for(facts, faculty, class_date, now):
            stats.classes.append(tracked)
            stats.total_classes += 1
            if tracked.status == ClassStatus.taken:
                stats.taken_classes += 1
            elif tracked.status == ClassStatus.missed:
                stats.missed_classes += 1
            elif tracked.status in (ClassStatus.handover, ClassStatus.handed_over):
                stats.handover_classes += 1
            elif tracked.status == ClassStatus.absent:
                stats.absent_classes += 1
            else:
                stats.pending_classes += 1
        class_date += timedelta(days=1)
    return stats
