"""Routine versioning.

Every faculty member has a chain of routine versions linked through
``previous_version_id``. Exactly one published version per faculty carries
``is_latest``; replacing it is a single transaction that clears the flag on
the old row with a conditional update and inserts the successor.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lms.core.clock import utc_today
from lms.core.config import get_settings
from lms.core.exceptions import ConflictError, ResourceNotFoundError, ValidationFailedError
from lms.db.base import utcnow
from lms.models.attendance import AttendanceRecord
from lms.models.faculty import Faculty
from lms.models.notification import NotificationType
from lms.models.routine import Routine, RoutineState, RoutineType
from lms.models.user import User
from lms.services.attendance_status import normalize_status
from lms.services.audit import log_activity
from lms.services.notifications import create_notification
from lms.services.time_slots import matches_day

logger = logging.getLogger(__name__)


def routine_window(routine_type: RoutineType, *, start: date | None = None) -> tuple[date, date]:
    settings = get_settings()
    start = start or utc_today()
    days = settings.weekly_routine_days if routine_type == RoutineType.weekly else settings.daily_routine_days
    return start, start + timedelta(days=days)


def prepare_entries(entries: list[dict]) -> list[dict]:
    prepared: list[dict] = []
    for raw in entries:
        entry = dict(raw)
        entry["id"] = str(entry.get("id") or uuid.uuid4().hex)
        entry["status"] = entry.get("status") or "pending"
        entry["attendanceStatus"] = entry.get("attendanceStatus") or "pending"
        prepared.append(entry)
    return prepared


def get_latest(db: Session, faculty_id: str) -> Routine | None:
    return db.execute(
        select(Routine)
        .where(Routine.faculty_id == faculty_id, Routine.is_latest.is_(True))
        .order_by(Routine.version.desc())
        .limit(1)
    ).scalar_one_or_none()


def get_routine(db: Session, routine_id: str) -> Routine:
    routine = db.get(Routine, routine_id)
    if routine is None:
        raise ResourceNotFoundError("Routine", routine_id)
    return routine


def list_history(db: Session, faculty_id: str, *, exclude_id: str | None = None) -> list[Routine]:
    query = select(Routine).where(
        Routine.faculty_id == faculty_id,
        Routine.state != RoutineState.draft,
    )
    if exclude_id:
        query = query.where(Routine.id != exclude_id)
    return list(db.execute(query.order_by(Routine.version.desc(), Routine.created_at.desc())).scalars())


def _supersede(db: Session, current: Routine) -> None:
    result = db.execute(
        update(Routine)
        .where(Routine.id == current.id, Routine.is_latest.is_(True))
        .values(is_latest=False, state=RoutineState.superseded, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        raise ConflictError(
            "Routine was superseded by another update",
            details={"routineId": current.id},
        )


def _promote(db: Session, routine: Routine, previous: Routine | None) -> None:
    if previous is not None:
        _supersede(db, previous)
        routine.version = previous.version + 1
        routine.previous_version_id = previous.id
    else:
        routine.version = 1
        routine.previous_version_id = None
    routine.is_latest = True
    routine.state = RoutineState.published
    if routine not in db:
        db.add(routine)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "Another routine version was published concurrently",
            details={"facultyId": routine.faculty_id},
        ) from exc


def _resolve_update_target(db: Session, faculty_id: str, update_routine_id: str) -> Routine | None:
    target = db.get(Routine, update_routine_id)
    if target is None:
        logger.warning("Routine %s marked for update was not found; publishing a fresh version", update_routine_id)
        return None
    if target.faculty_id != faculty_id:
        raise ValidationFailedError(
            "Routine belongs to a different faculty member",
            details={"routineId": update_routine_id},
        )
    if not target.is_latest:
        latest = get_latest(db, faculty_id)
        raise ConflictError(
            "Routine has already been superseded",
            details={"routineId": update_routine_id, "latestRoutineId": latest.id if latest else None},
        )
    return target


def _notify_published(db: Session, routine: Routine, *, is_update: bool, actor: User | None) -> None:
    if is_update:
        title = "Routine Updated"
        description = (
            f"Your class routine has been updated (version {routine.version}). Please check your schedule."
        )
    else:
        title = "New Routine Published"
        description = "Your class routine has been published. Please check your schedule."
    create_notification(
        db,
        user_id=routine.faculty_id,
        title=title,
        description=description,
        notification_type=NotificationType.routine,
        related_id=routine.id,
        sender_id=actor.id if actor is not None else None,
    )


def publish_routine(
    db: Session,
    *,
    faculty_id: str,
    entries: list[dict],
    routine_type: RoutineType = RoutineType.weekly,
    actor: User | None = None,
    is_update: bool = False,
    update_routine_id: str | None = None,
    publish: bool = True,
) -> Routine:
    if not faculty_id or not entries:
        raise ValidationFailedError("Missing required fields", details={"required": ["facultyId", "entries"]})
    if db.get(Faculty, faculty_id) is None:
        raise ResourceNotFoundError("Faculty", faculty_id)

    start_date, end_date = routine_window(routine_type)
    routine = Routine(
        faculty_id=faculty_id,
        routine_type=routine_type,
        entries=prepare_entries(entries),
        start_date=start_date,
        end_date=end_date,
        created_by_id=actor.id if actor is not None else None,
        is_latest=False,
        state=RoutineState.draft,
    )

    previous: Routine | None = None
    if is_update and update_routine_id:
        previous = _resolve_update_target(db, faculty_id, update_routine_id)
    if previous is None:
        previous = get_latest(db, faculty_id)

    if not publish:
        routine.version = (previous.version + 1) if previous is not None else 1
        db.add(routine)
        db.flush()
        log_activity(db, user=actor, action="routine.draft_saved", entity_type="routine", entity_id=routine.id)
        return routine

    _promote(db, routine, previous)
    _notify_published(db, routine, is_update=is_update, actor=actor)
    log_activity(
        db,
        user=actor,
        action="routine.published",
        entity_type="routine",
        entity_id=routine.id,
        details={"facultyId": faculty_id, "version": routine.version},
    )
    return routine


def publish_draft(db: Session, *, routine_id: str, actor: User | None = None) -> Routine:
    routine = get_routine(db, routine_id)
    if routine.state != RoutineState.draft:
        raise ConflictError("Only draft routines can be published", details={"state": routine.state.value})

    previous = get_latest(db, routine.faculty_id)
    routine.start_date, routine.end_date = routine_window(routine.routine_type)
    _promote(db, routine, previous)
    _notify_published(db, routine, is_update=previous is not None, actor=actor)
    log_activity(
        db,
        user=actor,
        action="routine.published",
        entity_type="routine",
        entity_id=routine.id,
        details={"facultyId": routine.faculty_id, "version": routine.version, "fromDraft": True},
    )
    return routine


def published_versions(db: Session, faculty_ids: list[str] | None = None) -> dict[str, list[Routine]]:
    """Non-draft versions grouped by faculty, newest first."""
    query = select(Routine).where(Routine.state != RoutineState.draft)
    if faculty_ids is not None:
        query = query.where(Routine.faculty_id.in_(faculty_ids))
    grouped: dict[str, list[Routine]] = {}
    for routine in db.execute(query.order_by(Routine.version.desc(), Routine.created_at.desc())).scalars():
        grouped.setdefault(routine.faculty_id, []).append(routine)
    return grouped


def routine_in_force(versions: list[Routine], class_date: date) -> Routine | None:
    """Newest version whose validity window covers ``class_date``."""
    for routine in versions:
        if routine.start_date <= class_date <= routine.end_date:
            return routine
    return None


def routine_on(db: Session, faculty_id: str, class_date: date) -> Routine | None:
    return routine_in_force(published_versions(db, [faculty_id]).get(faculty_id, []), class_date)


def overlay_attendance(db: Session, routine: Routine, today: date) -> list[dict]:
    """Copy of the routine entries with today's attendance merged in."""
    records = {
        record.entry_id: record
        for record in db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.faculty_id == routine.faculty_id,
                AttendanceRecord.class_date == today,
            )
        ).scalars()
    }
    entries: list[dict] = []
    for raw in routine.entries or []:
        entry = dict(raw)
        record = records.get(str(entry.get("id")))
        if record is not None and matches_day(entry.get("day"), today):
            status = normalize_status(record.status)
            value = status.value if status is not None else record.status
            entry["status"] = value
            entry["attendanceStatus"] = value
            entry["lastUpdated"] = (record.updated_at or record.created_at).isoformat()
        entries.append(entry)
    return entries


def repair_latest_flags(db: Session) -> int:
    """Clear ``is_latest`` on all but the newest flagged row per faculty."""
    flagged = db.execute(
        select(Routine)
        .where(Routine.is_latest.is_(True))
        .order_by(Routine.faculty_id, Routine.version.desc(), Routine.created_at.desc())
    ).scalars()
    seen: set[str] = set()
    repaired = 0
    for routine in flagged:
        if routine.faculty_id not in seen:
            seen.add(routine.faculty_id)
            continue
        routine.is_latest = False
        routine.state = RoutineState.superseded
        repaired += 1
    if repaired:
        db.flush()
    return repaired
