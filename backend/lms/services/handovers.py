from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from lms.core.config import get_settings
from lms.core.exceptions import (
    AuthorizationFailedError,
    ConflictError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from lms.db.base import utcnow
from lms.models.faculty import Faculty
from lms.models.handover import HandoverRequest, HandoverStatus
from lms.models.notification import NotificationType
from lms.models.user import User, UserRole
from lms.services.audit import log_activity
from lms.services.notifications import create_notification, notify_roles
from lms.services.routines import routine_on
from lms.services.time_slots import TimeSlot, day_name, matches_day, parse_time_slot

logger = logging.getLogger(__name__)

REGULAR_CLASS = "regular_class"
HANDOVER_ASSIGNMENT = "handover_assignment"
APPROVED_HANDOVER = "approved_handover"


@dataclass(frozen=True)
class AvailabilityConflict:
    conflict_type: str
    subject: str
    course: str
    day: str
    time_slot: str
    is_handover: bool
    handover_id: str | None = None

    def as_dict(self) -> dict:
        return {
            "conflictType": self.conflict_type,
            "subject": self.subject,
            "course": self.course,
            "day": self.day,
            "timeSlot": self.time_slot,
            "isHandover": self.is_handover,
            "handoverId": self.handover_id,
        }


@dataclass(frozen=True)
class SubstituteCandidate:
    faculty: Faculty
    qualified: bool
    available: bool
    conflict: AvailabilityConflict | None = None


def parse_handover_status(raw: str | HandoverStatus) -> HandoverStatus:
    if isinstance(raw, HandoverStatus):
        return raw
    wanted = (raw or "").strip().lower()
    for status in HandoverStatus:
        if status.value.lower() == wanted:
            return status
    raise ValidationFailedError(
        "Invalid handover status",
        details={"allowed": [status.value for status in HandoverStatus]},
    )


def _slot(text: str | None) -> TimeSlot:
    settings = get_settings()
    return parse_time_slot(
        text,
        default_duration_minutes=settings.default_class_duration_minutes,
        fallback_start=settings.fallback_class_start,
    )


def _handover_conflicts(
    db: Session,
    *,
    substitute_id: str,
    class_date: date,
    slot: TimeSlot,
    status: HandoverStatus,
    exclude_handover_id: str | None,
) -> HandoverRequest | None:
    query = select(HandoverRequest).where(
        HandoverRequest.substitute_id == substitute_id,
        HandoverRequest.date_of_class == class_date,
        HandoverRequest.status == status,
    )
    if exclude_handover_id:
        query = query.where(HandoverRequest.id != exclude_handover_id)
    for handover in db.execute(query.order_by(HandoverRequest.created_at)).scalars():
        if _slot(handover.time_slot).overlaps(slot):
            return handover
    return None


def check_substitute_availability(
    db: Session,
    *,
    substitute_id: str,
    class_date: date,
    time_slot: str,
    exclude_handover_id: str | None = None,
) -> AvailabilityConflict | None:
    """First conflict found for the substitute at that date and slot, if any."""
    wanted = _slot(time_slot)
    weekday = day_name(class_date)

    routine = routine_on(db, substitute_id, class_date)
    if routine is not None:
        for entry in routine.entries or []:
            if not matches_day(entry.get("day"), class_date):
                continue
            if _slot(entry.get("timeSlot")).overlaps(wanted):
                return AvailabilityConflict(
                    conflict_type=REGULAR_CLASS,
                    subject=entry.get("subject") or "Unknown",
                    course=entry.get("course") or "Unknown",
                    day=entry.get("day") or weekday,
                    time_slot=entry.get("timeSlot") or time_slot,
                    is_handover=bool(entry.get("handover")),
                )

    for status, conflict_type in (
        (HandoverStatus.pending, HANDOVER_ASSIGNMENT),
        (HandoverStatus.approved, APPROVED_HANDOVER),
    ):
        handover = _handover_conflicts(
            db,
            substitute_id=substitute_id,
            class_date=class_date,
            slot=wanted,
            status=status,
            exclude_handover_id=exclude_handover_id,
        )
        if handover is not None:
            return AvailabilityConflict(
                conflict_type=conflict_type,
                subject=handover.subject,
                course=handover.course,
                day=weekday,
                time_slot=handover.time_slot,
                is_handover=True,
                handover_id=handover.id,
            )
    return None


def _require_faculty(db: Session, faculty_id: str) -> Faculty:
    faculty = db.get(Faculty, faculty_id)
    if faculty is None:
        raise ResourceNotFoundError("Faculty", faculty_id)
    return faculty


def _raise_unavailable(conflict: AvailabilityConflict) -> None:
    raise ConflictError(
        "Substitute is not available for this time slot",
        details={"available": False, "conflict": conflict.as_dict()},
    )


def submit_handover(
    db: Session,
    *,
    actor: User,
    faculty_id: str,
    date_of_class: date,
    time_slot: str,
    subject: str,
    course: str,
    substitute_id: str,
    reason: str,
    class_id: str | None = None,
    routine_id: str | None = None,
    room_no: str | None = None,
) -> HandoverRequest:
    if actor.role == UserRole.faculty and actor.id != faculty_id:
        raise AuthorizationFailedError("Faculty can only request handovers for their own classes")
    if substitute_id == faculty_id:
        raise ValidationFailedError("A faculty member cannot substitute for their own class")

    faculty = _require_faculty(db, faculty_id)
    substitute = _require_faculty(db, substitute_id)

    conflict = check_substitute_availability(
        db,
        substitute_id=substitute_id,
        class_date=date_of_class,
        time_slot=time_slot,
    )
    if conflict is not None:
        _raise_unavailable(conflict)

    handover = HandoverRequest(
        faculty_id=faculty.id,
        faculty_name=faculty.name,
        class_id=class_id,
        routine_id=routine_id,
        date_of_class=date_of_class,
        time_slot=time_slot,
        subject=subject,
        course=course,
        room_no=room_no,
        reason=reason,
        substitute_id=substitute.id,
        substitute_name=substitute.name,
        status=HandoverStatus.pending,
    )
    db.add(handover)
    db.flush()

    notify_roles(
        db,
        roles=[UserRole.hod],
        title="New Handover Request",
        description=(
            f"{faculty.name} requested a handover for {subject} ({course}) on "
            f"{date_of_class.isoformat()} at {time_slot}. Proposed substitute: {substitute.name}."
        ),
        notification_type=NotificationType.handover,
        related_id=handover.id,
        sender_id=actor.id,
    )
    log_activity(db, user=actor, action="handover.submitted", entity_type="handover", entity_id=handover.id)
    return handover


def get_handover(db: Session, handover_id: str) -> HandoverRequest:
    handover = db.get(HandoverRequest, handover_id)
    if handover is None:
        raise ResourceNotFoundError("Handover request", handover_id)
    return handover


def _notify_decision(db: Session, handover: HandoverRequest, *, actor: User) -> None:
    when = f"{handover.date_of_class.isoformat()} at {handover.time_slot}"
    if handover.status == HandoverStatus.approved:
        create_notification(
            db,
            user_id=handover.substitute_id,
            title="You are assigned a New Handover",
            description=(
                f"You have been assigned as a substitute for {handover.faculty_name}'s class on {when}. "
                f"Subject: {handover.subject}, Course: {handover.course}."
            ),
            notification_type=NotificationType.handover,
            related_id=handover.id,
            sender_id=actor.id,
        )
        create_notification(
            db,
            user_id=handover.faculty_id,
            title="Handover Request Approved",
            description=(
                f"Your handover request for {when} has been approved. "
                f"{handover.substitute_name} will substitute for your class ({handover.subject})."
            ),
            notification_type=NotificationType.approval,
            related_id=handover.id,
            sender_id=actor.id,
        )
        return

    description = f"Your handover request for {when} ({handover.subject}) has been rejected."
    if handover.remarks:
        description = f"{description} Remarks: {handover.remarks}"
    create_notification(
        db,
        user_id=handover.faculty_id,
        title="Handover Request Rejected",
        description=description,
        notification_type=NotificationType.rejection,
        related_id=handover.id,
        sender_id=actor.id,
    )


def decide_handover(
    db: Session,
    *,
    handover_id: str,
    actor: User,
    status: str | HandoverStatus,
    remarks: str | None = None,
    substitute_id: str | None = None,
) -> HandoverRequest:
    decision = parse_handover_status(status)
    if decision == HandoverStatus.pending:
        raise ValidationFailedError("A decision must be Approved or Rejected")

    handover = get_handover(db, handover_id)
    if handover.status != HandoverStatus.pending:
        raise ConflictError(
            "Handover request has already been decided",
            details={"status": handover.status.value},
        )

    if decision == HandoverStatus.approved:
        if substitute_id and substitute_id != handover.substitute_id:
            if substitute_id == handover.faculty_id:
                raise ValidationFailedError("A faculty member cannot substitute for their own class")
            substitute = _require_faculty(db, substitute_id)
            logger.info("Handover %s reassigned from %s to %s", handover.id, handover.substitute_id, substitute.id)
            handover.substitute_id = substitute.id
            handover.substitute_name = substitute.name

        conflict = check_substitute_availability(
            db,
            substitute_id=handover.substitute_id,
            class_date=handover.date_of_class,
            time_slot=handover.time_slot,
            exclude_handover_id=handover.id,
        )
        # Competing pending requests are resolved by whichever is approved first.
        if conflict is not None and conflict.conflict_type != HANDOVER_ASSIGNMENT:
            _raise_unavailable(conflict)

    handover.status = decision
    handover.remarks = remarks
    handover.decided_by_id = actor.id
    handover.decided_at = utcnow()
    db.flush()

    _notify_decision(db, handover, actor=actor)
    log_activity(
        db,
        user=actor,
        action=f"handover.{decision.value.lower()}",
        entity_type="handover",
        entity_id=handover.id,
        details={"substituteId": handover.substitute_id},
    )
    return handover


def delete_handover(db: Session, *, handover_id: str, actor: User) -> None:
    handover = get_handover(db, handover_id)
    if actor.role == UserRole.faculty and actor.id != handover.faculty_id:
        raise AuthorizationFailedError("Faculty can only withdraw their own handover requests")
    if handover.status != HandoverStatus.pending:
        raise ConflictError("Only pending handover requests can be deleted", details={"status": handover.status.value})
    db.delete(handover)
    log_activity(db, user=actor, action="handover.deleted", entity_type="handover", entity_id=handover_id)


def list_handovers(
    db: Session,
    *,
    faculty_id: str | None = None,
    substitute_id: str | None = None,
    status: str | None = None,
    subject: str | None = None,
    course: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    involving_user_id: str | None = None,
) -> list[HandoverRequest]:
    query = select(HandoverRequest)
    if involving_user_id:
        query = query.where(
            or_(
                HandoverRequest.faculty_id == involving_user_id,
                HandoverRequest.substitute_id == involving_user_id,
            )
        )
    if faculty_id:
        query = query.where(HandoverRequest.faculty_id == faculty_id)
    if substitute_id:
        query = query.where(HandoverRequest.substitute_id == substitute_id)
    if status:
        query = query.where(HandoverRequest.status == parse_handover_status(status))
    if subject:
        query = query.where(func.lower(HandoverRequest.subject) == subject.strip().lower())
    if course:
        query = query.where(func.lower(HandoverRequest.course) == course.strip().lower())
    if start_date:
        query = query.where(HandoverRequest.date_of_class >= start_date)
    if end_date:
        query = query.where(HandoverRequest.date_of_class <= end_date)
    query = query.order_by(HandoverRequest.date_of_class.desc(), HandoverRequest.created_at.desc())
    return list(db.execute(query).scalars())


def substitute_candidates(
    db: Session,
    *,
    class_date: date,
    time_slot: str,
    subject: str | None = None,
    exclude_faculty_id: str | None = None,
) -> list[SubstituteCandidate]:
    """Every faculty member, annotated for the HOD; nothing here blocks a request."""
    wanted_subject = (subject or "").strip().lower()
    query = select(Faculty).order_by(Faculty.name)
    if exclude_faculty_id:
        query = query.where(Faculty.id != exclude_faculty_id)

    candidates: list[SubstituteCandidate] = []
    for faculty in db.execute(query).scalars():
        known = {item.strip().lower() for item in faculty.subjects_known or []}
        conflict = check_substitute_availability(
            db,
            substitute_id=faculty.id,
            class_date=class_date,
            time_slot=time_slot,
        )
        candidates.append(
            SubstituteCandidate(
                faculty=faculty,
                qualified=bool(wanted_subject) and wanted_subject in known,
                available=conflict is None,
                conflict=conflict,
            )
        )
    candidates.sort(key=lambda item: (not item.available, not item.qualified, item.faculty.name))
    return candidates
