from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lms.api.deps import get_current_user, get_db, require_roles
from lms.core.exceptions import AuthorizationFailedError
from lms.models.user import User, UserRole
from lms.schemas.common import SuccessOut
from lms.schemas.handover import (
    AvailabilityConflictOut,
    AvailabilityOut,
    HandoverCreate,
    HandoverCreateOut,
    HandoverDecision,
    HandoverOut,
    SubstituteCandidateOut,
)
from lms.services import handovers as handover_service

router = APIRouter()


def _conflict_out(conflict: handover_service.AvailabilityConflict | None) -> AvailabilityConflictOut | None:
    if conflict is None:
        return None
    return AvailabilityConflictOut.model_validate(conflict)


@router.get("/check-substitute-availability", response_model=AvailabilityOut)
def check_substitute_availability(
    substitute_id: str = Query(alias="substituteId", min_length=1),
    class_date: date = Query(alias="date"),
    time_slot: str = Query(alias="timeSlot", min_length=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AvailabilityOut:
    conflict = handover_service.check_substitute_availability(
        db,
        substitute_id=substitute_id,
        class_date=class_date,
        time_slot=time_slot,
    )
    return AvailabilityOut(available=conflict is None, conflict=_conflict_out(conflict))


@router.get("/handovers", response_model=list[HandoverOut])
def list_handovers(
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    substitute_id: str | None = Query(default=None, alias="substituteId"),
    handover_status: str | None = Query(default=None, alias="status"),
    subject: str | None = Query(default=None),
    course: str | None = Query(default=None),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[HandoverOut]:
    return handover_service.list_handovers(
        db,
        faculty_id=faculty_id,
        substitute_id=substitute_id,
        status=handover_status,
        subject=subject,
        course=course,
        start_date=start_date,
        end_date=end_date,
        involving_user_id=current_user.id if current_user.role == UserRole.faculty else None,
    )


@router.post("/handovers", response_model=HandoverCreateOut, status_code=status.HTTP_201_CREATED)
def create_handover(
    payload: HandoverCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> HandoverCreateOut:
    handover = handover_service.submit_handover(
        db,
        actor=current_user,
        faculty_id=payload.faculty_id,
        date_of_class=payload.date_of_class,
        time_slot=payload.time_slot,
        subject=payload.subject,
        course=payload.course,
        substitute_id=payload.substitute_id,
        reason=payload.reason,
        class_id=payload.class_id,
        routine_id=payload.routine_id,
        room_no=payload.room_no,
    )
    db.commit()
    db.refresh(handover)
    return HandoverCreateOut(
        message="Handover request created successfully",
        handover=HandoverOut.model_validate(handover),
    )


@router.get("/handovers/substitute-candidates", response_model=list[SubstituteCandidateOut])
def substitute_candidates(
    class_date: date = Query(alias="date"),
    time_slot: str = Query(alias="timeSlot", min_length=1),
    subject: str | None = Query(default=None),
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SubstituteCandidateOut]:
    candidates = handover_service.substitute_candidates(
        db,
        class_date=class_date,
        time_slot=time_slot,
        subject=subject,
        exclude_faculty_id=faculty_id or (current_user.id if current_user.role == UserRole.faculty else None),
    )
    return [
        SubstituteCandidateOut(
            id=item.faculty.id,
            name=item.faculty.name,
            email=item.faculty.email,
            department=item.faculty.department,
            designation=item.faculty.designation,
            subjects_known=list(item.faculty.subjects_known or []),
            qualified=item.qualified,
            available=item.available,
            conflict=_conflict_out(item.conflict),
        )
        for item in candidates
    ]


@router.get("/handovers/{handover_id}", response_model=HandoverOut)
def get_handover(
    handover_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> HandoverOut:
    handover = handover_service.get_handover(db, handover_id)
    if current_user.role == UserRole.faculty and current_user.id not in {handover.faculty_id, handover.substitute_id}:
        raise AuthorizationFailedError()
    return handover


@router.patch("/handovers/{handover_id}", response_model=HandoverOut)
def decide_handover(
    handover_id: str,
    payload: HandoverDecision,
    current_user: User = Depends(require_roles(UserRole.hod, UserRole.admin)),
    db: Session = Depends(get_db),
) -> HandoverOut:
    handover = handover_service.decide_handover(
        db,
        handover_id=handover_id,
        actor=current_user,
        status=payload.status,
        remarks=payload.remarks,
        substitute_id=payload.substitute_id,
    )
    db.commit()
    db.refresh(handover)
    return handover


@router.delete("/handovers/{handover_id}", response_model=SuccessOut)
def delete_handover(
    handover_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SuccessOut:
    handover_service.delete_handover(db, handover_id=handover_id, actor=current_user)
    db.commit()
    return SuccessOut(message="Handover request deleted successfully")
