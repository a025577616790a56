from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from lms.api.deps import ensure_self_or_staff, get_clock, get_current_user, get_db, require_roles
from lms.core.clock import InstituteClock
from lms.core.exceptions import ValidationFailedError
from lms.models.routine import Routine
from lms.models.user import User, UserRole
from lms.schemas.routine import (
    RoutineHistoryItem,
    RoutineOut,
    RoutinePublish,
    RoutinePublishOut,
    RoutineResponse,
)
from lms.services import routines as routine_service

router = APIRouter()


def _history_item(routine: Routine) -> RoutineHistoryItem:
    return RoutineHistoryItem(
        id=routine.id,
        version=routine.version,
        created_at=routine.created_at,
        updated_at=routine.updated_at,
        routine_type=routine.routine_type,
        entry_count=len(routine.entries or []),
    )


@router.get("/routines", response_model=RoutineResponse)
def get_routine(
    faculty_id: str | None = Query(default=None, alias="facultyId"),
    routine_id: str | None = Query(default=None, alias="routineId"),
    include_history: bool = Query(default=False, alias="includeHistory"),
    current_user: User = Depends(get_current_user),
    clock: InstituteClock = Depends(get_clock),
    db: Session = Depends(get_db),
) -> RoutineResponse:
    if routine_id:
        routine = routine_service.get_routine(db, routine_id)
        ensure_self_or_staff(current_user, routine.faculty_id)
        return RoutineResponse(routine=RoutineOut.model_validate(routine))

    if not faculty_id:
        raise ValidationFailedError("Faculty ID is required")
    ensure_self_or_staff(current_user, faculty_id)

    latest = routine_service.get_latest(db, faculty_id)
    history: list[RoutineHistoryItem] = []
    if include_history:
        history = [
            _history_item(item)
            for item in routine_service.list_history(db, faculty_id, exclude_id=latest.id if latest else None)
        ]
    if latest is None:
        return RoutineResponse(routine=None, routine_history=history)

    payload = RoutineOut.model_validate(latest)
    payload.entries = routine_service.overlay_attendance(db, latest, clock.today())
    return RoutineResponse(routine=payload, routine_history=history)


@router.post("/routines", response_model=RoutinePublishOut, status_code=status.HTTP_201_CREATED)
def publish_routine(
    payload: RoutinePublish,
    current_user: User = Depends(require_roles(UserRole.hod, UserRole.admin)),
    db: Session = Depends(get_db),
) -> RoutinePublishOut:
    routine = routine_service.publish_routine(
        db,
        faculty_id=payload.faculty_id,
        entries=[entry.to_document() for entry in payload.entries],
        routine_type=payload.routine_type,
        actor=current_user,
        is_update=payload.is_update,
        update_routine_id=payload.update_routine_id,
        publish=payload.publish,
    )
    db.commit()
    return RoutinePublishOut(routine_id=routine.id, version=routine.version, state=routine.state)


@router.post("/routines/{routine_id}/publish", response_model=RoutinePublishOut)
def publish_draft(
    routine_id: str,
    current_user: User = Depends(require_roles(UserRole.hod, UserRole.admin)),
    db: Session = Depends(get_db),
) -> RoutinePublishOut:
    routine = routine_service.publish_draft(db, routine_id=routine_id, actor=current_user)
    db.commit()
    return RoutinePublishOut(routine_id=routine.id, version=routine.version, state=routine.state)
