from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lms.api.deps import get_current_user, get_db, require_roles
from lms.core.config import get_settings
from lms.models.user import User, UserRole
from lms.schemas.presence import ActiveFacultyListOut, ActiveFacultyOut, PresenceOut
from lms.services import presence as presence_service

router = APIRouter()


@router.post("/active-users", response_model=PresenceOut)
def heartbeat(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PresenceOut:
    user = presence_service.mark_active(db, current_user)
    db.commit()
    return PresenceOut(is_online=user.is_online, last_active=user.last_active_at)


@router.delete("/active-users", response_model=PresenceOut)
def sign_out(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PresenceOut:
    user = presence_service.mark_inactive(db, current_user)
    db.commit()
    return PresenceOut(is_online=user.is_online, last_active=user.last_active_at)


@router.get("/active-users", response_model=ActiveFacultyListOut)
def active_users(
    current_user: User = Depends(require_roles(UserRole.hod, UserRole.admin)),
    db: Session = Depends(get_db),
) -> ActiveFacultyListOut:
    active = presence_service.active_faculty(db)
    return ActiveFacultyListOut(
        count=len(active),
        window_minutes=get_settings().active_user_window_minutes,
        active_faculty=[ActiveFacultyOut.model_validate(item) for item in active],
    )
