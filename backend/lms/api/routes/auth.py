import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.api.deps import get_current_user, get_db
from lms.core.security import create_access_token, get_password_hash, verify_password
from lms.models.faculty import Faculty
from lms.models.user import User, UserRole
from lms.schemas.user import Token, UserCreate, UserLogin, UserOut
from lms.services.audit import log_activity
from lms.services.presence import mark_active

router = APIRouter()
logger = logging.getLogger(__name__)


def ensure_faculty_profile(db: Session, user: User, payload: UserCreate) -> Faculty:
    """Faculty profiles share the user's id so ``facultyId`` always equals ``userId``."""
    faculty = db.get(Faculty, user.id)
    if faculty is None:
        faculty = Faculty(
            id=user.id,
            name=user.name,
            email=user.email,
            department=user.department or "General",
            designation=payload.designation or "Lecturer",
            phone=payload.phone,
            subjects_known=payload.subjects_known,
        )
        db.add(faculty)
    return faculty


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)) -> UserOut:
    existing = db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    if payload.role == UserRole.faculty:
        taken = db.execute(select(Faculty).where(Faculty.email == payload.email)).scalar_one_or_none()
        if taken:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Faculty email already exists")

    user = User(
        name=payload.name,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        role=payload.role,
        department=payload.department,
    )
    db.add(user)
    db.flush()

    if payload.role == UserRole.faculty:
        ensure_faculty_profile(db, user, payload)
    log_activity(db, user=user, action="auth.register", entity_type="user", entity_id=user.id)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s user %s", user.role.value, user.id)
    return user


@router.post("/login", response_model=Token)
def login(payload: UserLogin, db: Session = Depends(get_db)) -> Token:
    user = db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none()
    if user is None or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")

    mark_active(db, user)
    db.commit()
    db.refresh(user)
    token = create_access_token(user.id)
    return Token(access_token=token, token_type="bearer", user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)) -> UserOut:
    return current_user
