from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.api.deps import get_current_user, get_db, require_roles
from lms.models.faculty import Faculty
from lms.models.user import User, UserRole
from lms.schemas.faculty import FacultyOut, FacultyUpdate
from lms.services.audit import log_activity

router = APIRouter()
SELF_EDITABLE_FACULTY_FIELDS = {"phone", "subjects_known"}


@router.get("/faculty", response_model=list[FacultyOut])
def list_faculty(
    department: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[FacultyOut]:
    query = select(Faculty).order_by(Faculty.name)
    if department:
        query = query.where(Faculty.department == department)
    return list(db.execute(query).scalars())


@router.get("/faculty/me", response_model=FacultyOut)
def get_my_faculty_profile(
    current_user: User = Depends(require_roles(UserRole.faculty)),
    db: Session = Depends(get_db),
) -> FacultyOut:
    item = db.get(Faculty, current_user.id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Faculty profile not linked")
    return item


@router.get("/faculty/{faculty_id}", response_model=FacultyOut)
def get_faculty(
    faculty_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FacultyOut:
    item = db.get(Faculty, faculty_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Faculty not found")
    return item


@router.put("/faculty/{faculty_id}", response_model=FacultyOut)
def update_faculty(
    faculty_id: str,
    payload: FacultyUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FacultyOut:
    item = db.get(Faculty, faculty_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Faculty not found")

    data = payload.model_dump(exclude_unset=True)
    if current_user.role == UserRole.faculty:
        if current_user.id != faculty_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        blocked = sorted(set(data) - SELF_EDITABLE_FACULTY_FIELDS)
        if blocked:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Faculty cannot edit: {', '.join(blocked)}",
            )

    for key, value in data.items():
        setattr(item, key, value)

    user = db.get(User, faculty_id)
    if user is not None:
        if "name" in data:
            user.name = item.name
        if "department" in data:
            user.department = item.department

    log_activity(
        db,
        user=current_user,
        action="faculty.updated",
        entity_type="faculty",
        entity_id=faculty_id,
        details={"fields": sorted(data)},
    )
    db.commit()
    db.refresh(item)
    return item
