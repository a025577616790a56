"""Seed demo HOD/faculty accounts and a published weekly routine for each faculty member.

Run:
  PYTHONPATH=backend python scripts/seed_demo_data.py
"""

from __future__ import annotations

import os
from typing import Iterable

from sqlalchemy import select

from lms.core.security import get_password_hash
from lms.db.bootstrap import ensure_runtime_schema
from lms.db.session import SessionLocal, engine
from lms.models.faculty import Faculty
from lms.models.user import User, UserRole
from lms.services.routines import get_latest, publish_routine

DEFAULT_PASSWORD = os.getenv("DEMO_PASSWORD", "DemoPass123!")
DEPARTMENT = "Nursing"


def _env_email(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


DEMO_ACCOUNTS = {
    "hod": {
        "name": "Demo HOD",
        "email": _env_email("DEMO_HOD_EMAIL", "hod.demo@lms.local"),
        "role": UserRole.hod,
        "subjects": [],
    },
    "faculty_1": {
        "name": "Demo Faculty One",
        "email": _env_email("DEMO_FACULTY1_EMAIL", "faculty1.demo@lms.local"),
        "role": UserRole.faculty,
        "subjects": ["Anatomy", "Physiology"],
    },
    "faculty_2": {
        "name": "Demo Faculty Two",
        "email": _env_email("DEMO_FACULTY2_EMAIL", "faculty2.demo@lms.local"),
        "role": UserRole.faculty,
        "subjects": ["Pharmacology", "Physiology"],
    },
}

DEMO_ROUTINES = {
    "faculty_1": [
        {"day": "Monday", "timeSlot": "09:00-09:50", "subject": "Anatomy", "course": "B.Sc Nursing 1st Year", "roomNumber": "N101"},
        {"day": "Wednesday", "timeSlot": "11:00-11:50", "subject": "Physiology", "course": "GNM 1st Year", "roomNumber": "N102"},
        {"day": "Friday", "timeSlot": "14:00-14:50", "subject": "Anatomy", "course": "B.Sc Nursing 1st Year", "roomNumber": "N101"},
    ],
    "faculty_2": [
        {"day": "Monday", "timeSlot": "10:00-10:50", "subject": "Pharmacology", "course": "B.Sc Nursing 2nd Year", "roomNumber": "N201"},
        {"day": "Thursday", "timeSlot": "09:00-09:50", "subject": "Physiology", "course": "GNM 1st Year", "roomNumber": "N102"},
    ],
}


def _upsert_user(*, name: str, email: str, role: UserRole) -> User:
    with SessionLocal() as session:
        existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing is None:
            existing = User(
                name=name,
                email=email,
                hashed_password=get_password_hash(DEFAULT_PASSWORD),
                role=role,
                department=DEPARTMENT,
                is_active=True,
            )
            session.add(existing)
        else:
            existing.name = name
            existing.role = role
            existing.department = DEPARTMENT
            existing.is_active = True
        session.commit()
        session.refresh(existing)
        return existing


def _upsert_faculty_profile(user: User, subjects: list[str]) -> Faculty:
    with SessionLocal() as session:
        existing = session.get(Faculty, user.id)
        if existing is None:
            existing = Faculty(
                id=user.id,
                name=user.name,
                email=user.email,
                department=DEPARTMENT,
                designation="Lecturer",
                subjects_known=subjects,
            )
            session.add(existing)
        else:
            existing.name = user.name
            existing.subjects_known = subjects
        session.commit()
        session.refresh(existing)
        return existing


def _publish_routine(faculty: Faculty, entries: list[dict], hod: User) -> None:
    with SessionLocal() as session:
        actor = session.get(User, hod.id)
        current = get_latest(session, faculty.id)
        routine = publish_routine(
            session,
            faculty_id=faculty.id,
            entries=entries,
            actor=actor,
            is_update=current is not None,
            update_routine_id=current.id if current is not None else None,
        )
        session.commit()
        print(f"  - routine v{routine.version} for {faculty.name} ({len(entries)} classes)")


def _print_accounts(items: Iterable[tuple[str, User]]) -> None:
    print("\nDemo accounts ready:")
    for label, user in items:
        print(f"  - {label}: {user.email} | role={user.role.value}")
    print(f"\nPassword for all demo accounts: {DEFAULT_PASSWORD}")


def main() -> None:
    ensure_runtime_schema(engine)

    users: dict[str, User] = {}
    for key, item in DEMO_ACCOUNTS.items():
        users[key] = _upsert_user(name=item["name"], email=item["email"], role=item["role"])
        if item["role"] == UserRole.faculty:
            _upsert_faculty_profile(users[key], item["subjects"])

    print("Publishing routines:")
    for key, entries in DEMO_ROUTINES.items():
        with SessionLocal() as session:
            faculty = session.get(Faculty, users[key].id)
        _publish_routine(faculty, entries, users["hod"])
    _print_accounts(users.items())


if __name__ == "__main__":
    main()
