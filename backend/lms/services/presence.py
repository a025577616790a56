"""Which faculty members are currently signed in.

A user counts as active while they are flagged online and their last
heartbeat is inside the configured window. Logging out clears the flag;
a closed browser simply stops sending heartbeats and ages out.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from lms.core.config import get_settings
from lms.db.base import utcnow
from lms.models.user import User, UserRole
from lms.services.notifications import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveFaculty:
    id: str
    name: str
    department: str | None
    last_active: datetime


def mark_active(db: Session, user: User, *, now: datetime | None = None) -> User:
    user.is_online = True
    user.last_active_at = now or utcnow()
    db.flush()
    return user


def mark_inactive(db: Session, user: User, *, now: datetime | None = None) -> User:
    user.is_online = False
    user.last_active_at = now or utcnow()
    db.flush()
    logger.info("User %s signed out", user.id)
    return user


def active_faculty(db: Session, *, now: datetime | None = None) -> list[ActiveFaculty]:
    cutoff = as_utc(now) - timedelta(minutes=get_settings().active_user_window_minutes)
    online = db.execute(
        select(User)
        .where(
            User.role == UserRole.faculty,
            User.is_active.is_(True),
            User.is_online.is_(True),
            User.last_active_at.is_not(None),
        )
        .order_by(User.name)
    ).scalars()
    # SQLite hands back naive timestamps, so the window is checked here.
    return [
        ActiveFaculty(
            id=user.id,
            name=user.name,
            department=user.department,
            last_active=as_utc(user.last_active_at),
        )
        for user in online
        if as_utc(user.last_active_at) >= cutoff
    ]
