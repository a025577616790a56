from __future__ import annotations

from sqlalchemy.orm import Session

from lms.models.activity_log import ActivityLog
from lms.models.user import User


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """Stage an audit row in the caller's transaction; the caller commits."""
    payload = dict(details or {})
    if user is not None:
        payload.setdefault("actorRole", user.role.value)
    record = ActivityLog(
        user_id=user.id if user is not None else "system",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=payload,
    )
    db.add(record)
    return record
