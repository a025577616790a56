from __future__ import annotations

from datetime import datetime, timezone
import logging

from anyio import from_thread
from sqlalchemy import event, func, select, update
from sqlalchemy.orm import Session

from lms.core.exceptions import AuthorizationFailedError, ResourceNotFoundError, ValidationFailedError
from lms.models.notification import Announcement, AnnouncementStatus, Notification, NotificationType
from lms.models.user import User, UserRole
from lms.services.notification_hub import notification_hub

logger = logging.getLogger(__name__)


def as_utc(value: datetime | None) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def notification_to_event_payload(notification: Notification, *, event: str = "notification.created") -> dict:
    return {
        "event": event,
        "notification": {
            "id": notification.id,
            "userId": notification.user_id,
            "title": notification.title,
            "description": notification.description,
            "type": notification.notification_type.value,
            "read": notification.is_read,
            "relatedId": notification.related_id,
            "createdAt": as_utc(notification.created_at).isoformat(),
        },
    }


REALTIME_QUEUE_KEY = "realtime_notification_events"


def queue_realtime_notification(
    db: Session,
    notification: Notification,
    *,
    event: str = "notification.created",
) -> None:
    """Stage a push for ``notification``; it is sent once the session commits."""
    payload = notification_to_event_payload(notification, event=event)
    db.info.setdefault(REALTIME_QUEUE_KEY, []).append((notification.user_id, payload))


@event.listens_for(Session, "after_commit")
def _push_committed_events(session: Session) -> None:
    events = session.info.pop(REALTIME_QUEUE_KEY, [])
    if not events:
        return
    try:
        from_thread.run(notification_hub.send_many, events)
    except Exception:  # pragma: no cover - runtime environment dependent
        logger.debug("Unable to push %d realtime notification(s)", len(events), exc_info=True)


@event.listens_for(Session, "after_rollback")
def _drop_rolled_back_events(session: Session) -> None:
    dropped = session.info.pop(REALTIME_QUEUE_KEY, [])
    if dropped:
        logger.debug("Discarded %d realtime notification(s) after rollback", len(dropped))


def create_notification(
    db: Session,
    *,
    user_id: str,
    title: str,
    description: str,
    notification_type: NotificationType,
    related_id: str | None = None,
    sender_id: str | None = None,
    deliver_realtime: bool = True,
) -> Notification:
    record = Notification(
        user_id=user_id,
        title=title,
        description=description,
        notification_type=notification_type,
        related_id=related_id,
        sender_id=sender_id,
        is_read=False,
    )
    db.add(record)
    db.flush()

    if deliver_realtime:
        queue_realtime_notification(db, record, event="notification.created")
    return record


def notify_users(
    db: Session,
    *,
    user_ids: list[str] | set[str] | tuple[str, ...],
    title: str,
    description: str,
    notification_type: NotificationType,
    related_id: str | None = None,
    sender_id: str | None = None,
    exclude_user_id: str | None = None,
) -> list[Notification]:
    requested_ids = [item for item in dict.fromkeys(user_ids) if item and item != exclude_user_id]
    if not requested_ids:
        return []

    recipients = list(
        db.execute(
            select(User).where(
                User.id.in_(requested_ids),
                User.is_active.is_(True),
            )
        ).scalars()
    )
    return [
        create_notification(
            db,
            user_id=recipient.id,
            title=title,
            description=description,
            notification_type=notification_type,
            related_id=related_id,
            sender_id=sender_id,
        )
        for recipient in recipients
    ]


def notify_roles(
    db: Session,
    *,
    roles: list[UserRole] | set[UserRole] | tuple[UserRole, ...],
    title: str,
    description: str,
    notification_type: NotificationType,
    related_id: str | None = None,
    sender_id: str | None = None,
    exclude_user_id: str | None = None,
    department: str | None = None,
) -> list[Notification]:
    if not roles:
        return []
    query = select(User).where(User.role.in_(list(roles)), User.is_active.is_(True))
    if department:
        query = query.where(User.department == department)
    results: list[Notification] = []
    for recipient in db.execute(query.order_by(User.created_at)).scalars():
        if exclude_user_id and recipient.id == exclude_user_id:
            continue
        results.append(
            create_notification(
                db,
                user_id=recipient.id,
                title=title,
                description=description,
                notification_type=notification_type,
                related_id=related_id,
                sender_id=sender_id,
            )
        )
    return results


def list_notifications(
    db: Session,
    *,
    user_id: str,
    limit: int,
    unread_only: bool = False,
) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    return list(db.execute(query).scalars())


def unread_count(db: Session, *, user_id: str) -> int:
    return db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    ).scalar_one()


def mark_read(db: Session, *, notification_id: str, user: User) -> Notification:
    record = db.get(Notification, notification_id)
    if record is None:
        raise ResourceNotFoundError("Notification", notification_id)
    if record.user_id != user.id:
        raise AuthorizationFailedError("Notifications can only be marked read by their recipient")
    if not record.is_read:
        record.is_read = True
        db.flush()
        queue_realtime_notification(db, record, event="notification.read")
    return record


def mark_all_read(db: Session, *, user_id: str) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


def _announcement_recipients(db: Session, announcement: Announcement) -> list[str]:
    if announcement.send_to_all:
        query = select(User.id).where(User.role == UserRole.faculty, User.is_active.is_(True))
        return list(db.execute(query).scalars())
    return list(announcement.recipient_ids or [])


def deliver_announcement(db: Session, announcement: Announcement) -> int:
    delivered = notify_users(
        db,
        user_ids=_announcement_recipients(db, announcement),
        title=announcement.title,
        description=announcement.description,
        notification_type=announcement.notification_type,
        related_id=announcement.id,
        sender_id=announcement.sender_id,
    )
    announcement.status = AnnouncementStatus.sent
    announcement.delivered_count = len(delivered)
    db.flush()
    return len(delivered)


def send_announcement(
    db: Session,
    *,
    sender: User,
    title: str,
    description: str,
    send_to_all: bool,
    recipient_ids: list[str] | None = None,
    scheduled_for: datetime | None = None,
    notification_type: NotificationType = NotificationType.announcement,
) -> Announcement:
    if not send_to_all and not recipient_ids:
        raise ValidationFailedError("Select at least one recipient or send to all faculty")

    now = datetime.now(timezone.utc)
    is_scheduled = scheduled_for is not None and as_utc(scheduled_for) > now
    announcement = Announcement(
        title=title,
        description=description,
        notification_type=notification_type,
        sender_id=sender.id,
        sender_name=sender.name,
        department=sender.department,
        send_to_all=send_to_all,
        recipient_ids=[] if send_to_all else list(dict.fromkeys(recipient_ids or [])),
        status=AnnouncementStatus.scheduled if is_scheduled else AnnouncementStatus.sent,
        scheduled_for=as_utc(scheduled_for) if scheduled_for is not None else None,
    )
    db.add(announcement)
    db.flush()

    if not is_scheduled:
        deliver_announcement(db, announcement)
    return announcement


def resend_announcement(db: Session, *, announcement_id: str, sender: User) -> Announcement:
    original = db.get(Announcement, announcement_id)
    if original is None:
        raise ResourceNotFoundError("Announcement", announcement_id)
    return send_announcement(
        db,
        sender=sender,
        title=original.title,
        description=original.description,
        send_to_all=original.send_to_all,
        recipient_ids=original.recipient_ids,
        notification_type=original.notification_type,
    )


def process_scheduled(db: Session, *, now: datetime | None = None) -> list[Announcement]:
    """Deliver every scheduled announcement whose time has come."""
    cutoff = as_utc(now)
    pending = db.execute(
        select(Announcement)
        .where(Announcement.status == AnnouncementStatus.scheduled)
        .order_by(Announcement.scheduled_for)
    ).scalars()
    delivered: list[Announcement] = []
    for announcement in pending:
        if as_utc(announcement.scheduled_for) > cutoff:
            continue
        count = deliver_announcement(db, announcement)
        logger.info("Delivered scheduled announcement %s to %d recipient(s)", announcement.id, count)
        delivered.append(announcement)
    return delivered


def list_announcements(db: Session, *, sender_id: str | None = None, limit: int = 100) -> list[Announcement]:
    query = select(Announcement)
    if sender_id:
        query = query.where(Announcement.sender_id == sender_id)
    return list(db.execute(query.order_by(Announcement.created_at.desc()).limit(limit)).scalars())
