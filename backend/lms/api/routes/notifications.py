from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from jose import JWTError
from sqlalchemy.orm import Session

from lms.api.deps import get_current_user, get_db, require_roles
from lms.core.config import get_settings
from lms.core.exceptions import AuthorizationFailedError
from lms.core.security import decode_token
from lms.models.user import User, UserRole
from lms.schemas.notification import (
    AnnouncementCreate,
    AnnouncementOut,
    MarkAllReadOut,
    NotificationCreate,
    NotificationListOut,
    NotificationMarkRead,
    NotificationOut,
    ProcessScheduledOut,
    UnreadCountOut,
)
from lms.services import notifications as notification_service
from lms.services.audit import log_activity
from lms.services.notification_hub import notification_hub

router = APIRouter()
staff_only = require_roles(UserRole.hod, UserRole.admin)


@router.get("/notifications", response_model=NotificationListOut)
def list_notifications(
    user_id: str | None = Query(default=None, alias="userId"),
    limit: int | None = Query(default=None, ge=1, le=500),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationListOut:
    settings = get_settings()
    target_id = user_id or current_user.id
    if target_id != current_user.id and current_user.role != UserRole.admin:
        raise AuthorizationFailedError()
    notifications = notification_service.list_notifications(
        db,
        user_id=target_id,
        limit=limit or settings.notification_list_limit,
        unread_only=unread_only,
    )
    return NotificationListOut(
        notifications=[NotificationOut.model_validate(item) for item in notifications],
        unread_count=notification_service.unread_count(db, user_id=target_id),
        poll_interval_seconds=settings.notification_poll_interval_seconds,
    )


@router.post("/notifications", response_model=NotificationOut, status_code=status.HTTP_201_CREATED)
def create_notification(
    payload: NotificationCreate,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
) -> NotificationOut:
    notification = notification_service.create_notification(
        db,
        user_id=payload.user_id,
        title=payload.title,
        description=payload.description,
        notification_type=payload.notification_type,
        related_id=payload.related_id,
        sender_id=current_user.id,
    )
    db.commit()
    db.refresh(notification)
    return notification


@router.put("/notifications", response_model=NotificationOut)
def mark_notification_read_by_body(
    payload: NotificationMarkRead,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationOut:
    notification = notification_service.mark_read(db, notification_id=payload.notification_id, user=current_user)
    db.commit()
    db.refresh(notification)
    return notification


@router.get("/notifications/unread-count", response_model=UnreadCountOut)
def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCountOut:
    return UnreadCountOut(unread_count=notification_service.unread_count(db, user_id=current_user.id))


@router.put("/notifications/mark-all-read", response_model=MarkAllReadOut)
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MarkAllReadOut:
    updated = notification_service.mark_all_read(db, user_id=current_user.id)
    if updated:
        log_activity(
            db,
            user=current_user,
            action="notification.read_all",
            entity_type="notification",
            details={"count": updated},
        )
    db.commit()
    return MarkAllReadOut(updated_count=updated)


@router.put("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NotificationOut:
    notification = notification_service.mark_read(db, notification_id=notification_id, user=current_user)
    db.commit()
    db.refresh(notification)
    return notification


@router.post(
    "/notifications/announcements",
    response_model=AnnouncementOut,
    status_code=status.HTTP_201_CREATED,
)
def send_announcement(
    payload: AnnouncementCreate,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
) -> AnnouncementOut:
    announcement = notification_service.send_announcement(
        db,
        sender=current_user,
        title=payload.title,
        description=payload.description,
        send_to_all=payload.send_to_all,
        recipient_ids=payload.recipient_ids,
        scheduled_for=payload.scheduled_for,
        notification_type=payload.notification_type,
    )
    log_activity(
        db,
        user=current_user,
        action="announcement.created",
        entity_type="announcement",
        entity_id=announcement.id,
        details={"status": announcement.status.value, "deliveredCount": announcement.delivered_count},
    )
    db.commit()
    db.refresh(announcement)
    return announcement


@router.get("/notifications/announcements", response_model=list[AnnouncementOut])
def list_announcements(
    mine: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
) -> list[AnnouncementOut]:
    return notification_service.list_announcements(
        db,
        sender_id=current_user.id if mine else None,
        limit=limit,
    )


@router.post("/notifications/announcements/process-scheduled", response_model=ProcessScheduledOut)
def process_scheduled_announcements(
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
) -> ProcessScheduledOut:
    delivered = notification_service.process_scheduled(db)
    db.commit()
    return ProcessScheduledOut(
        processed=len(delivered),
        announcements=[AnnouncementOut.model_validate(item) for item in delivered],
    )


@router.post(
    "/notifications/announcements/{announcement_id}/resend",
    response_model=AnnouncementOut,
    status_code=status.HTTP_201_CREATED,
)
def resend_announcement(
    announcement_id: str,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
) -> AnnouncementOut:
    announcement = notification_service.resend_announcement(db, announcement_id=announcement_id, sender=current_user)
    log_activity(
        db,
        user=current_user,
        action="announcement.resent",
        entity_type="announcement",
        entity_id=announcement.id,
        details={"resendOf": announcement_id},
    )
    db.commit()
    db.refresh(announcement)
    return announcement


def _extract_ws_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token

    auth_header = websocket.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


@router.websocket("/notifications/ws")
async def notifications_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
) -> None:
    token = _extract_ws_token(websocket)
    if not token:
        await websocket.close(code=1008)
        return

    try:
        user_id = decode_token(token).get("sub")
    except JWTError:
        await websocket.close(code=1008)
        return

    user = db.get(User, user_id) if user_id else None
    if user is None or not user.is_active:
        await websocket.close(code=1008)
        return

    await notification_hub.register(user.id, websocket)
    try:
        await websocket.send_json(
            {
                "event": "connected",
                "userId": user.id,
                "unreadCount": notification_service.unread_count(db, user_id=user.id),
            }
        )
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await notification_hub.unregister(user.id, websocket)
