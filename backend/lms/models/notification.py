import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from lms.db.base import Base, utcnow


class NotificationType(str, Enum):
    routine = "routine"
    handover = "handover"
    approval = "approval"
    rejection = "rejection"
    announcement = "announcement"
    attendance = "attendance"


NOTIFICATION_TYPE_ENUM = SAEnum(NotificationType, name="notification_type")


class AnnouncementStatus(str, Enum):
    sent = "Sent"
    scheduled = "Scheduled"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notification_type: Mapped[NotificationType] = mapped_column(NOTIFICATION_TYPE_ENUM, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    related_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sender_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class Announcement(Base):
    """HOD-issued official notice; delivered as one notification per recipient."""

    __tablename__ = "announcements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    notification_type: Mapped[NotificationType] = mapped_column(
        NOTIFICATION_TYPE_ENUM,
        nullable=False,
        default=NotificationType.announcement,
    )
    sender_id: Mapped[str] = mapped_column(String(36), nullable=False)
    sender_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    send_to_all: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    recipient_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[AnnouncementStatus] = mapped_column(
        SAEnum(AnnouncementStatus, name="announcement_status"),
        nullable=False,
        default=AnnouncementStatus.sent,
    )
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
