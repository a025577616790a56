from datetime import datetime

from pydantic import Field, model_validator

from lms.models.notification import AnnouncementStatus, NotificationType
from lms.schemas.common import CamelModel


class NotificationOut(CamelModel):
    id: str
    user_id: str
    title: str
    description: str
    notification_type: NotificationType = Field(alias="type")
    is_read: bool = Field(alias="read")
    related_id: str | None = None
    sender_id: str | None = None
    created_at: datetime
    updated_at: datetime | None = None


class NotificationCreate(CamelModel):
    user_id: str = Field(min_length=1, max_length=36)
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    notification_type: NotificationType = Field(alias="type")
    related_id: str | None = Field(default=None, max_length=36)


class NotificationMarkRead(CamelModel):
    notification_id: str = Field(min_length=1, max_length=36)


class NotificationListOut(CamelModel):
    notifications: list[NotificationOut]
    unread_count: int
    poll_interval_seconds: int


class UnreadCountOut(CamelModel):
    unread_count: int


class MarkAllReadOut(CamelModel):
    success: bool = True
    updated_count: int


class AnnouncementCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    notification_type: NotificationType = Field(default=NotificationType.announcement, alias="type")
    send_to_all: bool = True
    recipient_ids: list[str] = Field(default_factory=list, max_length=1000)
    scheduled_for: datetime | None = None

    @model_validator(mode="after")
    def require_recipients(self) -> "AnnouncementCreate":
        if not self.send_to_all and not self.recipient_ids:
            raise ValueError("recipientIds is required when sendToAll is false")
        return self


class AnnouncementOut(CamelModel):
    id: str
    title: str
    description: str
    notification_type: NotificationType = Field(alias="type")
    sender_id: str
    sender_name: str | None = None
    department: str | None = None
    send_to_all: bool
    recipient_ids: list[str]
    status: AnnouncementStatus
    scheduled_for: datetime | None = None
    delivered_count: int
    created_at: datetime


class ProcessScheduledOut(CamelModel):
    processed: int
    announcements: list[AnnouncementOut]
