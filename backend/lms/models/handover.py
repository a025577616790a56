import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from lms.db.base import Base, utcnow


class HandoverStatus(str, Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


class HandoverRequest(Base):
    __tablename__ = "handover_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    faculty_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    faculty_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    class_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    routine_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    date_of_class: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    time_slot: Mapped[str] = mapped_column(String(50), nullable=False)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    course: Mapped[str] = mapped_column(String(200), nullable=False)
    room_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    substitute_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    substitute_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[HandoverStatus] = mapped_column(
        SAEnum(HandoverStatus, name="handover_status"),
        nullable=False,
        default=HandoverStatus.pending,
        index=True,
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
