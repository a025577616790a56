from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from lms.db.base import Base, utcnow


class EmploymentStatus(str, Enum):
    full_time = "Full-time"
    guest = "Guest"
    on_probation = "On-Probation"


class Faculty(Base):
    """Teaching profile. Shares its primary key with the owning user."""

    __tablename__ = "faculty"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False, default="General")
    designation: Mapped[str] = mapped_column(String(200), nullable=False, default="Lecturer")
    employment_status: Mapped[EmploymentStatus] = mapped_column(
        SAEnum(EmploymentStatus, name="employment_status"),
        nullable=False,
        default=EmploymentStatus.full_time,
    )
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    subjects_known: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
