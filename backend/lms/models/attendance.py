import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from lms.db.base import Base, utcnow


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("faculty_id", "class_date", "entry_id", name="uq_attendance_faculty_date_entry"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    faculty_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    class_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    entry_id: Mapped[str] = mapped_column(String(64), nullable=False)
    routine_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    time_slot: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # One of ClassStatus values.
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    absent_students: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    marked_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    marked_by_role: Mapped[str] = mapped_column(String(20), nullable=False, default="faculty")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class AbsentRecord(Base):
    __tablename__ = "absent_records"
    __table_args__ = (
        UniqueConstraint("faculty_id", "class_date", "entry_id", name="uq_absent_faculty_date_entry"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    class_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    faculty_id: Mapped[str] = mapped_column(String(36), nullable=False)
    faculty_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    routine_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    entry_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    absent_students: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    recorded_by: Mapped[str] = mapped_column(String(20), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
