import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, Index, Integer, JSON, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from lms.db.base import Base, utcnow


class RoutineType(str, Enum):
    weekly = "weekly"
    monthly = "monthly"


class RoutineState(str, Enum):
    draft = "draft"
    published = "published"
    superseded = "superseded"


class Routine(Base):
    __tablename__ = "routines"
    __table_args__ = (
        # At most one latest version per faculty.
        Index(
            "uq_routines_latest_per_faculty",
            "faculty_id",
            unique=True,
            postgresql_where=text("is_latest"),
            sqlite_where=text("is_latest = 1"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    faculty_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    routine_type: Mapped[RoutineType] = mapped_column(
        SAEnum(RoutineType, name="routine_type"),
        nullable=False,
        default=RoutineType.weekly,
    )
    entries: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    previous_version_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    is_latest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    state: Mapped[RoutineState] = mapped_column(
        SAEnum(RoutineState, name="routine_state"),
        nullable=False,
        default=RoutineState.draft,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
