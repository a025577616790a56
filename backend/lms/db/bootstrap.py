from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

import lms.models  # noqa: F401
from lms.db.base import Base
from lms.services.routines import repair_latest_flags

logger = logging.getLogger(__name__)

REQUIRED_TABLES: set[str] = {
    "users",
    "faculty",
    "routines",
    "attendance_records",
    "absent_records",
    "handover_requests",
    "notifications",
    "announcements",
    "activity_logs",
}


def missing_tables(engine: Engine) -> list[str]:
    with engine.connect() as connection:
        existing = set(inspect(connection).get_table_names())
    return sorted(REQUIRED_TABLES - existing)


def ensure_runtime_schema(engine: Engine) -> None:
    """Create missing tables and restore one latest routine per faculty."""
    try:
        missing = missing_tables(engine)
        if missing:
            logger.info("Creating missing tables: %s", ", ".join(missing))
            Base.metadata.create_all(bind=engine)

        with Session(engine) as db:
            repaired = repair_latest_flags(db)
            if repaired:
                logger.warning("Cleared duplicate latest flag on %d routine version(s)", repaired)
            db.commit()
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
