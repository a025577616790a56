import os

# The app module builds its engine at import time; keep it off the real database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from lms.api.deps import get_clock, get_db  # noqa: E402
from lms.core.clock import FixedClock  # noqa: E402
from lms.db.base import Base  # noqa: E402
from lms.main import app  # noqa: E402
import lms.models  # noqa: E402,F401


def today_at(hour: int, minute: int = 0) -> datetime:
    """Naive local moment on the current UTC date, matching routine validity windows."""
    return datetime.now(timezone.utc).replace(tzinfo=None, hour=hour, minute=minute, second=0, microsecond=0)


@pytest.fixture()
def clock():
    return FixedClock(today_at(8, 0))


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def client(session_factory, clock):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
