from datetime import datetime

from lms.schemas.common import CamelModel


class ActiveFacultyOut(CamelModel):
    id: str
    name: str
    department: str | None = None
    last_active: datetime


class ActiveFacultyListOut(CamelModel):
    count: int
    window_minutes: int
    active_faculty: list[ActiveFacultyOut]


class PresenceOut(CamelModel):
    success: bool = True
    is_online: bool
    last_active: datetime | None = None
