from datetime import datetime

from pydantic import Field, field_validator

from lms.models.faculty import EmploymentStatus
from lms.schemas.common import CamelModel


class FacultyOut(CamelModel):
    id: str
    name: str
    email: str
    department: str
    designation: str
    employment_status: EmploymentStatus
    phone: str | None = None
    subjects_known: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None


class FacultyUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    department: str | None = Field(default=None, min_length=1, max_length=200)
    designation: str | None = Field(default=None, min_length=1, max_length=200)
    employment_status: EmploymentStatus | None = None
    phone: str | None = Field(default=None, max_length=50)
    subjects_known: list[str] | None = Field(default=None, max_length=100)

    @field_validator("subjects_known")
    @classmethod
    def normalize_subjects(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return list(dict.fromkeys(item.strip() for item in value if item.strip()))
