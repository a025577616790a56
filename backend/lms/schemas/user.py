from datetime import datetime

from pydantic import EmailStr, Field, field_validator, model_validator

from lms.models.user import UserRole
from lms.schemas.common import CamelModel


class UserBase(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    role: UserRole
    department: str | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("department")
    @classmethod
    def normalize_department(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None


class UserCreate(UserBase):
    password: str = Field(min_length=8, max_length=128)
    designation: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=50)
    subjects_known: list[str] = Field(default_factory=list, max_length=100)

    @field_validator("subjects_known")
    @classmethod
    def normalize_subjects(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(item.strip() for item in value if item.strip()))

    @model_validator(mode="after")
    def drop_faculty_only_fields(self) -> "UserCreate":
        if self.role != UserRole.faculty:
            self.designation = None
            self.subjects_known = []
        return self


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserOut(UserBase):
    id: str
    is_active: bool
    created_at: datetime


class Token(CamelModel):
    access_token: str
    token_type: str
    user: UserOut
