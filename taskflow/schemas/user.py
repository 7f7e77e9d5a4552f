from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, ValidationInfo, field_validator, model_validator

from ..models import Role
from .common import CamelModel

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"
MIN_PASSWORD_LENGTH = 6


class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    confirm_password: Optional[str] = None

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v is not None and "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class ProfileUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: Optional[EmailStr] = None

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.username is None and self.email is None:
            raise ValueError("At least one field (username or email) is required")
        return self


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=128)
    confirm_password: str

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if "new_password" in info.data and v != info.data["new_password"]:
            raise ValueError("Passwords do not match")
        return v


class AccountDelete(CamelModel):
    password: str = Field(..., min_length=1)


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    role: Role
    created_at: datetime
    updated_at: datetime
    # hashed_password is never exposed


class UserStats(CamelModel):
    total_tasks: int = 0
    completed_tasks: int = 0
    high_priority_tasks: int = 0


class ActivityDay(CamelModel):
    date: str
    tasks_created: int = 0
    tasks_completed: int = 0
