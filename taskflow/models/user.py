from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from ..timeutils import utcnow


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """A registered account.

    Attributes:
        id: Unique identifier for the user
        username: 3-30 characters, letters, digits and underscores
        email: Lower-cased email address
        hashed_password: bcrypt hash, never serialized to clients
        role: Access role, ``admin`` unlocks user search
        created_at: Timestamp when the account was created
        updated_at: Timestamp of the last profile or password change
    """
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(max_length=30, unique=True, index=True)
    email: str = Field(max_length=254, unique=True, index=True)
    hashed_password: str
    role: Role = Field(default=Role.USER)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
