from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from ..timeutils import utcnow

DEFAULT_CATEGORY = "uncategorized"


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    """Derived on read, never stored."""
    PENDING = "pending"
    DUE_SOON = "due-soon"
    OVERDUE = "overdue"
    COMPLETED = "completed"


class Task(SQLModel, table=True):
    """Represents a single task owned by a user.

    Attributes:
        id: Unique identifier for the task
        user_id: Foreign key to the owning user
        title: Task title (required)
        description: Optional detailed description
        due_date: Optional due date, in the future when set
        priority: Priority level (high, medium, low)
        category: Free text category
        completed: Whether the task is completed
        completed_at: Set exactly while ``completed`` is true
        created_at: Timestamp when task was created
        updated_at: Timestamp when task was last updated
    """
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    title: str = Field(max_length=100)
    description: str = Field(default="", max_length=1000)
    due_date: Optional[datetime] = Field(default=None, index=True)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    category: str = Field(default=DEFAULT_CATEGORY, max_length=50)
    completed: bool = Field(default=False, index=True)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
