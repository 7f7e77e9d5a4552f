from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from ..models import Task, TaskPriority, TaskStatus
from ..timeutils import to_naive_utc
from .common import CamelModel


class _TaskFields(CamelModel):
    @field_validator("title", "description", "category", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("due_date", check_fields=False)
    @classmethod
    def normalize_due_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class TaskCreate(_TaskFields):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=1000)
    due_date: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    category: Optional[str] = Field(None, max_length=50)
    completed: bool = False
    # user_id is derived from auth, not part of the create payload


class TaskUpdate(_TaskFields):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    due_date: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    category: Optional[str] = Field(None, max_length=50)
    completed: Optional[bool] = None


class BulkTaskUpdate(CamelModel):
    task_ids: List[int] = Field(..., min_length=1, max_length=100)
    updates: TaskUpdate


class TaskRead(CamelModel):
    id: int
    user_id: int
    title: str
    description: str
    due_date: Optional[datetime]
    priority: TaskPriority
    category: str
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    status: TaskStatus

    @classmethod
    def from_task(cls, task: Task, status: TaskStatus) -> "TaskRead":
        return cls.model_validate({**task.model_dump(), "status": status})


class TaskStatistics(CamelModel):
    total: int
    completed: int
    pending: int
    overdue: int
    due_this_week: int
    by_priority: Dict[str, int]
    by_category: Dict[str, int]
    insights: str = ""


class SuggestedDueDate(CamelModel):
    priority: TaskPriority
    due_date: datetime
