"""Models package."""
from .task import Task, TaskStatus, TaskPriority, DEFAULT_CATEGORY
from .user import User, Role

__all__ = ["Task", "TaskStatus", "TaskPriority", "DEFAULT_CATEGORY", "User", "Role"]
