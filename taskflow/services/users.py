import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from ..crud import TaskStore, UserStore
from ..errors import conflict, invalid_credentials, not_found, validation_error
from ..models import Task, TaskPriority, User
from ..schemas.common import MAX_PAGE_SIZE
from ..schemas.task import TaskRead
from ..schemas.user import ActivityDay, UserOut, UserStats
from ..timeutils import utcnow
from .passwords import PasswordHasher
from .tasks import derive_status

logger = logging.getLogger(__name__)


class UserService:
    """Profile management and per-user reporting."""

    def __init__(
        self,
        users: UserStore,
        tasks: TaskStore,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.tasks = tasks
        self.hasher = hasher
        self.clock = clock

    def _get_user(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise not_found("User not found")
        return user

    def get_user_profile(self, user_id: int) -> Tuple[User, UserStats]:
        user = self._get_user(user_id)
        stats = UserStats(
            total_tasks=self.tasks.count(user_id),
            completed_tasks=self.tasks.count(user_id, Task.completed == True),  # noqa: E712
            high_priority_tasks=self.tasks.count(user_id, Task.priority == TaskPriority.HIGH),
        )
        return user, stats

    def update_user_profile(
        self,
        user_id: int,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Change username and/or email, keeping both unique.

        Raises:
            AppError: VALIDATION if nothing to change, CONFLICT if taken
        """
        if not username and not email:
            raise validation_error("At least one field (username or email) is required")
        email = email.lower() if email else None

        user = self._get_user(user_id)
        taken = self.users.find_taken_field(email=email, username=username, exclude_id=user_id)
        if taken:
            raise conflict(taken, "Email or username already taken")

        if username:
            user.username = username
        if email:
            user.email = email
        user.updated_at = self.clock()
        return self.users.save(user)

    def delete_user_account(self, user_id: int, password: str) -> None:
        """Remove the account and every task it owns."""
        user = self._get_user(user_id)
        if not self.hasher.verify(password, user.hashed_password):
            raise invalid_credentials("Invalid password")
        removed = self.tasks.delete_for_user(user_id)
        self.users.delete(user)
        logger.info(f"Account deleted: user={user_id} tasks_removed={removed}")

    def export_user_data(self, user_id: int) -> dict:
        """Self-contained snapshot of the account and all its tasks."""
        user = self._get_user(user_id)
        now = self.clock()
        tasks = self.tasks.all_for_user(user_id)
        return {
            "user": UserOut.model_validate(user),
            "tasks": [
                TaskRead.from_task(task, derive_status(task.completed, task.due_date, now))
                for task in tasks
            ],
            "exported_at": now,
            "total_tasks": len(tasks),
            "completed_tasks": sum(1 for task in tasks if task.completed),
        }

    def search_users(self, query: str, page: int = 1, limit: int = 10) -> Tuple[List[User], int]:
        page = max(page, 1)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        return self.users.search(query or "", offset=(page - 1) * limit, limit=limit)

    def get_user_activity(self, user_id: int, days: int = 30) -> List[ActivityDay]:
        """Tasks created and completed per day over the last ``days`` days."""
        self._get_user(user_id)
        start = self.clock() - timedelta(days=days)
        buckets = defaultdict(lambda: {"tasks_created": 0, "tasks_completed": 0})
        for task in self.tasks.all_for_user(user_id):
            if task.created_at >= start:
                buckets[task.created_at.strftime("%Y-%m-%d")]["tasks_created"] += 1
            if task.completed_at is not None and task.completed_at >= start:
                buckets[task.completed_at.strftime("%Y-%m-%d")]["tasks_completed"] += 1
        return [ActivityDay(date=day, **counts) for day, counts in sorted(buckets.items())]
