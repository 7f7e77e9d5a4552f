"""Task lifecycle rules and the task service."""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlmodel import col

from ..crud import TaskStore
from ..errors import not_found, validation_error
from ..models import DEFAULT_CATEGORY, Task, TaskPriority, TaskStatus
from ..schemas.common import MAX_PAGE_SIZE
from ..schemas.task import TaskCreate, TaskStatistics, TaskUpdate
from ..timeutils import utcnow
from .ai import DEFAULT_ANALYSIS, TaskAnalyzer

logger = logging.getLogger(__name__)

DUE_SOON_WINDOW = timedelta(days=7)

SUGGESTED_DUE_OFFSETS = {
    TaskPriority.HIGH: timedelta(days=1),
    TaskPriority.MEDIUM: timedelta(days=3),
    TaskPriority.LOW: timedelta(days=7),
}

# Fields a caller may null out through an update
_NULLABLE_UPDATE_FIELDS = {"due_date"}


def derive_status(completed: bool, due_date: Optional[datetime], now: datetime) -> TaskStatus:
    """Completed wins, then overdue, then due-soon, otherwise pending."""
    if completed:
        return TaskStatus.COMPLETED
    if due_date is not None and due_date < now:
        return TaskStatus.OVERDUE
    if due_date is not None and due_date <= now + DUE_SOON_WINDOW:
        return TaskStatus.DUE_SOON
    return TaskStatus.PENDING


def apply_completion(task: Task, now: datetime) -> Task:
    """Keep ``completed_at`` set exactly while ``completed`` is true.

    Called right before every persist. An already completed task keeps its
    original completion time.
    """
    if task.completed and task.completed_at is None:
        task.completed_at = now
    elif not task.completed and task.completed_at is not None:
        task.completed_at = None
    return task


def calculate_due_date(priority, now: Optional[datetime] = None) -> datetime:
    """Suggest a due date from a priority: high 1 day, medium 3, low 7.

    Unknown priorities get the medium offset. This is advice for clients,
    stored tasks are never forced to it.
    """
    now = now or utcnow()
    try:
        priority = TaskPriority(priority)
    except ValueError:
        return now + SUGGESTED_DUE_OFFSETS[TaskPriority.MEDIUM]
    return now + SUGGESTED_DUE_OFFSETS[priority]


class TaskService:
    """CRUD and status queries over a single user's tasks.

    Every method takes the authenticated ``user_id``; a task owned by
    someone else is reported as not found.
    """

    def __init__(
        self,
        store: TaskStore,
        clock: Callable[[], datetime] = utcnow,
        analyzer: Optional[TaskAnalyzer] = None,
    ):
        self.store = store
        self.clock = clock
        self.analyzer = analyzer or TaskAnalyzer()

    def status_of(self, task: Task) -> TaskStatus:
        return derive_status(task.completed, task.due_date, self.clock())

    def _check_due_date(self, due_date: Optional[datetime], now: datetime) -> None:
        if due_date is not None and due_date <= now:
            raise validation_error("Due date must be in the future", "dueDate")

    def _persist(self, task: Task, now: datetime) -> Task:
        task.updated_at = now
        apply_completion(task, now)
        return self.store.save(task)

    def create_task(self, user_id: int, data: TaskCreate) -> Task:
        now = self.clock()
        self._check_due_date(data.due_date, now)

        category = data.category
        priority = data.priority if "priority" in data.model_fields_set else None
        if not category or priority is None:
            analysis = self.analyzer.analyze_task(data.title, data.description or "") or DEFAULT_ANALYSIS
            category = category or analysis.category
            priority = priority or analysis.priority

        task = Task(
            user_id=user_id,
            title=data.title,
            description=data.description or "",
            due_date=data.due_date,
            priority=priority,
            category=category,
            completed=data.completed,
            created_at=now,
        )
        task = self._persist(task, now)
        logger.info(f"Task created: task={task.id} user={user_id}")
        return task

    def get_task(self, user_id: int, task_id: int) -> Task:
        task = self.store.get(user_id, task_id)
        if task is None:
            raise not_found("Task not found")
        return task

    def _apply_updates(self, task: Task, data: TaskUpdate, now: datetime) -> None:
        updates = data.model_dump(exclude_unset=True)
        if updates.get("due_date") is not None:
            self._check_due_date(updates["due_date"], now)
        for field, value in updates.items():
            if value is None and field not in _NULLABLE_UPDATE_FIELDS:
                continue
            if field == "category" and not value:
                value = DEFAULT_CATEGORY
            setattr(task, field, value)

    def update_task(self, user_id: int, task_id: int, data: TaskUpdate) -> Task:
        task = self.get_task(user_id, task_id)
        now = self.clock()
        text_changed = (data.title and data.title != task.title) or (
            data.description and data.description != task.description
        )
        self._apply_updates(task, data, now)

        # Re-analyze edited text; explicitly sent category/priority win
        if text_changed:
            analysis = self.analyzer.analyze_task(task.title, task.description)
            if analysis is not None:
                if not data.category:
                    task.category = analysis.category
                if data.priority is None:
                    task.priority = analysis.priority
        return self._persist(task, now)

    def toggle_completion(self, user_id: int, task_id: int) -> Task:
        task = self.get_task(user_id, task_id)
        task.completed = not task.completed
        return self._persist(task, self.clock())

    def delete_task(self, user_id: int, task_id: int) -> None:
        task = self.get_task(user_id, task_id)
        self.store.delete(task)
        logger.info(f"Task deleted: task={task_id} user={user_id}")

    def bulk_update(self, user_id: int, task_ids: List[int], data: TaskUpdate) -> int:
        """Apply the same update to several of the user's tasks.

        Ids that do not exist or belong to another user are skipped.

        Returns:
            Number of tasks modified
        """
        now = self.clock()
        tasks = self.store.get_many(user_id, task_ids)
        for task in tasks:
            self._apply_updates(task, data, now)
            task.updated_at = now
            apply_completion(task, now)
        self.store.save_all(tasks)
        return len(tasks)

    def list_tasks(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 10,
        completed: Optional[bool] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: str = "due_date",
        sort_order: str = "asc",
    ) -> Tuple[List[Task], int]:
        page = max(page, 1)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        if category == "all":
            category = None
        if priority == "all":
            priority = None
        return self.store.query(
            user_id,
            offset=(page - 1) * limit,
            limit=limit,
            completed=completed,
            category=category,
            priority=TaskPriority(priority) if priority else None,
            search=search,
            sort_by=sort_by,
            descending=sort_order == "desc",
        )

    def find_overdue_tasks(self, user_id: int) -> List[Task]:
        return self.store.overdue(user_id, self.clock())

    def find_due_soon_tasks(self, user_id: int, days: int = 7) -> List[Task]:
        now = self.clock()
        return self.store.due_between(user_id, now, now + timedelta(days=days))

    def get_statistics(self, user_id: int) -> TaskStatistics:
        now = self.clock()
        total = self.store.count(user_id)
        completed = self.store.count(user_id, Task.completed == True)  # noqa: E712
        overdue = self.store.count(
            user_id,
            Task.completed == False,  # noqa: E712
            col(Task.due_date) < now,
        )
        due_this_week = self.store.count(
            user_id,
            Task.completed == False,  # noqa: E712
            col(Task.due_date) >= now,
            col(Task.due_date) <= now + DUE_SOON_WINDOW,
        )
        insights = ""
        if total > 0 and self.analyzer.enabled:
            insights = self.analyzer.generate_insights(self.store.all_for_user(user_id))
        return TaskStatistics(
            insights=insights,
            total=total,
            completed=completed,
            pending=total - completed,
            overdue=overdue,
            due_this_week=due_this_week,
            by_priority=self.store.count_by(user_id, Task.priority),
            by_category=self.store.count_by(user_id, Task.category),
        )
