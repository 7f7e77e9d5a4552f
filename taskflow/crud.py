"""Storage layer for users and tasks.

Stores wrap a SQLModel session and translate database failures into
AppError values. They hold no business rules; ownership scoping is applied
by passing ``user_id`` into every task query.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from .errors import AppError, conflict
from .models import Task, TaskPriority, User

logger = logging.getLogger(__name__)

# Sort keys accepted from clients, mapped to columns
TASK_SORT_FIELDS = ("due_date", "created_at", "updated_at", "priority", "title")

_PRIORITY_RANK = case(
    (Task.priority == TaskPriority.HIGH, 0),
    (Task.priority == TaskPriority.MEDIUM, 1),
    (Task.priority == TaskPriority.LOW, 2),
    else_=3,
)


def _conflict_from_integrity_error(exc: IntegrityError, fields: Iterable[str]) -> AppError:
    """Name the unique field a duplicate-key violation refers to."""
    text = str(exc.orig).lower()
    for field in fields:
        if field in text:
            return conflict(field)
    return conflict("unknown", "Duplicate field value. Please use another value.")


class UserStore:
    """Persistence for User records."""

    UNIQUE_FIELDS = ("email", "username")

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email.lower())).first()

    def get_by_username(self, username: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.username == username)).first()

    def find_taken_field(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> Optional[str]:
        """Return ``"email"`` or ``"username"`` if another user already has it."""
        if email:
            user = self.get_by_email(email)
            if user and user.id != exclude_id:
                return "email"
        if username:
            user = self.get_by_username(username)
            if user and user.id != exclude_id:
                return "username"
        return None

    def save(self, user: User) -> User:
        """Insert or update a user.

        Raises:
            AppError: CONFLICT if a unique field collides with another row
        """
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Unique constraint violated saving user: {e.orig}")
            raise _conflict_from_integrity_error(e, self.UNIQUE_FIELDS) from e
        self.session.refresh(user)
        return user

    def delete(self, user: User) -> None:
        self.session.delete(user)
        self.session.commit()

    def search(self, query: str, offset: int, limit: int) -> Tuple[List[User], int]:
        """Case-insensitive substring search over username and email, newest first."""
        statement = select(User)
        count_statement = select(func.count()).select_from(User)
        if query:
            needle = query.lower()
            condition = or_(
                func.lower(User.username).contains(needle, autoescape=True),
                func.lower(User.email).contains(needle, autoescape=True),
            )
            statement = statement.where(condition)
            count_statement = count_statement.where(condition)

        statement = statement.order_by(col(User.created_at).desc(), col(User.id).desc())
        users = list(self.session.exec(statement.offset(offset).limit(limit)).all())
        total = self.session.exec(count_statement).one()
        return users, total


class TaskStore:
    """Persistence for Task records, always scoped by owner."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int, task_id: int) -> Optional[Task]:
        return self.session.exec(
            select(Task).where(Task.id == task_id, Task.user_id == user_id)
        ).first()

    def all_for_user(self, user_id: int) -> List[Task]:
        statement = select(Task).where(Task.user_id == user_id).order_by(col(Task.created_at), col(Task.id))
        return list(self.session.exec(statement).all())

    def get_many(self, user_id: int, task_ids: Iterable[int]) -> List[Task]:
        ids = list(task_ids)
        if not ids:
            return []
        statement = select(Task).where(Task.user_id == user_id, col(Task.id).in_(ids))
        return list(self.session.exec(statement).all())

    def query(
        self,
        user_id: int,
        offset: int = 0,
        limit: int = 10,
        completed: Optional[bool] = None,
        category: Optional[str] = None,
        priority: Optional[TaskPriority] = None,
        search: Optional[str] = None,
        sort_by: str = "due_date",
        descending: bool = False,
    ) -> Tuple[List[Task], int]:
        """Filter, sort and paginate a user's tasks.

        Returns:
            The page of tasks and the total number of matching tasks
        """
        conditions = [Task.user_id == user_id]
        if completed is not None:
            conditions.append(Task.completed == completed)
        if category:
            conditions.append(Task.category == category)
        if priority:
            conditions.append(Task.priority == priority)
        if search:
            needle = search.lower()
            conditions.append(
                or_(
                    func.lower(Task.title).contains(needle, autoescape=True),
                    func.lower(Task.description).contains(needle, autoescape=True),
                )
            )

        if sort_by not in TASK_SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort_by}")
        sort_column = _PRIORITY_RANK if sort_by == "priority" else getattr(Task, sort_by)
        # Ranking puts high first, so "descending priority" means rank ascending
        if sort_by == "priority":
            descending = not descending
        order = sort_column.desc() if descending else sort_column.asc()

        statement = (
            select(Task)
            .where(*conditions)
            .order_by(order, col(Task.id))
            .offset(offset)
            .limit(limit)
        )
        tasks = list(self.session.exec(statement).all())
        total = self.session.exec(select(func.count()).select_from(Task).where(*conditions)).one()
        return tasks, total

    def overdue(self, user_id: int, now: datetime) -> List[Task]:
        statement = (
            select(Task)
            .where(
                Task.user_id == user_id,
                Task.completed == False,  # noqa: E712
                col(Task.due_date).is_not(None),
                col(Task.due_date) < now,
            )
            .order_by(col(Task.due_date), _PRIORITY_RANK)
        )
        return list(self.session.exec(statement).all())

    def due_between(self, user_id: int, start: datetime, end: datetime) -> List[Task]:
        """Incomplete tasks with ``start <= due_date <= end``."""
        statement = (
            select(Task)
            .where(
                Task.user_id == user_id,
                Task.completed == False,  # noqa: E712
                col(Task.due_date) >= start,
                col(Task.due_date) <= end,
            )
            .order_by(col(Task.due_date), _PRIORITY_RANK)
        )
        return list(self.session.exec(statement).all())

    def count(self, user_id: int, *conditions) -> int:
        statement = select(func.count()).select_from(Task).where(Task.user_id == user_id, *conditions)
        return self.session.exec(statement).one()

    def count_by(self, user_id: int, column) -> Dict[str, int]:
        statement = (
            select(column, func.count())
            .where(Task.user_id == user_id)
            .group_by(column)
        )
        counts = {}
        for key, total in self.session.exec(statement).all():
            counts[key.value if isinstance(key, TaskPriority) else key] = total
        return counts

    def save(self, task: Task) -> Task:
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        return task

    def save_all(self, tasks: List[Task]) -> None:
        self.session.add_all(tasks)
        self.session.commit()

    def delete(self, task: Task) -> None:
        self.session.delete(task)
        self.session.commit()

    def delete_for_user(self, user_id: int) -> int:
        """Delete every task a user owns; flushed, committed by the caller."""
        tasks = self.all_for_user(user_id)
        for task in tasks:
            self.session.delete(task)
        self.session.flush()
        return len(tasks)
