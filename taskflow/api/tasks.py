from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..dependencies.auth import get_current_user
from ..dependencies.services import get_task_service
from ..models import Task, User
from ..schemas.common import Pagination, success_response
from ..schemas.task import BulkTaskUpdate, SuggestedDueDate, TaskCreate, TaskRead, TaskUpdate
from ..services.tasks import TaskService, calculate_due_date

router = APIRouter(dependencies=[Depends(get_current_user)])

# Clients send camelCase sort keys; snake_case is accepted too
SORT_FIELDS = {
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "priority": "priority",
    "title": "title",
}
SORT_FIELDS.update({value: value for value in list(SORT_FIELDS.values())})


def _read(service: TaskService, task: Task) -> TaskRead:
    return TaskRead.from_task(task, service.status_of(task))


@router.get("")
def get_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    completed: Optional[bool] = None,
    category: Optional[str] = None,
    priority: Optional[str] = Query(None, pattern="^(all|high|medium|low)$"),
    search: Optional[str] = None,
    sort_by: str = Query("dueDate", alias="sortBy", pattern="^(" + "|".join(SORT_FIELDS) + ")$"),
    sort_order: str = Query("asc", alias="sortOrder", pattern="^(asc|desc)$"),
    user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    tasks, total = service.list_tasks(
        user.id,
        page=page,
        limit=limit,
        completed=completed,
        category=category,
        priority=priority,
        search=search,
        sort_by=SORT_FIELDS[sort_by],
        sort_order=sort_order,
    )
    return success_response(
        "Tasks retrieved successfully",
        [_read(service, task) for task in tasks],
        Pagination.build(page, limit, total),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = service.create_task(user.id, payload)
    return success_response("Task created successfully", _read(service, task))


@router.get("/stats/overview")
def get_task_stats(user: User = Depends(get_current_user), service: TaskService = Depends(get_task_service)):
    return success_response("Task statistics retrieved successfully", service.get_statistics(user.id))


@router.get("/due-soon")
def get_due_soon_tasks(
    days: int = Query(7, ge=1, le=365),
    user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    tasks = service.find_due_soon_tasks(user.id, days)
    return success_response("Due soon tasks retrieved successfully", [_read(service, t) for t in tasks])


@router.get("/overdue")
def get_overdue_tasks(user: User = Depends(get_current_user), service: TaskService = Depends(get_task_service)):
    tasks = service.find_overdue_tasks(user.id)
    return success_response("Overdue tasks retrieved successfully", [_read(service, t) for t in tasks])


@router.get("/suggested-due-date")
def get_suggested_due_date(
    priority: str = Query("medium", pattern="^(high|medium|low)$"),
    service: TaskService = Depends(get_task_service),
):
    due_date = calculate_due_date(priority, service.clock())
    return success_response(
        "Suggested due date calculated",
        SuggestedDueDate(priority=priority, due_date=due_date),
    )


@router.patch("/bulk")
def bulk_update_tasks(
    payload: BulkTaskUpdate,
    user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    modified = service.bulk_update(user.id, payload.task_ids, payload.updates)
    return success_response("Tasks updated successfully", {"modifiedCount": modified})


@router.get("/{task_id}")
def get_task(task_id: int, user: User = Depends(get_current_user), service: TaskService = Depends(get_task_service)):
    return success_response("Task retrieved successfully", _read(service, service.get_task(user.id, task_id)))


@router.put("/{task_id}")
@router.patch("/{task_id}")
def update_task(
    task_id: int,
    payload: TaskUpdate,
    user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = service.update_task(user.id, task_id, payload)
    return success_response("Task updated successfully", _read(service, task))


@router.delete("/{task_id}")
def delete_task(task_id: int, user: User = Depends(get_current_user), service: TaskService = Depends(get_task_service)):
    service.delete_task(user.id, task_id)
    return success_response("Task deleted successfully")


@router.patch("/{task_id}/toggle")
def toggle_task_completion(
    task_id: int,
    user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = service.toggle_completion(user.id, task_id)
    return success_response("Task completion toggled", _read(service, task))
