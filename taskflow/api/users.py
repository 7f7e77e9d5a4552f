from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ..dependencies.auth import get_current_user, get_optional_user, require_admin
from ..dependencies.services import get_user_service
from ..models import User
from ..schemas.common import Pagination, dump, success_response
from ..schemas.user import AccountDelete, ProfileUpdate, UserOut
from ..services.users import UserService

router = APIRouter()


@router.get("/profile")
def get_user_profile(user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)):
    profile, stats = users.get_user_profile(user.id)
    return success_response(
        "Profile retrieved successfully",
        {"user": UserOut.model_validate(profile), "stats": stats},
    )


@router.put("/profile")
def update_user_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    updated = users.update_user_profile(user.id, username=payload.username, email=payload.email)
    return success_response("Profile updated successfully", {"user": UserOut.model_validate(updated)})


@router.delete("/account")
def delete_user_account(
    payload: AccountDelete,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    users.delete_user_account(user.id, payload.password)
    return success_response("Account deleted successfully")


@router.get("/activity")
def get_user_activity(
    days: int = Query(30, ge=1, le=365),
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return success_response("Activity retrieved successfully", users.get_user_activity(user.id, days))


@router.get("/export")
def export_user_data(user: User = Depends(get_current_user), users: UserService = Depends(get_user_service)):
    export = users.export_user_data(user.id)
    data = {
        "user": export["user"],
        "tasks": export["tasks"],
        "exportedAt": export["exported_at"].isoformat(),
        "totalTasks": export["total_tasks"],
        "completedTasks": export["completed_tasks"],
    }
    filename = f"taskflow-export-{user.username}.json"
    return JSONResponse(
        content=success_response("Data exported successfully", dump(data)),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Anonymous callers reach require_admin with no identity and get a 401
@router.get("/search", dependencies=[Depends(get_optional_user), Depends(require_admin)])
def search_users(
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    users: UserService = Depends(get_user_service),
):
    found, total = users.search_users(q, page, limit)
    return success_response(
        "Users retrieved successfully",
        [UserOut.model_validate(u) for u in found],
        Pagination.build(page, limit, total),
    )
