from fastapi import APIRouter, Depends, Query, status

from ..dependencies.auth import get_current_user
from ..dependencies.services import get_auth_service, get_user_service
from ..models import User
from ..schemas.common import success_response
from ..schemas.user import LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest, UserOut
from ..services.auth import AuthService
from ..services.users import UserService

router = APIRouter()


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    user, token = auth.register(payload.username, payload.email, payload.password)
    return success_response(
        "User registered successfully",
        {"user": UserOut.model_validate(user), "token": token},
    )


@router.post("/login")
def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    user, token = auth.login(payload.email, payload.password)
    return success_response("Login successful", {"user": UserOut.model_validate(user), "token": token})


@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    return success_response("Profile retrieved successfully", {"user": UserOut.model_validate(user)})


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    updated = users.update_user_profile(user.id, username=payload.username, email=payload.email)
    return success_response("Profile updated successfully", {"user": UserOut.model_validate(updated)})


@router.put("/password")
def change_password(
    payload: PasswordChange,
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    auth.change_password(user.id, payload.current_password, payload.new_password)
    return success_response("Password updated successfully")


@router.post("/refresh")
def refresh_token(user: User = Depends(get_current_user), auth: AuthService = Depends(get_auth_service)):
    return success_response("Token refreshed successfully", {"token": auth.refresh_token(user.id)})


@router.post("/logout")
def logout(user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return success_response("Logout successful")


@router.get("/check-email")
def check_email(
    email: str = Query(..., min_length=1),
    auth: AuthService = Depends(get_auth_service),
):
    return success_response("Email availability checked", {"available": auth.check_email_availability(email)})


@router.get("/check-username")
def check_username(
    username: str = Query(..., min_length=1),
    auth: AuthService = Depends(get_auth_service),
):
    available = auth.check_username_availability(username)
    return success_response("Username availability checked", {"available": available})
