"""FastAPI providers wiring stores and services to the request session."""

from fastapi import Depends, Request
from sqlmodel import Session

from ..crud import TaskStore, UserStore
from ..db.session import get_session
from ..services.auth import AuthService
from ..services.passwords import PasswordHasher
from ..services.tasks import TaskService
from ..services.tokens import TokenService
from ..services.users import UserService


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_user_store(session: Session = Depends(get_session)) -> UserStore:
    return UserStore(session)


def get_task_store(session: Session = Depends(get_session)) -> TaskStore:
    return TaskStore(session)


def get_auth_service(
    users: UserStore = Depends(get_user_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(users, hasher, tokens)


def get_task_service(request: Request, store: TaskStore = Depends(get_task_store)) -> TaskService:
    return TaskService(store, clock=request.app.state.clock, analyzer=request.app.state.task_analyzer)


def get_user_service(
    request: Request,
    users: UserStore = Depends(get_user_store),
    tasks: TaskStore = Depends(get_task_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserService:
    return UserService(users, tasks, hasher, clock=request.app.state.clock)
