"""Shared fixtures for the TaskFlow test suite."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from taskflow.config import Settings
from taskflow.crud import TaskStore, UserStore
from taskflow.database import create_db_and_tables, create_db_engine
from taskflow.main import create_app
from taskflow.services.auth import AuthService
from taskflow.services.passwords import PasswordHasher
from taskflow.services.tasks import TaskService
from taskflow.services.tokens import TokenService
from taskflow.services.users import UserService

TEST_SECRET = "test-secret-key"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings():
    return Settings(
        environment="test",
        database_url="sqlite://",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        rate_limit_max_requests=0,
    )


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def session(settings):
    engine = create_db_engine(settings)
    create_db_and_tables(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture(scope="session")
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens():
    return TokenService(TEST_SECRET)


@pytest.fixture
def auth_service(session, hasher, tokens):
    return AuthService(UserStore(session), hasher, tokens)


@pytest.fixture
def task_service(session, clock):
    return TaskService(TaskStore(session), clock=clock)


@pytest.fixture
def user_service(session, hasher, clock):
    return UserService(UserStore(session), TaskStore(session), hasher, clock=clock)


@pytest.fixture
def alice(auth_service):
    user, _ = auth_service.register("alice", "alice@taskflow.io", "secret123")
    return user


@pytest.fixture
def bob(auth_service):
    user, _ = auth_service.register("bob", "bob@taskflow.io", "hunter22")
    return user


@pytest.fixture
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def register(client, username="alice", email=None, password="secret123"):
    """Register through the API and return (user_json, auth_headers)."""
    response = client.post(
        "/api/auth/register",
        json={"username": username, "email": email or f"{username}@taskflow.io", "password": password},
    )
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}
