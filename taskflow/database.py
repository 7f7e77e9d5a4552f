"""Database configuration for TaskFlow.

This module provides the database engine and table creation.
Use db.session.get_session() for per-request sessions.
"""

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Import models so they're registered with SQLModel.metadata
from .models import Task, User  # noqa: F401
from .config import Settings


def create_db_engine(settings: Settings) -> Engine:
    """Create the engine for ``settings.database_url``.

    SQLite connections are shared across FastAPI's threadpool, and an
    in-memory database keeps a single connection so every session sees it.
    """
    url = settings.database_url
    kwargs = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def create_db_and_tables(engine: Engine) -> None:
    """Create all database tables."""
    SQLModel.metadata.create_all(engine)
