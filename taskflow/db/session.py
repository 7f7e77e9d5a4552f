"""Database session management for TaskFlow."""

from typing import Generator

from fastapi import Request
from sqlmodel import Session


def get_session(request: Request) -> Generator[Session, None, None]:
    """Get a database session bound to the application's engine.

    Yields:
        Session: Database session, closed when the request finishes

    Usage:
        @router.get("/")
        def handler(session: Session = Depends(get_session)):
            ...
    """
    with Session(request.app.state.engine) as session:
        yield session
