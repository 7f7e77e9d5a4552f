"""TaskFlow application factory.

There is no module-level app; serve with
``uvicorn --factory taskflow.main:create_app`` or ``python -m taskflow``.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import auth, health, tasks, users
from .config import Settings, load_settings
from .database import create_db_and_tables, create_db_engine
from .errors import AppError, FieldError
from .logging_config import configure_logging
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .schemas.common import error_response, success_response
from .services.ai import TaskAnalyzer
from .services.passwords import PasswordHasher
from .services.rate_limit import SlidingWindowRateLimiter
from .services.tokens import TokenService
from .timeutils import utcnow

logger = logging.getLogger(__name__)

_LOCATION_PREFIXES = ("body", "query", "path", "header", "cookie")
_VALUE_ERROR_PREFIX = "Value error, "


def _field_name(loc) -> str:
    parts = [str(part) for part in loc if part not in _LOCATION_PREFIXES]
    return ".".join(parts) if parts else (str(loc[0]) if loc else "request")


def _field_message(msg: str) -> str:
    # pydantic prefixes messages raised from validators
    return msg[len(_VALUE_ERROR_PREFIX):] if msg.startswith(_VALUE_ERROR_PREFIX) else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=error_response(exc.message, exc.fields))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [
            FieldError(_field_name(err.get("loc", ())), _field_message(err.get("msg", "Invalid value")))
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content=error_response("Validation failed", fields))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "API endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        fields = []
        if app.state.settings.is_development:
            fields.append(FieldError("exception", f"{type(exc).__name__}: {exc}"))
        return JSONResponse(status_code=500, content=error_response("Server error", fields))


def create_app(settings: Optional[Settings] = None, clock: Callable[[], datetime] = utcnow) -> FastAPI:
    """Build the TaskFlow application from explicit settings."""
    settings = settings or load_settings()
    configure_logging(settings)

    engine = create_db_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_db_and_tables(engine)
        logger.info(f"TaskFlow started: environment={settings.environment}")
        yield
        engine.dispose()

    app = FastAPI(title="TaskFlow API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.clock = clock
    app.state.started_at = time.monotonic()
    app.state.token_service = TokenService.from_settings(settings)
    app.state.password_hasher = PasswordHasher(settings.bcrypt_rounds)
    app.state.task_analyzer = TaskAnalyzer.from_settings(settings)
    app.state.rate_limiter = SlidingWindowRateLimiter(
        settings.rate_limit_max_requests,
        settings.rate_limit_window_seconds,
    )

    # Middleware added last runs first
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        trust_proxy=settings.trust_proxy,
    )
    app.add_middleware(RequestLoggingMiddleware, trust_proxy=settings.trust_proxy)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept"],
    )

    register_exception_handlers(app)

    # Mount routers
    app.include_router(health.router, tags=["health"])
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])

    @app.get("/")
    def read_root():
        return success_response("Welcome to the TaskFlow API!")

    return app
