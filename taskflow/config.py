"""Application configuration for TaskFlow.

Settings are read once from the environment at process start and passed
explicitly into ``create_app`` and the factories it calls.
"""

import os
import re
from datetime import timedelta
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_JWT_SECRET = "fallback-jwt-secret-change-in-production"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as ``7d``, ``12h``, ``30m`` or ``3600``.

    Raises:
        ValueError: If the value is not a non-negative integer with an
            optional ``s``/``m``/``h``/``d``/``w`` suffix.
    """
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Settings(BaseModel):
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 5000

    database_url: str = "sqlite:///./taskflow.db"
    database_echo: bool = False

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_expires_in: timedelta = timedelta(days=7)
    jwt_issuer: str = "taskflow-api"
    jwt_audience: str = "taskflow-users"
    jwt_algorithm: str = "HS256"

    bcrypt_rounds: int = 12

    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 100
    # Honour X-Forwarded-For only behind a trusted reverse proxy
    trust_proxy: bool = False

    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    log_level: str = "INFO"
    log_dir: Optional[str] = None

    # Task analysis is off when no key is configured
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def validate_for_environment(self) -> None:
        """Check values that are only wrong in combination or in production.

        Raises:
            ValueError: With every problem found, joined into one message.
        """
        errors = []
        if not self.jwt_secret:
            errors.append("JWT_SECRET is required")
        elif self.is_production and self.jwt_secret == DEFAULT_JWT_SECRET:
            errors.append("JWT_SECRET must be changed in production")
        if not 1 <= self.port <= 65535:
            errors.append("PORT must be between 1 and 65535")
        if not 4 <= self.bcrypt_rounds <= 31:
            errors.append("BCRYPT_SALT_ROUNDS must be between 4 and 31")
        elif self.is_production and self.bcrypt_rounds < 10:
            errors.append("BCRYPT_SALT_ROUNDS must be at least 10 in production")
        if self.jwt_expires_in <= timedelta(0):
            errors.append("JWT_EXPIRES_IN must be positive")
        if self.rate_limit_window_seconds < 0 or self.rate_limit_max_requests < 0:
            errors.append("Rate limit settings cannot be negative")

        if errors:
            raise ValueError(f"Configuration validation failed: {', '.join(errors)}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from environment variables (and a ``.env`` file)."""
    load_dotenv(env_file)

    cors = os.getenv("CORS_ORIGIN", "http://localhost:3000")
    settings = Settings(
        environment=os.getenv("TASKFLOW_ENV", "development"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./taskflow.db"),
        database_echo=_env_flag("DATABASE_ECHO"),
        jwt_secret=os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET),
        jwt_expires_in=parse_duration(os.getenv("JWT_EXPIRES_IN", "7d")),
        bcrypt_rounds=int(os.getenv("BCRYPT_SALT_ROUNDS", "12")),
        rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900")),
        rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100")),
        trust_proxy=_env_flag("TRUST_PROXY"),
        cors_origins=[origin.strip() for origin in cors.split(",") if origin.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_dir=os.getenv("LOG_DIR") or None,
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-3.5-turbo"),
    )
    settings.validate_for_environment()
    return settings
