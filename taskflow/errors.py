"""Application error type shared by services and the HTTP layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    INVALID_CREDENTIALS = "invalid_credentials"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal"


STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


class AppError(Exception):
    """An expected failure with a kind the HTTP layer maps to a status code.

    Attributes:
        kind: Discriminant used to pick the HTTP status
        message: Human readable message returned to the client
        fields: Per-field details, empty when the error is not field specific
    """

    def __init__(self, kind: ErrorKind, message: str, fields: Iterable[FieldError] = ()):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.fields: Tuple[FieldError, ...] = tuple(fields)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def __repr__(self) -> str:
        return f"AppError({self.kind.value!r}, {self.message!r})"


def validation_error(message: str, field: Optional[str] = None) -> AppError:
    fields = [FieldError(field, message)] if field else []
    return AppError(ErrorKind.VALIDATION, message, fields)


def unauthenticated(message: str) -> AppError:
    return AppError(ErrorKind.UNAUTHENTICATED, message)


def invalid_credentials(message: str = "Invalid credentials") -> AppError:
    return AppError(ErrorKind.INVALID_CREDENTIALS, message)


def forbidden(message: str) -> AppError:
    return AppError(ErrorKind.FORBIDDEN, message)


def not_found(message: str) -> AppError:
    return AppError(ErrorKind.NOT_FOUND, message)


def conflict(field: str, message: Optional[str] = None) -> AppError:
    message = message or f"Duplicate field value: {field}. Please use another value."
    return AppError(ErrorKind.CONFLICT, message, [FieldError(field, message)])


def rate_limited(message: str = "Too many requests, please try again later.") -> AppError:
    return AppError(ErrorKind.RATE_LIMITED, message)


def internal(message: str = "Server error") -> AppError:
    return AppError(ErrorKind.INTERNAL, message)
