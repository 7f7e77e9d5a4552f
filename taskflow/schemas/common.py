"""Response envelope helpers shared by all routers."""

import math
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..errors import FieldError

MAX_PAGE_SIZE = 100


class CamelModel(BaseModel):
    """Serializes as camelCase; accepts camelCase or snake_case input."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


def dump(value: Any) -> Any:
    """Convert models (or lists/dicts of them) to JSON-ready camelCase data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (list, tuple)):
        return [dump(item) for item in value]
    if isinstance(value, dict):
        return {key: dump(item) for key, item in value.items()}
    return value


def success_response(message: str, data: Any = None, pagination: Optional[Pagination] = None) -> dict:
    response = {"success": True, "message": message}
    if data is not None:
        response["data"] = dump(data)
    if pagination is not None:
        response["pagination"] = dump(pagination)
    return response


def error_response(message: str, errors: Iterable[FieldError] = ()) -> dict:
    response = {"success": False, "message": message}
    errors = [{"field": e.field, "message": e.message} for e in errors]
    if errors:
        response["errors"] = errors
    return response
