"""Shared field formats and boundary validation helpers."""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
TIME_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

_UUID_RE = re.compile(UUID_PATTERN)
_DATE_RE = re.compile(DATE_PATTERN)

ModelT = TypeVar("ModelT", bound=BaseModel)


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def require_uuid(value: Any, field_name: str) -> str:
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required")
    if not is_uuid(value):
        raise ValidationError(f"{field_name} must be a valid UUID")
    return value


def parse_calendar_date(value: Any, field_name: str = "date") -> date:
    """Parse ``YYYY-MM-DD`` and reject strings that are not real calendar dates."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError(f"{field_name} must use YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field_name} is not a valid calendar date") from exc


def format_error_entry(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "Invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def format_validation_error(exc: PydanticValidationError | Any) -> str:
    """Flatten pydantic errors into a single human readable message."""
    return "; ".join(format_error_entry(error) for error in exc.errors()) or "Invalid request"


def parse_model(model: Type[ModelT], payload: Any) -> ModelT:
    """Validate ``payload`` into ``model``, raising the service-level ValidationError."""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(format_validation_error(exc)) from exc
