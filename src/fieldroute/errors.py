"""Error taxonomy shared by services and the HTTP layer."""

from __future__ import annotations


class RouteEngineError(Exception):
    """Base class for failures with a stable reason code and HTTP status."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(RouteEngineError):
    status_code = 400
    code = "validation_error"


class NotFound(RouteEngineError):
    status_code = 404
    code = "not_found"


class ProviderError(RouteEngineError):
    """The travel-time provider failed after its retry budget."""

    status_code = 502
    code = "provider_error"


class RequestTimeout(RouteEngineError):
    status_code = 504
    code = "timeout"


class InternalError(RouteEngineError):
    status_code = 500
    code = "internal_error"


class StorageError(InternalError):
    code = "storage_error"
