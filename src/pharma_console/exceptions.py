from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None = None
    trace_id: str | None = None
    status_code: int = 0
    raw_payload: object | None = None

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class NetworkError(ApiError):
    """Transport failure or timeout before an HTTP response was returned."""


class ServerError(ApiError):
    """Non-2xx response carrying a structured message."""


class ValidationError(ApiError):
    """Rejected input: bad filter combination, 400/422 responses."""


class MalformedPayloadError(ValidationError):
    """A 2xx response whose body does not match the expected shape."""


class StateConflictError(ApiError):
    """Operation not legal for the current state of the target record."""


class NotFoundError(ApiError):
    pass


class AuthError(ApiError):
    """Authentication failed or the session token is no longer valid."""


class ForbiddenError(ApiError):
    pass


class RateLimitError(ApiError):
    pass
