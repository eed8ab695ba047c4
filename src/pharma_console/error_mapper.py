from __future__ import annotations

from typing import Any, Mapping

from .exceptions import (
    ApiError,
    AuthError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ServerError,
    StateConflictError,
    ValidationError,
)

_BY_STATUS: dict[int, tuple[type[ApiError], str]] = {
    400: (ValidationError, "BAD_REQUEST"),
    401: (AuthError, "UNAUTHENTICATED"),
    403: (ForbiddenError, "FORBIDDEN"),
    404: (NotFoundError, "NOT_FOUND"),
    409: (StateConflictError, "STATE_CONFLICT"),
    422: (ValidationError, "VALIDATION_FAILED"),
    429: (RateLimitError, "RATE_LIMITED"),
}


def field_errors(raw: Any) -> dict[str, list[str]] | None:
    """Normalize the API's `errors` member ({field: [messages]} or {field: message})."""
    if not isinstance(raw, Mapping) or not raw:
        return None
    normalized: dict[str, list[str]] = {}
    for field, messages in raw.items():
        if isinstance(messages, (list, tuple)):
            normalized[str(field)] = [str(message) for message in messages]
        else:
            normalized[str(field)] = [str(messages)]
    return normalized


def map_error(status_code: int, payload: Mapping[str, object] | None, trace_id: str | None) -> ApiError:
    """Turn an error response, or an error status inside a 2xx envelope, into an ApiError."""
    body = payload or {}
    error_type, default_code = _BY_STATUS.get(
        status_code, (ServerError, "SERVER_ERROR" if status_code >= 500 else "HTTP_ERROR")
    )
    errors = field_errors(body.get("errors"))

    message = str(body.get("message") or "").strip()
    if not message and errors:
        first_field = next(iter(errors))
        message = errors[first_field][0] if errors[first_field] else first_field
    if not message:
        message = "Request failed"

    details = errors if errors is not None else body.get("details") or body.get("data")
    body_trace = body.get("trace_id")
    return error_type(
        code=str(body.get("code") or default_code),
        message=message,
        details=details,
        trace_id=str(body_trace) if body_trace else trace_id,
        status_code=status_code,
        raw_payload=dict(body),
    )
