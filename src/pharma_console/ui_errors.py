from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import pydantic

from .exceptions import ApiError, NetworkError, ValidationError


class ErrorKind(str, Enum):
    NETWORK = "network"
    SERVER = "server"
    VALIDATION = "validation"


@dataclass(frozen=True)
class ErrorInfo:
    """What a report panel shows when its fetch failed."""

    kind: ErrorKind
    code: str
    message: str
    trace_id: str | None = None
    status_code: int = 0

    @classmethod
    def from_exception(cls, exc: Exception) -> "ErrorInfo":
        if isinstance(exc, NetworkError):
            return cls(ErrorKind.NETWORK, exc.code, exc.message, exc.trace_id, exc.status_code)
        if isinstance(exc, ValidationError):
            return cls(ErrorKind.VALIDATION, exc.code, exc.message, exc.trace_id, exc.status_code)
        if isinstance(exc, ApiError):
            return cls(ErrorKind.SERVER, exc.code, exc.message, exc.trace_id, exc.status_code)
        if isinstance(exc, (pydantic.ValidationError, ValueError)):
            return cls(ErrorKind.VALIDATION, "MALFORMED_PAYLOAD", "The server answered with an unexpected payload")
        return cls(ErrorKind.SERVER, "INTERNAL_ERROR", str(exc) or type(exc).__name__)


@dataclass(frozen=True)
class UserFacingError:
    message: str
    details: str | None = None
    trace_id: str | None = None

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


def to_user_facing_error(exc: Exception) -> UserFacingError:
    if not isinstance(exc, ApiError):
        info = ErrorInfo.from_exception(exc)
        return UserFacingError(message=info.message, details=info.code)
    primary = exc.message.strip() or "Request failed"
    details = f"{exc.code} (HTTP {exc.status_code})"
    if exc.details:
        details = f"{details}: {exc.details}"
    return UserFacingError(message=primary, details=details, trace_id=exc.trace_id)
