from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .logs import log_json

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class EntryType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


def coerce_entry_type(value: Any) -> EntryType | None:
    """Read a row-level entry type, ignoring values this console does not know."""
    if value is None or isinstance(value, EntryType):
        return value
    normalized = str(value).strip().lower()
    try:
        return EntryType(normalized)
    except ValueError:
        log_json(LOG, {"event": "unknown_entry_type", "value": str(value)}, level=logging.WARNING)
        return None


class PaginationEnvelope(BaseModel, Generic[T]):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    items: list[T] = Field(default_factory=list, alias="data")
    current_page: int = 1
    last_page: int = 1
    per_page: int = 1
    from_: int = Field(default=0, alias="from")
    to: int = 0
    total: int = 0

    @field_validator("from_", "to", "total", mode="before")
    @classmethod
    def _null_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("current_page", "last_page", "per_page", mode="before")
    @classmethod
    def _at_least_one(cls, value: Any) -> Any:
        if value is None:
            return 1
        return max(1, int(value))

    @property
    def has_next(self) -> bool:
        return self.current_page < self.last_page

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1

    @property
    def pagination(self) -> "PaginationEnvelope[T]":
        return self


class PharmacyRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    commercial_name: str
    legal_name: str | None = None
    identification_number: str | None = None
    status: bool = True
    is_chain: bool | None = None

    @property
    def is_active(self) -> bool:
        return bool(self.status)

    @property
    def display_name(self) -> str:
        return self.commercial_name or self.legal_name or f"#{self.id}"


class SubPharmacyRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    pharmacy_id: int | None = None
    name: str | None = None
    commercial_name: str | None = None


class UserRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str | None = None
    email: str | None = None


class ProductRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str
