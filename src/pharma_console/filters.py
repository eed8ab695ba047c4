from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Mapping

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ValidationError
from .logs import log_json
from .models import EntryType

LOG = logging.getLogger(__name__)

PAGE_FIELDS = frozenset({"page", "per_page"})
# Fields narrowed on the client for full-set reports.
LOCAL_FIELDS = frozenset({"search_text"})
DEFAULT_PER_PAGE = 20


class FilterCriteria(BaseModel):
    """Immutable filter snapshot shared by every report of a view."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pharmacy_id: int | None = Field(default=None, ge=1)
    start_date: date | None = None
    end_date: date | None = None
    entry_type: EntryType | None = None
    search_text: str | None = None
    is_resolved: bool | None = None
    patient_id: int | None = Field(default=None, ge=1)
    product_id: int | None = Field(default=None, ge=1)
    patient_name: str | None = None
    email: str | None = None
    identification_number: str | None = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1)

    @field_validator("search_text", "patient_name", "email", "identification_number", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("pharmacy_id", "patient_id", "product_id", "start_date", "end_date", mode="before")
    @classmethod
    def _empty_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("entry_type", mode="before")
    @classmethod
    def _entry_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @model_validator(mode="after")
    def _date_range(self) -> "FilterCriteria":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be less than or equal to end_date")
        return self

    @classmethod
    def canonical(cls, per_page: int = DEFAULT_PER_PAGE) -> "FilterCriteria":
        return cls(page=1, per_page=per_page)

    def filter_values(self) -> dict[str, Any]:
        """Non-pagination fields that are set."""
        return {
            key: value
            for key, value in self.model_dump(exclude=set(PAGE_FIELDS)).items()
            if value is not None
        }

    def with_page(self, page: int, per_page: int | None = None) -> "FilterCriteria":
        return self.model_copy(update={"page": max(1, page), "per_page": per_page or self.per_page})


class FilterReason(str, Enum):
    APPLY = "apply"
    CLEAR = "clear"
    PAGE = "page"


@dataclass(frozen=True)
class FilterChange:
    reason: FilterReason
    changed: frozenset[str]
    previous: FilterCriteria

    @property
    def local_only(self) -> bool:
        """True when an apply touched nothing but locally refined fields (plus the page reset)."""
        edited = self.changed - PAGE_FIELDS
        return self.reason is FilterReason.APPLY and bool(edited) and edited <= LOCAL_FIELDS


Subscriber = Callable[[FilterCriteria, FilterChange], None]


def _changed_fields(before: FilterCriteria, after: FilterCriteria) -> frozenset[str]:
    old = before.model_dump()
    new = after.model_dump()
    return frozenset(key for key in new if old.get(key) != new[key])


class FilterStateManager:
    """Holds the committed snapshot plus locally staged edits.

    Staged edits never reach subscribers; only apply, clear and page changes do.
    """

    def __init__(self, per_page: int = DEFAULT_PER_PAGE, initial: FilterCriteria | None = None) -> None:
        self.default_per_page = per_page
        self._snapshot = initial or FilterCriteria.canonical(per_page)
        self._staged: dict[str, Any] = {}
        self._last_page: int | None = None
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> FilterCriteria:
        return self._snapshot

    @property
    def staged(self) -> dict[str, Any]:
        return dict(self._staged)

    @property
    def last_page(self) -> int | None:
        return self._last_page

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def stage(self, **changes: Any) -> FilterCriteria:
        with self._lock:
            pending = {**self._staged, **changes}
            preview = _merge(self._snapshot, pending)
            self._staged = pending
        return preview

    def discard_staged(self) -> None:
        with self._lock:
            self._staged = {}

    def apply(self, partial: Mapping[str, Any] | None = None, **changes: Any) -> FilterCriteria:
        with self._lock:
            edits = {**self._staged, **dict(partial or {}), **changes}
            previous = self._snapshot
            snapshot = _merge(previous, edits)
            self._snapshot = snapshot
            self._staged = {}
            if any(key not in PAGE_FIELDS for key in edits):
                self._last_page = None
        self._emit(snapshot, FilterChange(FilterReason.APPLY, _changed_fields(previous, snapshot), previous))
        return snapshot

    def clear(self) -> FilterCriteria:
        with self._lock:
            previous = self._snapshot
            snapshot = FilterCriteria.canonical(self.default_per_page)
            self._snapshot = snapshot
            self._staged = {}
            self._last_page = None
        self._emit(snapshot, FilterChange(FilterReason.CLEAR, _changed_fields(previous, snapshot), previous))
        return snapshot

    def set_page(self, page: int) -> FilterCriteria:
        with self._lock:
            previous = self._snapshot
            target = max(1, int(page))
            if self._last_page is not None:
                target = min(target, self._last_page)
            if target == previous.page:
                return previous
            snapshot = previous.with_page(target)
            self._snapshot = snapshot
        self._emit(snapshot, FilterChange(FilterReason.PAGE, frozenset({"page"}), previous))
        return snapshot

    def set_last_page(self, last_page: int | None) -> None:
        with self._lock:
            self._last_page = max(1, int(last_page)) if last_page is not None else None

    def _emit(self, snapshot: FilterCriteria, change: FilterChange) -> None:
        log_json(
            LOG,
            {"event": "filters_changed", "reason": change.reason.value, "changed": sorted(change.changed)},
            level=logging.DEBUG,
        )
        for subscriber in list(self._subscribers):
            subscriber(snapshot, change)


def _merge(base: FilterCriteria, edits: Mapping[str, Any]) -> FilterCriteria:
    unknown = sorted(key for key in edits if key not in FilterCriteria.model_fields)
    if unknown:
        raise ValidationError(
            code="UNKNOWN_FILTER",
            message=f"Unknown filter fields: {', '.join(unknown)}",
            details={"fields": unknown},
        )
    values = base.model_dump()
    values.update(edits)
    if any(key not in PAGE_FIELDS for key in edits):
        values["page"] = 1
    try:
        return FilterCriteria.model_validate(values)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            code="INVALID_FILTERS",
            message="Filter values are not valid",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc
