from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Generic, Sequence, TypeVar, Union

from .fetchers import ReportKind

T = TypeVar("T")

ELLIPSIS = "..."
PageToken = Union[int, str]

SEARCH_FIELDS: dict[ReportKind, tuple[str, ...]] = {
    ReportKind.PHARMACY_SALES: ("commercial_name", "identification_number"),
    ReportKind.PRODUCT_SALES: ("name", "dose"),
    ReportKind.PHARMACY_REDEMPTIONS: ("commercial_name", "identification_number"),
    ReportKind.PRODUCT_REDEMPTIONS: ("name", "dose"),
    ReportKind.INVOICE_GAPS: (
        "pharmacy.commercial_name",
        "pharmacy.legal_name",
        "received_pattern",
        "expected_pattern",
        "transaction.invoice_number",
    ),
}


@dataclass(frozen=True)
class RefinedPage(Generic[T]):
    visible: list[T]
    total_pages: int
    page: int
    total: int


def resolve_path(row: Any, path: str) -> Any:
    """Follow a dotted path through attributes or mapping keys; None when a step is missing."""
    current = row
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def matches(row: Any, needle: str, fields: Sequence[str]) -> bool:
    for path in fields:
        value = resolve_path(row, path)
        if isinstance(value, str) and needle in value.lower():
            return True
    return False


def refine(
    rows: Sequence[T],
    search_text: str | None,
    page: int,
    per_page: int,
    fields: Sequence[str],
) -> RefinedPage[T]:
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    needle = (search_text or "").strip().lower()
    filtered = [row for row in rows if matches(row, needle, fields)] if needle else list(rows)
    total = len(filtered)
    total_pages = max(1, math.ceil(total / per_page))
    current = min(max(1, page), total_pages)
    start = (current - 1) * per_page
    return RefinedPage(visible=filtered[start : start + per_page], total_pages=total_pages, page=current, total=total)


def page_numbers(current: int, total: int) -> list[PageToken]:
    if total <= 5:
        return list(range(1, total + 1))
    if current <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total]
    if current >= total - 2:
        return [1, ELLIPSIS, total - 3, total - 2, total - 1, total]
    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


@dataclass
class ClientRefiner(Generic[T]):
    """Local search and paging over a report that was fetched in full."""

    fields: tuple[str, ...]
    per_page: int = 10
    search_text: str = ""
    page: int = 1
    rows: list[T] = field(default_factory=list)

    @classmethod
    def for_kind(cls, kind: ReportKind, per_page: int = 10) -> "ClientRefiner[Any]":
        return cls(fields=SEARCH_FIELDS[kind], per_page=per_page)

    def set_rows(self, rows: Sequence[T] | None) -> RefinedPage[T]:
        self.rows = list(rows or [])
        return self.view()

    def set_search(self, text: str | None) -> RefinedPage[T]:
        text = text or ""
        if text != self.search_text:
            self.search_text = text
            self.page = 1
        return self.view()

    def set_page(self, page: int) -> RefinedPage[T]:
        self.page = page
        return self.view()

    def reset(self) -> None:
        self.search_text = ""
        self.page = 1

    def view(self) -> RefinedPage[T]:
        result = refine(self.rows, self.search_text, self.page, self.per_page, self.fields)
        self.page = result.page
        return result

    def page_numbers(self) -> list[PageToken]:
        result = self.view()
        return page_numbers(result.page, result.total_pages)
