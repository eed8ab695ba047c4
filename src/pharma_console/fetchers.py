from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

from .exceptions import ApiError
from .filters import FilterCriteria
from .logs import log_json
from .telemetry import TelemetryLogger, build_event
from .ui_errors import ErrorInfo

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class ReportKind(str, Enum):
    PURCHASES = "purchases"
    PHARMACY_SALES = "pharmacy_sales"
    PRODUCT_SALES = "product_sales"
    PHARMACY_REDEMPTIONS = "pharmacy_redemptions"
    REDEMPTION_DETAILS = "redemption_details"
    PRODUCT_REDEMPTIONS = "product_redemptions"
    PATIENT_PRODUCT_REDEMPTIONS = "patient_product_redemptions"
    INVOICE_GAPS = "invoice_gaps"
    INVOICE_GAP_STATISTICS = "invoice_gap_statistics"
    TRANSACTIONS = "transactions"


PAGINATED_KINDS = frozenset(
    {
        ReportKind.PURCHASES,
        ReportKind.REDEMPTION_DETAILS,
        ReportKind.PATIENT_PRODUCT_REDEMPTIONS,
        ReportKind.TRANSACTIONS,
    }
)
FULL_SET_KINDS = frozenset(
    {
        ReportKind.PHARMACY_SALES,
        ReportKind.PRODUCT_SALES,
        ReportKind.PHARMACY_REDEMPTIONS,
        ReportKind.PRODUCT_REDEMPTIONS,
        ReportKind.INVOICE_GAPS,
    }
)
# Kinds whose endpoint filters on the free-text search itself.
SERVER_SEARCH_KINDS = frozenset({ReportKind.PATIENT_PRODUCT_REDEMPTIONS})


class SliceStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class ReportSlice(Generic[T]):
    kind: ReportKind
    status: SliceStatus = SliceStatus.IDLE
    data: T | None = None
    error: ErrorInfo | None = None
    seq: int = 0
    updated_at: datetime | None = None

    @property
    def is_loading(self) -> bool:
        return self.status is SliceStatus.LOADING


Loader = Callable[[FilterCriteria], Any]


class ReportFetcher:
    """Owns one ReportSlice and the request sequence for its kind.

    `begin` issues a sequence number and marks the slice loading; `complete` runs the
    loader and commits the result only when its sequence number is still the latest issued.
    """

    def __init__(
        self,
        kind: ReportKind,
        loader: Loader,
        *,
        follows_filters: bool = True,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.kind = kind
        self.loader = loader
        self.follows_filters = follows_filters
        self.telemetry = telemetry
        self._slice: ReportSlice[Any] = ReportSlice(kind=kind)
        self._issued = 0
        self._lock = threading.Lock()

    @property
    def slice(self) -> ReportSlice[Any]:
        return self._slice

    @property
    def latest_seq(self) -> int:
        return self._issued

    def begin(self, criteria: FilterCriteria) -> int:
        with self._lock:
            self._issued += 1
            seq = self._issued
            self._slice = replace(self._slice, status=SliceStatus.LOADING, seq=seq)
        log_json(
            LOG,
            {"event": "report_fetch_started", "kind": self.kind.value, "seq": seq, "page": criteria.page},
            level=logging.DEBUG,
        )
        return seq

    def complete(self, seq: int, criteria: FilterCriteria) -> ReportSlice[Any]:
        started = time.monotonic()
        data: Any = None
        failure: Exception | None = None
        try:
            data = self.loader(criteria)
        except ApiError as exc:
            failure = exc
        except Exception as exc:  # noqa: BLE001
            LOG.exception("Unexpected error while loading %s", self.kind.value)
            failure = exc
        duration_ms = int((time.monotonic() - started) * 1000)

        with self._lock:
            if seq != self._issued:
                log_json(
                    LOG,
                    {"event": "report_response_discarded", "kind": self.kind.value, "seq": seq, "latest": self._issued},
                    level=logging.DEBUG,
                )
                return self._slice
            now = datetime.now(timezone.utc)
            if failure is None:
                self._slice = ReportSlice(kind=self.kind, status=SliceStatus.LOADED, data=data, seq=seq, updated_at=now)
            else:
                self._slice = replace(
                    self._slice,
                    status=SliceStatus.ERROR,
                    error=ErrorInfo.from_exception(failure),
                    updated_at=now,
                )
            current = self._slice

        self._record(current, duration_ms)
        return current

    def fetch(self, criteria: FilterCriteria) -> ReportSlice[Any]:
        return self.complete(self.begin(criteria), criteria)

    def amend(self, transform: Callable[[Any], Any]) -> ReportSlice[Any]:
        """Patch loaded data in place of a refetch that has not landed yet."""
        with self._lock:
            if self._slice.data is not None:
                self._slice = replace(self._slice, data=transform(self._slice.data))
            return self._slice

    def last_page(self) -> int | None:
        pagination = getattr(self._slice.data, "pagination", None)
        if pagination is None:
            return None
        return pagination.last_page

    def _record(self, current: ReportSlice[Any], duration_ms: int) -> None:
        error = current.error if current.status is SliceStatus.ERROR else None
        if error is not None:
            log_json(
                LOG,
                {
                    "event": "report_fetch_failed",
                    "kind": self.kind.value,
                    "seq": current.seq,
                    "error_kind": error.kind.value,
                    "code": error.code,
                    "trace_id": error.trace_id,
                },
                level=logging.WARNING,
            )
        else:
            log_json(LOG, {"event": "report_fetch_loaded", "kind": self.kind.value, "seq": current.seq})
        if self.telemetry is None:
            return
        self.telemetry.emit(
            build_event(
                category="api_call_result",
                name="report_fetch",
                module="fetchers",
                action=self.kind.value,
                trace_id=error.trace_id if error else None,
                duration_ms=duration_ms,
                success=error is None,
                error_code=error.code if error else None,
            )
        )
