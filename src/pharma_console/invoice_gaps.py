from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, replace
from typing import Any

from .clients.invoice_gaps_client import InvoiceGapsClient
from .exceptions import ApiError, StateConflictError
from .fetchers import ReportKind
from .filters import FilterChange, FilterCriteria, FilterReason, FilterStateManager
from .idempotency import new_idempotency_key
from .logs import log_json
from .models_invoice_gaps import InvoiceGap, InvoiceGapStatistics
from .orchestrator import ReportOrchestrator
from .refinement import ClientRefiner, RefinedPage
from .telemetry import TelemetryLogger, build_event

LOG = logging.getLogger(__name__)

RESOLVE_OPERATION = "invoice_gap.resolve"


@dataclass(frozen=True)
class ResolveAttempt:
    idempotency_key: str
    notes: str | None = None


class InvoiceGapController:
    """Review and resolution of invoice numbering gaps.

    A gap is created `pending` by the detection job and moves to `resolved` exactly once.
    Resolution notes and the idempotency key of a failed attempt are kept until it succeeds.
    """

    def __init__(
        self,
        client: InvoiceGapsClient,
        orchestrator: ReportOrchestrator,
        *,
        refiner: ClientRefiner[InvoiceGap] | None = None,
        telemetry: TelemetryLogger | None = None,
    ) -> None:
        self.client = client
        self.orchestrator = orchestrator
        self.refiner = refiner or ClientRefiner.for_kind(ReportKind.INVOICE_GAPS)
        self.telemetry = telemetry
        self.last_refresh: dict[ReportKind, Future] = {}
        self._attempts: dict[int, ResolveAttempt] = {}
        self._in_flight: set[int] = set()
        self._lock = threading.Lock()
        self._unsubscribe = self.filters.subscribe(self._on_filters)

    def __enter__(self) -> "InvoiceGapController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def filters(self) -> FilterStateManager:
        return self.orchestrator.filters

    def load(self) -> dict[ReportKind, Future]:
        return self.orchestrator.load()

    def gaps(self) -> list[InvoiceGap]:
        return list(self.orchestrator.slice(ReportKind.INVOICE_GAPS).data or [])

    def statistics(self) -> InvoiceGapStatistics | None:
        return self.orchestrator.slice(ReportKind.INVOICE_GAP_STATISTICS).data

    def visible(self) -> RefinedPage[InvoiceGap]:
        return self.refiner.set_rows(self.gaps())

    def set_search(self, text: str | None) -> RefinedPage[InvoiceGap]:
        """Search is a filter field; applying it narrows the loaded gaps without a refetch."""
        if ((text or "").strip() or None) != self.filters.snapshot.search_text:
            self.filters.apply(search_text=text)
        return self.visible()

    def set_page(self, page: int) -> RefinedPage[InvoiceGap]:
        self.refiner.set_rows(self.gaps())
        return self.refiner.set_page(page)

    def find(self, gap_id: int) -> InvoiceGap | None:
        for gap in self.gaps():
            if gap.id == gap_id:
                return gap
        return None

    def draft_notes(self, gap_id: int) -> str | None:
        attempt = self._attempts.get(gap_id)
        return attempt.notes if attempt else None

    def pending_key(self, gap_id: int) -> str | None:
        attempt = self._attempts.get(gap_id)
        return attempt.idempotency_key if attempt else None

    def get_details(self, gap_id: int) -> InvoiceGap:
        return self.client.get_invoice_gap(gap_id)

    def list_unresolved(self) -> list[InvoiceGap]:
        return self.client.list_unresolved_invoice_gaps()

    def resolve(self, gap_id: int, notes: str | None = None) -> InvoiceGap:
        local = self.find(gap_id)
        if local is not None and local.is_resolved:
            raise StateConflictError(
                code="INVOICE_GAP_ALREADY_RESOLVED",
                message=f"Invoice gap {gap_id} is already resolved",
                details={"gap_id": gap_id},
            )
        with self._lock:
            if gap_id in self._in_flight:
                raise StateConflictError(
                    code="INVOICE_GAP_RESOLVE_IN_PROGRESS",
                    message=f"Invoice gap {gap_id} is already being resolved",
                    details={"gap_id": gap_id},
                )
            self._in_flight.add(gap_id)
            attempt = self._attempts.get(gap_id)
            if attempt is None:
                attempt = ResolveAttempt(idempotency_key=new_idempotency_key(RESOLVE_OPERATION), notes=notes)
            elif notes is not None:
                attempt = replace(attempt, notes=notes)
            self._attempts[gap_id] = attempt

        started = time.monotonic()
        try:
            resolved = self.client.resolve_invoice_gap(
                gap_id, resolution_notes=attempt.notes, idempotency_key=attempt.idempotency_key
            )
        except StateConflictError as exc:
            # The server already holds a terminal state; retrying cannot succeed.
            with self._lock:
                self._attempts.pop(gap_id, None)
            self._emit(gap_id, started, exc)
            self.last_refresh = self.orchestrator.refresh([ReportKind.INVOICE_GAPS])
            raise
        except ApiError as exc:
            self._emit(gap_id, started, exc)
            raise
        finally:
            with self._lock:
                self._in_flight.discard(gap_id)

        with self._lock:
            self._attempts.pop(gap_id, None)
        self._emit(gap_id, started, None)
        log_json(LOG, {"event": "invoice_gap_resolved", "gap_id": gap_id, "resolved_by": resolved.resolved_by})
        self.orchestrator.amend(ReportKind.INVOICE_GAPS, lambda rows: _mark_resolved(rows, resolved))
        self.last_refresh = self.orchestrator.refresh(
            [ReportKind.INVOICE_GAPS, ReportKind.INVOICE_GAP_STATISTICS]
        )
        return resolved

    def close(self) -> None:
        self._unsubscribe()
        self.orchestrator.close()

    def _on_filters(self, snapshot: FilterCriteria, change: FilterChange) -> None:
        if change.reason is FilterReason.PAGE:
            return
        if change.reason is FilterReason.CLEAR:
            self.refiner.reset()
        elif not change.local_only:
            self.refiner.page = 1
        self.refiner.set_search(snapshot.search_text)

    def _emit(self, gap_id: int, started: float, error: ApiError | None) -> None:
        if error is not None:
            log_json(
                LOG,
                {"event": "invoice_gap_resolve_failed", "gap_id": gap_id, "code": error.code, "trace_id": error.trace_id},
                level=logging.WARNING,
            )
        if self.telemetry is None:
            return
        self.telemetry.emit(
            build_event(
                category="mutation",
                name="invoice_gap_resolve",
                module="invoice_gaps",
                action="resolve",
                trace_id=error.trace_id if error else None,
                duration_ms=int((time.monotonic() - started) * 1000),
                success=error is None,
                error_code=error.code if error else None,
                context={"gap_id": gap_id},
            )
        )


def _mark_resolved(rows: list[InvoiceGap], resolved: InvoiceGap) -> list[InvoiceGap]:
    updates: dict[str, Any] = {
        "is_resolved": True,
        "resolution_notes": resolved.resolution_notes,
        "resolved_at": resolved.resolved_at,
        "resolved_by": resolved.resolved_by,
        "resolved_by_user": resolved.resolved_by_user,
    }
    return [row.model_copy(update=updates) if row.id == resolved.id else row for row in rows]
