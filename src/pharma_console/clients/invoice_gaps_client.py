from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import ApiError, NotFoundError, StateConflictError
from ..filters import FilterCriteria
from ..idempotency import idempotency_headers, new_idempotency_key
from ..models_invoice_gaps import InvoiceGap, InvoiceGapStatistics, ResolveInvoiceGapRequest
from ..queries import InvoiceGapQuery
from .base import BaseClient, build_query, parse_list, parse_model


@dataclass
class InvoiceGapsClient(BaseClient):
    def list_invoice_gaps(self, filters: FilterCriteria | InvoiceGapQuery | None = None) -> list[InvoiceGap]:
        query = build_query(InvoiceGapQuery, filters)
        data = self._get_data("/invoice-gaps", query.to_params())
        return parse_list(InvoiceGap, data, path="invoice gaps")

    def list_unresolved_invoice_gaps(self) -> list[InvoiceGap]:
        data = self._get_data("/invoice-gaps/unresolved")
        return parse_list(InvoiceGap, data, path="unresolved invoice gaps")

    def get_statistics(self) -> InvoiceGapStatistics:
        data = self._get_data("/invoice-gaps/statistics")
        return parse_model(InvoiceGapStatistics, data, path="invoice gap statistics")

    def get_invoice_gap(self, gap_id: int) -> InvoiceGap:
        try:
            data = self._get_data(f"/invoice-gaps/{gap_id}")
        except NotFoundError as exc:
            raise _gap_error(exc, "INVOICE_GAP_NOT_FOUND") from exc
        return parse_model(InvoiceGap, data, path="invoice gap")

    def resolve_invoice_gap(
        self,
        gap_id: int,
        resolution_notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> InvoiceGap:
        payload = ResolveInvoiceGapRequest(resolution_notes=resolution_notes)
        key = idempotency_key or new_idempotency_key("invoice_gap.resolve")
        try:
            raw = self._request(
                "POST",
                f"/invoice-gaps/{gap_id}/resolve",
                json_body=payload.model_dump(mode="json", exclude_none=True),
                headers=idempotency_headers(key),
            )
            data = self._unwrap("resolve invoice gap", raw)
        except StateConflictError as exc:
            raise _gap_error(exc, "INVOICE_GAP_ALREADY_RESOLVED") from exc
        except NotFoundError as exc:
            raise _gap_error(exc, "INVOICE_GAP_NOT_FOUND") from exc
        return parse_model(InvoiceGap, data, path="resolved invoice gap")


def _gap_error(exc: ApiError, code: str) -> StateConflictError:
    return StateConflictError(
        code=code,
        message=exc.message,
        details=exc.details,
        trace_id=exc.trace_id,
        status_code=exc.status_code,
        raw_payload=exc.raw_payload,
    )
