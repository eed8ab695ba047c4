from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Iterable

from .exceptions import ValidationError
from .fetchers import FULL_SET_KINDS, ReportFetcher, ReportKind, ReportSlice
from .filters import FilterChange, FilterCriteria, FilterReason, FilterStateManager
from .invoice_gaps import InvoiceGapController
from .orchestrator import ReportOrchestrator
from .pharmacy_directory import PharmacyDirectory
from .refinement import ClientRefiner, RefinedPage
from .session import ConsoleSession
from .tables import TableViewModel, build_table


class ReportView:
    """One screen: a filter bar, its reports and the local refiners of full-set reports."""

    def __init__(
        self,
        name: str,
        filters: FilterStateManager,
        orchestrator: ReportOrchestrator,
        *,
        directory: PharmacyDirectory | None = None,
        local_per_page: int = 10,
    ) -> None:
        self.name = name
        self.filters = filters
        self.orchestrator = orchestrator
        self.directory = directory
        self.refiners: dict[ReportKind, ClientRefiner[Any]] = {
            kind: ClientRefiner.for_kind(kind, local_per_page) for kind in orchestrator.kinds if kind in FULL_SET_KINDS
        }
        self._unsubscribe = filters.subscribe(self._on_filters)

    def __enter__(self) -> "ReportView":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def stage(self, **changes: Any) -> FilterCriteria:
        self._guard_pharmacy(changes)
        return self.filters.stage(**changes)

    def apply(self, **changes: Any) -> FilterCriteria:
        self._guard_pharmacy({**self.filters.staged, **changes})
        return self.filters.apply(**changes)

    def clear(self) -> FilterCriteria:
        return self.filters.clear()

    def load(self) -> dict[ReportKind, Future]:
        return self.orchestrator.load()

    def set_page(self, kind: ReportKind, page: int) -> Future | RefinedPage[Any]:
        if kind in self.refiners:
            return self.refined(kind, page=page)
        return self.orchestrator.set_page(kind, page)

    def set_search(self, kind: ReportKind, text: str | None) -> RefinedPage[Any]:
        """Narrow one panel only; the next applied filter search replaces it."""
        refiner = self._refiner(kind)
        refiner.set_rows(self.rows(kind))
        return refiner.set_search(text)

    def slice(self, kind: ReportKind) -> ReportSlice[Any]:
        return self.orchestrator.slice(kind)

    def rows(self, kind: ReportKind) -> list[Any]:
        return extract_rows(self.slice(kind).data)

    def refined(self, kind: ReportKind, page: int | None = None) -> RefinedPage[Any]:
        refiner = self._refiner(kind)
        refiner.set_rows(self.rows(kind))
        if page is not None:
            return refiner.set_page(page)
        return refiner.view()

    def visible_rows(self, kind: ReportKind) -> list[Any]:
        if kind in self.refiners:
            return self.refined(kind).visible
        return self.rows(kind)

    def table(self, kind: ReportKind) -> TableViewModel:
        return build_table(kind, self.visible_rows(kind))

    def wait(
        self, futures: dict[ReportKind, Future] | None = None, timeout: float | None = None
    ) -> dict[ReportKind, ReportSlice[Any]]:
        return self.orchestrator.wait(futures, timeout=timeout)

    def close(self) -> None:
        self._unsubscribe()
        self.orchestrator.close()

    def _refiner(self, kind: ReportKind) -> ClientRefiner[Any]:
        try:
            return self.refiners[kind]
        except KeyError:
            raise ValueError(f"{kind.value} is paginated by the server") from None

    def _on_filters(self, snapshot: FilterCriteria, change: FilterChange) -> None:
        if change.reason is FilterReason.PAGE:
            return
        for refiner in self.refiners.values():
            if change.reason is FilterReason.CLEAR:
                refiner.reset()
            elif not change.local_only:
                refiner.page = 1
            refiner.set_search(snapshot.search_text)

    def _guard_pharmacy(self, changes: dict[str, Any]) -> None:
        if changes.get("pharmacy_id") in (None, ""):
            return
        if self.directory is not None and not self.directory.available:
            raise ValidationError(
                code="PHARMACY_FILTER_UNAVAILABLE",
                message="The pharmacy list could not be loaded; filtering by pharmacy is disabled",
                details={"field": "pharmacy_id"},
            )


def extract_rows(data: Any) -> list[Any]:
    if data is None:
        return []
    if isinstance(data, list):
        return data
    transactions = getattr(data, "transactions", None)
    if transactions is not None:
        return list(transactions.items)
    items = getattr(data, "items", None)
    if isinstance(items, list):
        return items
    return [data]


def _build_view(
    session: ConsoleSession,
    name: str,
    fetchers: Iterable[ReportFetcher],
) -> ReportView:
    filters = FilterStateManager(per_page=session.config.per_page)
    orchestrator = ReportOrchestrator(
        filters,
        fetchers,
        max_workers=session.config.max_workers,
    )
    session.directory.ensure_loaded()
    return ReportView(
        name,
        filters,
        orchestrator,
        directory=session.directory,
        local_per_page=session.config.local_per_page,
    )


def purchases_dashboard(session: ConsoleSession) -> ReportView:
    reports = session.reports_client()
    telemetry = session.telemetry
    return _build_view(
        session,
        "purchases",
        [
            ReportFetcher(ReportKind.PURCHASES, reports.get_purchase_report, telemetry=telemetry),
            ReportFetcher(ReportKind.PHARMACY_SALES, reports.get_pharmacy_sales_report, telemetry=telemetry),
            ReportFetcher(ReportKind.PRODUCT_SALES, reports.get_product_sales_report, telemetry=telemetry),
        ],
    )


def redemptions_dashboard(session: ConsoleSession) -> ReportView:
    redemptions = session.redemptions_client()
    telemetry = session.telemetry
    return _build_view(
        session,
        "redemptions",
        [
            ReportFetcher(
                ReportKind.PHARMACY_REDEMPTIONS, redemptions.get_pharmacy_redemption_report, telemetry=telemetry
            ),
            ReportFetcher(
                ReportKind.REDEMPTION_DETAILS, redemptions.get_redemption_details_report, telemetry=telemetry
            ),
            ReportFetcher(
                ReportKind.PRODUCT_REDEMPTIONS, redemptions.get_product_redemption_report, telemetry=telemetry
            ),
        ],
    )


def patient_products_view(session: ConsoleSession) -> ReportView:
    redemptions = session.redemptions_client()
    return _build_view(
        session,
        "patient-products",
        [
            ReportFetcher(
                ReportKind.PATIENT_PRODUCT_REDEMPTIONS,
                redemptions.get_patient_product_redemption_report,
                telemetry=session.telemetry,
            )
        ],
    )


def transactions_view(session: ConsoleSession) -> ReportView:
    transactions = session.transactions_client()
    return _build_view(
        session,
        "transactions",
        [ReportFetcher(ReportKind.TRANSACTIONS, transactions.list_transactions, telemetry=session.telemetry)],
    )


def invoice_gaps_controller(session: ConsoleSession) -> InvoiceGapController:
    client = session.invoice_gaps_client()
    filters = FilterStateManager(per_page=session.config.local_per_page)
    orchestrator = ReportOrchestrator(
        filters,
        [
            ReportFetcher(ReportKind.INVOICE_GAPS, client.list_invoice_gaps, telemetry=session.telemetry),
            ReportFetcher(
                ReportKind.INVOICE_GAP_STATISTICS,
                lambda _criteria: client.get_statistics(),
                follows_filters=False,
                telemetry=session.telemetry,
            ),
        ],
        max_workers=session.config.max_workers,
    )
    return InvoiceGapController(
        client,
        orchestrator,
        refiner=ClientRefiner.for_kind(ReportKind.INVOICE_GAPS, session.config.local_per_page),
        telemetry=session.telemetry,
    )
