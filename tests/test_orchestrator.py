from __future__ import annotations

import threading
from collections import Counter
from urllib.parse import urlparse

import responses

from pharma_console.config import ClientConfig
from pharma_console.exceptions import ServerError
from pharma_console.fetchers import ReportFetcher, ReportKind, ReportSlice, SliceStatus
from pharma_console.filters import FilterCriteria, FilterStateManager
from pharma_console.models import PaginationEnvelope
from pharma_console.orchestrator import ReportOrchestrator
from pharma_console.session import ConsoleSession
from pharma_console.views import purchases_dashboard

from console_helpers import ADMIN_URL, envelope, page_payload


class CountingLoader:
    def __init__(self, result: object = None, *, fail: bool = False, last_page: int | None = None) -> None:
        self.result = result
        self.fail = fail
        self.last_page = last_page
        self.calls: list[FilterCriteria] = []
        self._lock = threading.Lock()

    def __call__(self, criteria: FilterCriteria) -> object:
        with self._lock:
            self.calls.append(criteria)
        if self.fail:
            raise ServerError(code="HTTP_ERROR", message="report unavailable", status_code=500)
        if self.last_page is not None:
            return PaginationEnvelope.model_validate(
                {"data": [], "current_page": criteria.page, "last_page": self.last_page, "per_page": criteria.per_page}
            )
        return self.result


@responses.activate
def test_apply_fetches_each_dashboard_report_once(config: ClientConfig) -> None:
    responses.add(responses.GET, f"{ADMIN_URL}/pharmacies", json=envelope([]), status=200)
    responses.add(
        responses.GET,
        f"{ADMIN_URL}/reports/purchases",
        json=envelope({"summary": {}, "transactions": page_payload([])}),
        status=200,
    )
    responses.add(responses.GET, f"{ADMIN_URL}/reports/pharmacy-sales", json=envelope([]), status=200)
    responses.add(responses.GET, f"{ADMIN_URL}/reports/product-sales", json=envelope([]), status=200)

    with purchases_dashboard(ConsoleSession(config)) as view:
        view.apply(pharmacy_id=7, start_date="2024-01-01", end_date="2024-01-31")
        slices = view.wait(timeout=5)

    paths = Counter(urlparse(call.request.url).path for call in responses.calls)
    assert paths["/api/administrator/reports/purchases"] == 1
    assert paths["/api/administrator/reports/pharmacy-sales"] == 1
    assert paths["/api/administrator/reports/product-sales"] == 1
    assert all(current.status is SliceStatus.LOADED for current in slices.values())
    sales_query = next(
        call.request.url for call in responses.calls if call.request.url.split("?")[0].endswith("pharmacy-sales")
    )
    assert "pharmacy_id" not in sales_query


def test_page_change_refetches_only_that_report() -> None:
    purchases = CountingLoader(last_page=4)
    details = CountingLoader(last_page=9)
    sales = CountingLoader([])
    filters = FilterStateManager(per_page=20)
    fetchers = [
        ReportFetcher(ReportKind.PURCHASES, purchases),
        ReportFetcher(ReportKind.REDEMPTION_DETAILS, details),
        ReportFetcher(ReportKind.PHARMACY_SALES, sales),
    ]
    with ReportOrchestrator(filters, fetchers, default_pager_kind=ReportKind.PURCHASES) as orchestrator:
        orchestrator.wait(orchestrator.load())
        orchestrator.wait([orchestrator.set_page(ReportKind.REDEMPTION_DETAILS, 3)])

        assert len(purchases.calls) == 1
        assert len(sales.calls) == 1
        assert [call.page for call in details.calls] == [1, 3]
        assert orchestrator.pager(ReportKind.PURCHASES).page == 1
        assert orchestrator.pager(ReportKind.REDEMPTION_DETAILS).page == 3


def test_set_page_is_clamped_to_known_last_page() -> None:
    details = CountingLoader(last_page=2)
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.REDEMPTION_DETAILS, details)]) as orchestrator:
        orchestrator.wait(orchestrator.load())
        orchestrator.wait([orchestrator.set_page(ReportKind.REDEMPTION_DETAILS, 7)])
        assert details.calls[-1].page == 2
        assert filters.last_page == 2


def test_filter_page_event_goes_to_default_pager() -> None:
    transactions = CountingLoader(last_page=6)
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.TRANSACTIONS, transactions)]) as orchestrator:
        orchestrator.wait(orchestrator.load())
        filters.set_page(4)
        orchestrator.wait()
        assert transactions.calls[-1].page == 4


def test_one_failure_does_not_block_the_others() -> None:
    filters = FilterStateManager()
    fetchers = [
        ReportFetcher(ReportKind.PHARMACY_SALES, CountingLoader(fail=True)),
        ReportFetcher(ReportKind.PRODUCT_SALES, CountingLoader(["ok"])),
    ]
    with ReportOrchestrator(filters, fetchers) as orchestrator:
        filters.apply(start_date="2024-01-01")
        slices = orchestrator.wait()

    assert slices[ReportKind.PHARMACY_SALES].status is SliceStatus.ERROR
    assert slices[ReportKind.PRODUCT_SALES].status is SliceStatus.LOADED
    assert slices[ReportKind.PRODUCT_SALES].data == ["ok"]


def test_loading_flags_track_outstanding_requests() -> None:
    release = threading.Event()

    def slow_loader(_criteria: FilterCriteria) -> list[str]:
        release.wait(timeout=5)
        return ["done"]

    filters = FilterStateManager()
    fetchers = [
        ReportFetcher(ReportKind.PHARMACY_SALES, slow_loader),
        ReportFetcher(ReportKind.PRODUCT_SALES, CountingLoader([])),
    ]
    with ReportOrchestrator(filters, fetchers) as orchestrator:
        assert orchestrator.any_loading is False
        futures = orchestrator.load()
        orchestrator.wait([futures[ReportKind.PRODUCT_SALES]])

        assert orchestrator.any_loading is True
        assert orchestrator.loading_flags() == {ReportKind.PHARMACY_SALES: True, ReportKind.PRODUCT_SALES: False}

        release.set()
        orchestrator.wait(futures)
        assert orchestrator.any_loading is False


def test_statistics_only_reload_on_explicit_refresh() -> None:
    gaps = CountingLoader([])
    stats = CountingLoader({"total_gaps": 0})
    filters = FilterStateManager()
    fetchers = [
        ReportFetcher(ReportKind.INVOICE_GAPS, gaps),
        ReportFetcher(ReportKind.INVOICE_GAP_STATISTICS, stats, follows_filters=False),
    ]
    with ReportOrchestrator(filters, fetchers) as orchestrator:
        orchestrator.wait(orchestrator.load())
        filters.apply(is_resolved=False)
        orchestrator.wait()
        filters.clear()
        orchestrator.wait()

        assert len(gaps.calls) == 3
        assert len(stats.calls) == 1

        orchestrator.wait(orchestrator.refresh([ReportKind.INVOICE_GAP_STATISTICS]))
        assert len(stats.calls) == 2


def test_clear_resets_every_pager() -> None:
    purchases = CountingLoader(last_page=5)
    details = CountingLoader(last_page=5)
    filters = FilterStateManager()
    fetchers = [ReportFetcher(ReportKind.PURCHASES, purchases), ReportFetcher(ReportKind.REDEMPTION_DETAILS, details)]
    with ReportOrchestrator(filters, fetchers, default_pager_kind=ReportKind.PURCHASES) as orchestrator:
        orchestrator.wait(orchestrator.load())
        orchestrator.wait([orchestrator.set_page(ReportKind.PURCHASES, 3)])
        orchestrator.wait([orchestrator.set_page(ReportKind.REDEMPTION_DETAILS, 4)])

        filters.clear()
        orchestrator.wait()

        assert purchases.calls[-1].page == 1
        assert details.calls[-1].page == 1


def test_staged_edits_never_fetch() -> None:
    sales = CountingLoader([])
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.PHARMACY_SALES, sales)]):
        filters.stage(start_date="2024-01-01")
        filters.stage(end_date="2024-01-31")
    assert sales.calls == []


def test_listeners_see_loading_then_settled_slices() -> None:
    seen: list[ReportSlice] = []
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.PRODUCT_SALES, CountingLoader(["row"]))]) as orchestrator:
        orchestrator.add_listener(seen.append)
        orchestrator.wait(orchestrator.load())

    assert [current.status for current in seen] == [SliceStatus.LOADING, SliceStatus.LOADED]


def test_orchestrator_paging_and_filter_paging_stay_in_step() -> None:
    transactions = CountingLoader(last_page=6)
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.TRANSACTIONS, transactions)]) as orchestrator:
        orchestrator.wait(orchestrator.load())
        orchestrator.wait([orchestrator.set_page(ReportKind.TRANSACTIONS, 3)])
        assert filters.snapshot.page == 3

        filters.set_page(1)
        orchestrator.wait()

        assert [call.page for call in transactions.calls] == [1, 3, 1]
        assert orchestrator.pager(ReportKind.TRANSACTIONS).page == 1
        assert filters.snapshot.page == 1


def test_search_only_apply_refetches_server_search_reports_only() -> None:
    patients = CountingLoader(last_page=3)
    sales = CountingLoader([])
    filters = FilterStateManager()
    fetchers = [
        ReportFetcher(ReportKind.PATIENT_PRODUCT_REDEMPTIONS, patients),
        ReportFetcher(ReportKind.PHARMACY_SALES, sales),
    ]
    with ReportOrchestrator(filters, fetchers) as orchestrator:
        orchestrator.wait(orchestrator.load())
        orchestrator.wait([orchestrator.set_page(ReportKind.PATIENT_PRODUCT_REDEMPTIONS, 2)])

        filters.apply(search_text="insulina")
        orchestrator.wait()

        assert len(sales.calls) == 1
        assert [call.page for call in patients.calls] == [1, 2, 1]
        assert patients.calls[-1].search_text == "insulina"


def test_search_only_apply_still_loads_reports_never_fetched() -> None:
    sales = CountingLoader([])
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.PHARMACY_SALES, sales)]) as orchestrator:
        filters.apply(search_text="central")
        orchestrator.wait()
        filters.apply(search_text="norte")
        orchestrator.wait()

    assert len(sales.calls) == 1


def test_search_only_apply_moves_default_pager_back_to_first_page() -> None:
    transactions = CountingLoader(last_page=6)
    filters = FilterStateManager()
    with ReportOrchestrator(filters, [ReportFetcher(ReportKind.TRANSACTIONS, transactions)]) as orchestrator:
        orchestrator.wait(orchestrator.load())
        orchestrator.wait([orchestrator.set_page(ReportKind.TRANSACTIONS, 4)])

        filters.apply(search_text="maria")
        orchestrator.wait()

        assert transactions.calls[-1].page == 1
        assert orchestrator.pager(ReportKind.TRANSACTIONS).page == filters.snapshot.page == 1
        assert filters.last_page == 6


def test_page_count_from_before_a_reset_is_ignored() -> None:
    details = CountingLoader(last_page=9)
    filters = FilterStateManager()
    fetcher = ReportFetcher(ReportKind.REDEMPTION_DETAILS, details)
    with ReportOrchestrator(filters, [fetcher]) as orchestrator:
        pager = orchestrator.pager(ReportKind.REDEMPTION_DETAILS)
        criteria = orchestrator.criteria_for(ReportKind.REDEMPTION_DETAILS)
        issued_generation = pager.generation
        seq = fetcher.begin(criteria)
        pager.reset(per_page=20)

        current = orchestrator._run(fetcher, seq, criteria, issued_generation)

    assert current.status is SliceStatus.LOADED
    assert pager.last_page is None
    assert filters.last_page is None
