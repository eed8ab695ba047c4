from __future__ import annotations

import json

import pydantic
import pytest

from pharma_console.exceptions import NetworkError, ServerError, ValidationError
from pharma_console.fetchers import ReportFetcher, ReportKind, SliceStatus
from pharma_console.filters import FilterCriteria
from pharma_console.telemetry import TelemetryLogger
from pharma_console.ui_errors import ErrorKind


class ScriptedLoader:
    """Returns queued results keyed by the page requested."""

    def __init__(self, results: dict[int, object]) -> None:
        self.results = results
        self.calls: list[FilterCriteria] = []

    def __call__(self, criteria: FilterCriteria) -> object:
        self.calls.append(criteria)
        result = self.results[criteria.page]
        if isinstance(result, Exception):
            raise result
        return result


def test_fetch_success_populates_slice() -> None:
    fetcher = ReportFetcher(ReportKind.PHARMACY_SALES, ScriptedLoader({1: ["row"]}))
    current = fetcher.fetch(FilterCriteria())
    assert current.status is SliceStatus.LOADED
    assert current.data == ["row"]
    assert current.error is None
    assert current.seq == 1
    assert current.updated_at is not None


def test_late_superseded_response_is_discarded() -> None:
    fetcher = ReportFetcher(ReportKind.PURCHASES, ScriptedLoader({1: "first", 2: "second"}))
    first = FilterCriteria(page=1)
    second = FilterCriteria(page=2)

    seq_one = fetcher.begin(first)
    seq_two = fetcher.begin(second)
    assert fetcher.slice.is_loading

    fetcher.complete(seq_two, second)
    late = fetcher.complete(seq_one, first)

    assert late.data == "second"
    assert fetcher.slice.data == "second"
    assert fetcher.slice.seq == seq_two
    assert fetcher.slice.status is SliceStatus.LOADED


def test_superseded_response_does_not_end_loading() -> None:
    fetcher = ReportFetcher(ReportKind.PURCHASES, ScriptedLoader({1: "first", 2: "second"}))
    seq_one = fetcher.begin(FilterCriteria(page=1))
    fetcher.begin(FilterCriteria(page=2))
    fetcher.complete(seq_one, FilterCriteria(page=1))
    assert fetcher.slice.is_loading
    assert fetcher.slice.data is None


def test_error_keeps_previous_data() -> None:
    loader = ScriptedLoader({1: ["kept"], 2: ServerError(code="HTTP_ERROR", message="boom", status_code=500)})
    fetcher = ReportFetcher(ReportKind.PURCHASES, loader)
    fetcher.fetch(FilterCriteria(page=1))

    current = fetcher.fetch(FilterCriteria(page=2))

    assert current.status is SliceStatus.ERROR
    assert current.data == ["kept"]
    assert current.error.kind is ErrorKind.SERVER
    assert current.error.message == "boom"


def test_first_load_error_has_no_data() -> None:
    loader = ScriptedLoader({1: NetworkError(code="TIMEOUT_ERROR", message="slow")})
    current = ReportFetcher(ReportKind.TRANSACTIONS, loader).fetch(FilterCriteria())
    assert current.status is SliceStatus.ERROR
    assert current.data is None
    assert current.error.kind is ErrorKind.NETWORK


@pytest.mark.parametrize(
    ("failure", "kind"),
    [
        (ValidationError(code="VALIDATION_ERROR", message="bad range", status_code=422), ErrorKind.VALIDATION),
        (ValueError("not json"), ErrorKind.VALIDATION),
        (RuntimeError("unexpected"), ErrorKind.SERVER),
    ],
)
def test_errors_never_escape_the_fetcher(failure: Exception, kind: ErrorKind) -> None:
    current = ReportFetcher(ReportKind.PRODUCT_SALES, ScriptedLoader({1: failure})).fetch(FilterCriteria())
    assert current.error.kind is kind


def test_pydantic_failure_is_a_validation_error() -> None:
    class Row(pydantic.BaseModel):
        id: int

    def loader(_criteria: FilterCriteria) -> Row:
        return Row.model_validate({"id": "not-a-number"})

    current = ReportFetcher(ReportKind.PRODUCT_SALES, loader).fetch(FilterCriteria())
    assert current.error.kind is ErrorKind.VALIDATION
    assert current.error.code == "MALFORMED_PAYLOAD"


def test_success_after_error_clears_error() -> None:
    loader = ScriptedLoader({1: ServerError(code="HTTP_ERROR", message="boom"), 2: ["fresh"]})
    fetcher = ReportFetcher(ReportKind.PURCHASES, loader)
    fetcher.fetch(FilterCriteria(page=1))
    current = fetcher.fetch(FilterCriteria(page=2))
    assert current.status is SliceStatus.LOADED
    assert current.error is None


def test_amend_transforms_loaded_data_only() -> None:
    fetcher = ReportFetcher(ReportKind.INVOICE_GAPS, ScriptedLoader({1: [1, 2]}))
    fetcher.amend(lambda rows: rows + [3])
    assert fetcher.slice.data is None

    fetcher.fetch(FilterCriteria())
    assert fetcher.amend(lambda rows: rows + [3]).data == [1, 2, 3]


def test_fetch_emits_telemetry(tmp_path) -> None:
    log_file = tmp_path / "telemetry.jsonl"
    telemetry = TelemetryLogger(app_name="test", enabled=True, log_file=log_file)
    fetcher = ReportFetcher(ReportKind.PHARMACY_SALES, ScriptedLoader({1: []}), telemetry=telemetry)

    fetcher.fetch(FilterCriteria())

    event = json.loads(log_file.read_text(encoding="utf-8").strip())
    assert event["category"] == "api_call_result"
    assert event["action"] == "pharmacy_sales"
    assert event["success"] is True
