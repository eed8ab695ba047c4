from __future__ import annotations

import pytest

from pharma_console.fetchers import ReportKind
from pharma_console.models_invoice_gaps import InvoiceGap
from pharma_console.refinement import ELLIPSIS, ClientRefiner, page_numbers, refine, resolve_path

from console_helpers import gap_payload


def _pharmacies(count: int) -> list[dict]:
    return [
        {"commercial_name": f"Farmacia {index:02d}", "identification_number": f"RUC-{index:04d}"}
        for index in range(1, count + 1)
    ]


def test_refine_splits_rows_into_pages() -> None:
    rows = _pharmacies(23)

    first = refine(rows, None, 1, 10, ("commercial_name",))
    last = refine(rows, None, 3, 10, ("commercial_name",))

    assert first.total_pages == 3
    assert first.total == 23
    assert len(first.visible) == 10
    assert len(last.visible) == 3
    assert page_numbers(first.page, first.total_pages) == [1, 2, 3]


def test_pages_reconstruct_the_filtered_rows_in_order() -> None:
    rows = _pharmacies(23)
    collected = []
    for page in range(1, 4):
        collected.extend(refine(rows, "farmacia", page, 10, ("commercial_name",)).visible)
    assert collected == rows


def test_refine_search_is_case_insensitive_substring() -> None:
    rows = _pharmacies(23)
    result = refine(rows, "  RUC-001 ", 1, 10, ("identification_number",))
    assert [row["identification_number"] for row in result.visible] == [f"RUC-{index:04d}" for index in range(10, 20)]


def test_refine_clamps_page_after_narrowing() -> None:
    rows = _pharmacies(23)
    result = refine(rows, "Farmacia 2", 3, 10, ("commercial_name",))
    assert result.total == 4
    assert result.total_pages == 1
    assert result.page == 1


def test_refine_with_no_rows_keeps_one_page() -> None:
    result = refine([], "x", 4, 10, ("commercial_name",))
    assert result.visible == []
    assert result.total_pages == 1
    assert result.page == 1


def test_refine_rejects_non_positive_page_size() -> None:
    with pytest.raises(ValueError):
        refine(_pharmacies(3), None, 1, 0, ("commercial_name",))


@pytest.mark.parametrize(
    ("current", "expected"),
    [
        (1, [1, 2, 3, 4, ELLIPSIS, 12]),
        (3, [1, 2, 3, 4, ELLIPSIS, 12]),
        (6, [1, ELLIPSIS, 5, 6, 7, ELLIPSIS, 12]),
        (11, [1, ELLIPSIS, 9, 10, 11, 12]),
        (12, [1, ELLIPSIS, 9, 10, 11, 12]),
    ],
)
def test_page_numbers_window(current: int, expected: list) -> None:
    assert page_numbers(current, 12) == expected


def test_page_numbers_short_lists_are_complete() -> None:
    assert page_numbers(2, 5) == [1, 2, 3, 4, 5]
    assert page_numbers(1, 1) == [1]


def test_resolve_path_walks_models_and_mappings() -> None:
    gap = InvoiceGap.model_validate(gap_payload(42))
    assert resolve_path(gap, "pharmacy.commercial_name") == "Farmacia Central"
    assert resolve_path({"pharmacy": None}, "pharmacy.commercial_name") is None
    assert resolve_path({"a": {"b": 3}}, "a.b") == 3


def test_gap_search_covers_nested_fields() -> None:
    gaps = [
        InvoiceGap.model_validate(gap_payload(1)),
        InvoiceGap.model_validate(gap_payload(2, pharmacy={"id": 8, "commercial_name": "Botica Norte"})),
    ]
    refiner = ClientRefiner.for_kind(ReportKind.INVOICE_GAPS)
    refiner.set_rows(gaps)

    assert [gap.id for gap in refiner.set_search("botica").visible] == [2]
    assert [gap.id for gap in refiner.set_search("fac-000001").visible] == [1]
    assert [gap.id for gap in refiner.set_search("FAC-001005").visible] == [1, 2]


def test_client_refiner_resets_page_when_search_changes() -> None:
    refiner = ClientRefiner.for_kind(ReportKind.PHARMACY_SALES, per_page=10)
    refiner.set_rows(_pharmacies(23))
    assert refiner.set_page(3).page == 3

    assert refiner.set_search("Farmacia").page == 1
    refiner.set_page(2)
    assert refiner.set_search("Farmacia").page == 2

    refiner.reset()
    assert refiner.view().page == 1
    assert refiner.search_text == ""


def test_client_refiner_page_numbers_follow_rows() -> None:
    refiner = ClientRefiner.for_kind(ReportKind.PRODUCT_SALES, per_page=2)
    refiner.set_rows([{"name": f"Product {index}", "dose": "10mg"} for index in range(24)])
    refiner.set_page(1)
    assert refiner.page_numbers() == [1, 2, 3, 4, ELLIPSIS, 12]
