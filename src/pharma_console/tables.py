from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence, TextIO

from .fetchers import ReportKind
from .models_invoice_gaps import InvoiceGapStatistics
from .models_reports import PurchaseSummary
from .refinement import resolve_path

EMPTY_VALUE = "—"
_STATUS_WORDS = {"active", "inactive", "pending", "resolved", "manual", "automatic"}


@dataclass(frozen=True)
class ColumnDef:
    key: str
    label: str
    format: str = "text"


@dataclass(frozen=True)
class TableViewModel:
    title: str
    columns: tuple[ColumnDef, ...]
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def headers(self) -> list[str]:
        return [column.label for column in self.columns]


def _money(label: str, key: str) -> ColumnDef:
    return ColumnDef(key=key, label=label, format="money")


COLUMNS: dict[ReportKind, tuple[str, tuple[ColumnDef, ...]]] = {
    ReportKind.PURCHASES: (
        "Purchases",
        (
            ColumnDef("id", "ID"),
            ColumnDef("transaction_date", "Date"),
            ColumnDef("invoice_number", "Invoice"),
            ColumnDef("pharmacy.commercial_name", "Pharmacy"),
            ColumnDef("patient.full_name", "Patient"),
            ColumnDef("entry_type", "Entry"),
            _money("Total", "total"),
        ),
    ),
    ReportKind.PHARMACY_SALES: (
        "Sales by pharmacy",
        (
            ColumnDef("commercial_name", "Pharmacy"),
            ColumnDef("identification_number", "Tax ID"),
            ColumnDef("total_transactions", "Transactions"),
            _money("Total sales", "total_sales"),
            _money("Average", "average_transaction"),
            ColumnDef("unique_patients", "Patients"),
        ),
    ),
    ReportKind.PRODUCT_SALES: (
        "Sales by product",
        (
            ColumnDef("name", "Product"),
            ColumnDef("dose", "Dose"),
            ColumnDef("total_quantity", "Quantity"),
            _money("Revenue", "total_revenue"),
            ColumnDef("pharmacies_count", "Pharmacies"),
            ColumnDef("patients_count", "Patients"),
        ),
    ),
    ReportKind.PHARMACY_REDEMPTIONS: (
        "Redemptions by pharmacy",
        (
            ColumnDef("commercial_name", "Pharmacy"),
            ColumnDef("identification_number", "Tax ID"),
            ColumnDef("total_redemptions", "Redemptions"),
            ColumnDef("total_quantity_redeemed", "Redeemed"),
            ColumnDef("total_quantity_received", "Received"),
            ColumnDef("unique_patients", "Patients"),
            ColumnDef("unique_products", "Products"),
        ),
    ),
    ReportKind.REDEMPTION_DETAILS: (
        "Redemption details",
        (
            ColumnDef("redemption_date", "Date"),
            ColumnDef("pharmacy_name", "Pharmacy"),
            ColumnDef("sub_pharmacy_name", "Branch"),
            ColumnDef("patient_name", "Patient"),
            ColumnDef("patient_identification", "Patient ID"),
            ColumnDef("product_name", "Product"),
            ColumnDef("product_dose", "Dose"),
            ColumnDef("quantity_redeemed", "Redeemed"),
            ColumnDef("quantity_received", "Received"),
        ),
    ),
    ReportKind.PRODUCT_REDEMPTIONS: (
        "Redemptions by product",
        (
            ColumnDef("name", "Product"),
            ColumnDef("dose", "Dose"),
            ColumnDef("total_redemptions", "Redemptions"),
            ColumnDef("total_quantity_redeemed", "Redeemed"),
            ColumnDef("total_quantity_received", "Received"),
            ColumnDef("pharmacies_count", "Pharmacies"),
            ColumnDef("patients_count", "Patients"),
        ),
    ),
    ReportKind.PATIENT_PRODUCT_REDEMPTIONS: (
        "Redemptions by patient and product",
        (
            ColumnDef("patient_name", "Patient"),
            ColumnDef("patient_identification", "Patient ID"),
            ColumnDef("product_name", "Product"),
            ColumnDef("product_dose", "Dose"),
            ColumnDef("total_redemptions", "Redemptions"),
            ColumnDef("total_quantity_redeemed", "Redeemed"),
            ColumnDef("total_quantity_received", "Received"),
            ColumnDef("last_redemption_date", "Last redemption"),
            ColumnDef("pharmacies_count", "Pharmacies"),
        ),
    ),
    ReportKind.INVOICE_GAPS: (
        "Invoice gaps",
        (
            ColumnDef("id", "ID"),
            ColumnDef("pharmacy.commercial_name", "Pharmacy"),
            ColumnDef("expected_pattern", "Expected"),
            ColumnDef("received_pattern", "Received"),
            ColumnDef("similarity_score", "Similarity", format="percent"),
            ColumnDef("missing_range", "Missing range"),
            ColumnDef("transaction.invoice_number", "Invoice"),
            ColumnDef("state", "Status"),
            ColumnDef("created_at", "Detected"),
        ),
    ),
    ReportKind.TRANSACTIONS: (
        "Transactions",
        (
            ColumnDef("id", "ID"),
            ColumnDef("redemption_date", "Date"),
            ColumnDef("patient.full_name", "Patient"),
            ColumnDef("patient.identification_number", "Patient ID"),
            ColumnDef("pharmacy.commercial_name", "Pharmacy"),
            ColumnDef("product_dose.product.name", "Product"),
            ColumnDef("product_dose.dose", "Dose"),
            ColumnDef("entry_type", "Entry"),
        ),
    ),
}


def normalize_value(value: Any, format: str = "text") -> str:
    if value is None:
        return EMPTY_VALUE
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "ACTIVE" if value else "INACTIVE"
    if format == "money" and isinstance(value, (Decimal, int, float)):
        return f"{Decimal(str(value)):,.2f}"
    if format == "percent" and isinstance(value, (Decimal, int, float)):
        return f"{float(value):.1f}%"
    if isinstance(value, str):
        clean = value.strip()
        if not clean:
            return EMPTY_VALUE
        if clean.lower() in _STATUS_WORDS:
            return clean.upper()
        return clean
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def build_table(kind: ReportKind, rows: Sequence[Any] | None) -> TableViewModel:
    try:
        title, columns = COLUMNS[kind]
    except KeyError:
        raise ValueError(f"{kind.value} has no tabular rows") from None
    rendered = [
        {column.label: normalize_value(resolve_path(row, column.key), column.format) for column in columns}
        for row in rows or []
    ]
    return TableViewModel(title=title, columns=columns, rows=rendered)


def build_statistics_table(stats: InvoiceGapStatistics) -> TableViewModel:
    columns = (ColumnDef("metric", "Metric"), ColumnDef("value", "Value"))
    metrics = [
        ("Total gaps", stats.total_gaps),
        ("Unresolved", stats.unresolved_gaps),
        ("Resolved", stats.resolved_gaps),
        ("This month", stats.gaps_this_month),
    ]
    for entry in stats.pharmacies_with_most_gaps:
        name = entry.pharmacy.display_name if entry.pharmacy else f"#{entry.pharmacy_id}"
        metrics.append((f"Gaps at {name}", entry.gaps_count))
    rows = [{"Metric": label, "Value": normalize_value(value)} for label, value in metrics]
    return TableViewModel(title="Invoice gap statistics", columns=columns, rows=rows)


def print_table(table: TableViewModel, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    print(f"\n{table.title}", file=out)
    if not table.rows:
        print("(no results)", file=out)
        return

    headers = table.headers
    widths = [max(len(header), max(len(row[header]) for row in table.rows)) for header in headers]
    print(" | ".join(header.ljust(widths[idx]) for idx, header in enumerate(headers)), file=out)
    print("-+-".join("-" * width for width in widths), file=out)
    for row in table.rows:
        print(" | ".join(row[header].ljust(widths[idx]) for idx, header in enumerate(headers)), file=out)


def build_purchase_summary_table(summary: PurchaseSummary) -> TableViewModel:
    columns = (ColumnDef("metric", "Metric"), ColumnDef("value", "Value"))
    metrics = [
        ("Transactions", normalize_value(summary.total_transactions)),
        ("Total amount", normalize_value(summary.total_amount, "money")),
        ("Average ticket", normalize_value(summary.average_transaction, "money")),
        ("Manual entries", normalize_value(summary.manual_entries)),
        ("Automatic entries", normalize_value(summary.automatic_entries)),
    ]
    rows = [{"Metric": label, "Value": value} for label, value in metrics]
    return TableViewModel(title="Purchases summary", columns=columns, rows=rows)
