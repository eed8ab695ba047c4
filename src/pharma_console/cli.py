from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence, TextIO

from .config import ConfigError, load_config
from .exceptions import ApiError
from .fetchers import ReportKind, SliceStatus
from .logs import configure_logging
from .models_invoice_gaps import InvoiceGap
from .session import ConsoleSession
from .tables import (
    ColumnDef,
    TableViewModel,
    build_purchase_summary_table,
    build_statistics_table,
    build_table,
    normalize_value,
    print_table,
)
from .ui_errors import to_user_facing_error
from .views import (
    ReportView,
    invoice_gaps_controller,
    patient_products_view,
    purchases_dashboard,
    redemptions_dashboard,
    transactions_view,
)

VIEW_KINDS: dict[str, tuple[ReportKind, ...]] = {
    "purchases": (ReportKind.PURCHASES, ReportKind.PHARMACY_SALES, ReportKind.PRODUCT_SALES),
    "redemptions": (
        ReportKind.PHARMACY_REDEMPTIONS,
        ReportKind.REDEMPTION_DETAILS,
        ReportKind.PRODUCT_REDEMPTIONS,
    ),
    "patient-products": (ReportKind.PATIENT_PRODUCT_REDEMPTIONS,),
    "transactions": (ReportKind.TRANSACTIONS,),
}
VIEW_FACTORIES = {
    "purchases": purchases_dashboard,
    "redemptions": redemptions_dashboard,
    "patient-products": patient_products_view,
    "transactions": transactions_view,
}


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--pharmacy-id", dest="pharmacy_id", type=int)
    parser.add_argument("--start-date", dest="start_date")
    parser.add_argument("--end-date", dest="end_date")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--per-page", dest="per_page", type=int)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pharma-console", description="Pharmacy network reporting console")
    parser.add_argument("--env-file", default=None)
    parser.add_argument("--log-level", default="WARNING")
    commands = parser.add_subparsers(dest="command", required=True)

    purchases = commands.add_parser("purchases", help="Purchases, sales by pharmacy and sales by product")
    _add_common(purchases)
    purchases.add_argument("--entry-type", dest="entry_type", choices=["manual", "automatic"])
    purchases.add_argument("--search", dest="search_text", help="Local search over the full-set reports")

    redemptions = commands.add_parser("redemptions", help="Redemption reports")
    _add_common(redemptions)
    redemptions.add_argument("--search", dest="search_text", help="Local search over the full-set reports")

    patient_products = commands.add_parser("patient-products", help="Redemptions by patient and product")
    _add_common(patient_products)
    patient_products.add_argument("--patient-id", dest="patient_id", type=int)
    patient_products.add_argument("--product-id", dest="product_id", type=int)
    patient_products.add_argument("--search", dest="search_text")

    transactions = commands.add_parser("transactions", help="Transaction log")
    _add_common(transactions)
    transactions.add_argument("--entry-type", dest="entry_type", choices=["manual", "automatic"])
    transactions.add_argument("--patient-id", dest="patient_id", type=int)
    transactions.add_argument("--name", dest="patient_name")
    transactions.add_argument("--email")
    transactions.add_argument("--identification-number", dest="identification_number")

    gaps = commands.add_parser("gaps", help="Invoice numbering gaps")
    gap_commands = gaps.add_subparsers(dest="gap_command", required=True)
    gap_list = gap_commands.add_parser("list")
    gap_list.add_argument("--pharmacy-id", dest="pharmacy_id", type=int)
    gap_list.add_argument("--status", choices=["pending", "resolved"])
    gap_list.add_argument("--start-date", dest="start_date")
    gap_list.add_argument("--end-date", dest="end_date")
    gap_list.add_argument("--search")
    gap_list.add_argument("--page", type=int, default=1)
    gap_list.add_argument("--unresolved", action="store_true", help="Use the unresolved shortcut endpoint")
    gap_show = gap_commands.add_parser("show")
    gap_show.add_argument("gap_id", type=int)
    gap_resolve = gap_commands.add_parser("resolve")
    gap_resolve.add_argument("gap_id", type=int)
    gap_resolve.add_argument("--notes")
    gap_commands.add_parser("stats")
    return parser


def _criteria(args: argparse.Namespace) -> dict[str, Any]:
    keys = (
        "pharmacy_id",
        "start_date",
        "end_date",
        "entry_type",
        "search_text",
        "patient_id",
        "product_id",
        "patient_name",
        "email",
        "identification_number",
        "per_page",
    )
    return {key: getattr(args, key) for key in keys if getattr(args, key, None) is not None}


def _print_slice_error(kind: ReportKind, view: ReportView, out: TextIO) -> bool:
    current = view.slice(kind)
    if current.status is not SliceStatus.ERROR or current.error is None:
        return False
    trace = f" (trace {current.error.trace_id})" if current.error.trace_id else ""
    print(f"\n{kind.value}: {current.error.kind.value} error: {current.error.message}{trace}", file=out)
    return True


def run_report_view(view: ReportView, kinds: Sequence[ReportKind], args: argparse.Namespace, out: TextIO) -> int:
    with view:
        view.apply(**_criteria(args))
        view.wait()
        page = getattr(args, "page", 1) or 1
        server_paged = [kind for kind in kinds if kind not in view.refiners]
        if page > 1 and server_paged:
            for kind in server_paged:
                view.set_page(kind, page)
            view.wait()
        failed = False
        for kind in kinds:
            if _print_slice_error(kind, view, out):
                failed = True
                continue
            if kind in view.refiners:
                view.set_page(kind, page)
            if kind is ReportKind.PURCHASES and view.slice(kind).data is not None:
                print_table(build_purchase_summary_table(view.slice(kind).data.summary), out)
            print_table(view.table(kind), out)
            _print_pagination(view, kind, out)
    return 1 if failed else 0


def _print_pagination(view: ReportView, kind: ReportKind, out: TextIO) -> None:
    if kind in view.refiners:
        refined = view.refined(kind)
        print(f"page {refined.page}/{refined.total_pages} ({refined.total} rows)", file=out)
        return
    pagination = getattr(view.slice(kind).data, "pagination", None)
    if pagination is not None:
        print(f"page {pagination.current_page}/{pagination.last_page} ({pagination.total} rows)", file=out)


def _gap_detail_table(gap: InvoiceGap) -> TableViewModel:
    details = gap.anomaly_details
    pairs = [
        ("ID", gap.id),
        ("Pharmacy", gap.pharmacy.display_name if gap.pharmacy else gap.pharmacy_id),
        ("Expected", gap.expected_pattern),
        ("Received", gap.received_pattern),
        ("Similarity", normalize_value(gap.similarity_score, "percent")),
        ("Missing range", gap.missing_range),
        ("Invoice", gap.transaction.invoice_number if gap.transaction else None),
        ("Reason", details.reason if details else None),
        ("Recent invoices", ", ".join(details.recent_invoices_sample) if details else None),
        ("Status", gap.state),
        ("Resolved at", gap.resolved_at),
        ("Resolved by", gap.resolved_by_user.name if gap.resolved_by_user else gap.resolved_by),
        ("Notes", gap.resolution_notes),
    ]
    rows = [{"Field": label, "Value": normalize_value(value)} for label, value in pairs]
    return TableViewModel(
        title=f"Invoice gap {gap.id}",
        columns=(ColumnDef("field", "Field"), ColumnDef("value", "Value")),
        rows=rows,
    )


def run_gaps(session: ConsoleSession, args: argparse.Namespace, out: TextIO) -> int:
    controller = invoice_gaps_controller(session)
    with controller:
        if args.gap_command == "show":
            print_table(_gap_detail_table(controller.get_details(args.gap_id)), out)
            return 0
        if args.gap_command == "resolve":
            controller.load()
            controller.orchestrator.wait()
            resolved = controller.resolve(args.gap_id, args.notes)
            controller.orchestrator.wait(controller.last_refresh)
            print_table(_gap_detail_table(resolved), out)
            stats = controller.statistics()
            if stats is not None:
                print_table(build_statistics_table(stats), out)
            return 0
        if args.gap_command == "stats":
            controller.orchestrator.wait(controller.orchestrator.refresh([ReportKind.INVOICE_GAP_STATISTICS]))
            current = controller.orchestrator.slice(ReportKind.INVOICE_GAP_STATISTICS)
            if current.data is None:
                print(f"statistics unavailable: {current.error.message if current.error else 'no data'}", file=out)
                return 1
            print_table(build_statistics_table(current.data), out)
            return 0

        if args.unresolved:
            controller.refiner.set_rows(controller.list_unresolved())
            controller.refiner.set_search(args.search)
            refined = controller.refiner.set_page(args.page)
        else:
            changes: dict[str, Any] = {
                "pharmacy_id": args.pharmacy_id,
                "start_date": args.start_date,
                "end_date": args.end_date,
                "search_text": args.search,
            }
            if args.status:
                changes["is_resolved"] = args.status == "resolved"
            controller.filters.apply(**{key: value for key, value in changes.items() if value is not None})
            controller.orchestrator.wait()
            current = controller.orchestrator.slice(ReportKind.INVOICE_GAPS)
            if current.status is SliceStatus.ERROR and current.error is not None:
                print(f"invoice gaps: {current.error.kind.value} error: {current.error.message}", file=out)
                return 1
            refined = controller.set_page(args.page)
        print_table(build_table(ReportKind.INVOICE_GAPS, refined.visible), out)
        print(f"page {refined.page}/{refined.total_pages} ({refined.total} rows)", file=out)
    return 0


def main(argv: Sequence[str] | None = None, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    args = build_parser().parse_args(argv)
    configure_logging(getattr(logging, str(args.log_level).upper(), logging.WARNING))
    try:
        session = ConsoleSession(load_config(args.env_file))
        if args.command == "gaps":
            return run_gaps(session, args, out)
        view = VIEW_FACTORIES[args.command](session)
        return run_report_view(view, VIEW_KINDS[args.command], args, out)
    except ConfigError as exc:
        print(f"configuration error: {exc}", file=out)
        return 2
    except ApiError as exc:
        error = to_user_facing_error(exc)
        print(
            json.dumps({"error": exc.code, "message": error.message, "trace_id": error.trace_id}, indent=2),
            file=out,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
