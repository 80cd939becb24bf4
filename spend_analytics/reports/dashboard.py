"""
Dashboard Totals

Spend totals for the dashboard header cards: overall, per category and per
location, all computed from non-ignored line totals rather than invoice
totals.
"""

from typing import Any, Dict

import polars as pl
import structlog

from spend_analytics.database.models import Invoice, InvoiceLine
from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports.frames import (
    INVOICE_LOCATION_SCHEMA,
    LINE_SPEND_SCHEMA,
    invoice_ids,
    sums_by,
    to_frame,
)
from spend_analytics.reports.result import ReportResult, report
from spend_analytics.repository import InvoiceRepository

logger = structlog.get_logger(__name__)


def empty_dashboard_stats() -> Dict[str, Any]:
    return {
        "total_expenses": 0.0,
        "expenses_by_category": {},
        "expenses_by_location": {},
    }


@report("dashboard_stats", empty_dashboard_stats)
async def fetch_dashboard_stats(repo: InvoiceRepository, filters: InvoiceFilters) -> Dict[str, Any]:
    """
    Total, per-category and per-location spend for the filter.

    Category keys are whitespace-trimmed so "Chemical " and "Chemical"
    land in the same bucket.
    """
    invoices = await repo.select_invoices(filters, columns=(Invoice.id, Invoice.location))
    if not invoices:
        return ReportResult.empty(empty_dashboard_stats())

    lines = await repo.select_lines(
        invoice_ids(invoices),
        filters,
        columns=(InvoiceLine.invoice_id, InvoiceLine.category, InvoiceLine.line_total),
    )

    frame = to_frame(lines, LINE_SPEND_SCHEMA).with_columns(pl.col("category").str.strip_chars())
    locations = to_frame(invoices, INVOICE_LOCATION_SCHEMA)
    joined = frame.join(locations, left_on="invoice_id", right_on="id", how="left")

    total = float(frame["line_total"].fill_null(0).sum())

    logger.info("Dashboard stats computed", invoices=len(invoices), lines=len(lines), total=total)

    return {
        "total_expenses": total,
        "expenses_by_category": sums_by(frame, "category"),
        "expenses_by_location": sums_by(joined, "location"),
    }
