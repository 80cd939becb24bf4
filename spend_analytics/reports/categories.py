"""
Category Reports

- Category volatility: spread of line totals per category
- Category spend trend: monthly spend per category
- Category options for the filter bar
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List

import numpy as np
import structlog

from spend_analytics.database.models import Invoice, InvoiceLine
from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports.frames import drop_reserved, invoice_ids
from spend_analytics.reports.result import ReportResult, report
from spend_analytics.repository import InvoiceRepository, as_date

logger = structlog.get_logger(__name__)


def summarize_line_totals(totals: Iterable[float]) -> Dict[str, float]:
    """
    Box-plot statistics for a set of line totals.

    Quartiles are picked by index, q1 = v[n // 4] and q3 = v[3n // 4] of the
    ascending values, without interpolation. The median averages the two
    middle values for an even count.
    """
    values = np.sort(np.asarray(list(totals), dtype=float))
    n = len(values)
    if n == 0:
        raise ValueError("Cannot summarize an empty set of totals")

    return {
        "min": float(values[0]),
        "q1": float(values[n // 4]),
        "median": float(np.median(values)),
        "q3": float(values[(3 * n) // 4]),
        "max": float(values[-1]),
        "mean": float(np.mean(values)),
    }


def compute_category_volatility(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    by_category: Dict[str, List[float]] = defaultdict(list)
    for line in lines:
        if line["category"] is None or line["line_total"] is None:
            continue
        by_category[line["category"]].append(line["line_total"])

    return [
        {"category": category, **summarize_line_totals(totals)}
        for category, totals in sorted(by_category.items())
    ]


def compute_category_spend_trend(
    invoices: List[Dict[str, Any]],
    lines: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Spend per (YYYY-MM, category), one row per month in ascending order."""
    months = {}
    for invoice in invoices:
        invoice_date = as_date(invoice["invoice_date"])
        if invoice_date is not None:
            months[invoice["id"]] = invoice_date.strftime("%Y-%m")

    spend: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for line in lines:
        month = months.get(line["invoice_id"])
        if month is None or line["category"] is None:
            continue
        spend[month][line["category"]] += line["line_total"] or 0.0

    columns = set(drop_reserved(
        (category for categories in spend.values() for category in categories), "month", "category_spend_trend"
    ))
    return [
        {"month": month, **{category: total for category, total in categories.items() if category in columns}}
        for month, categories in sorted(spend.items())
    ]


@report("category_volatility", list)
async def fetch_category_volatility(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """min/q1/median/q3/max/mean of line totals per category."""
    invoices = await repo.select_invoices(filters, columns=(Invoice.id,))
    if not invoices:
        return ReportResult.empty([])

    lines = await repo.select_lines(
        invoice_ids(invoices),
        filters,
        columns=(InvoiceLine.invoice_id, InvoiceLine.category, InvoiceLine.line_total),
    )
    return compute_category_volatility(lines)


@report("category_spend_trend", list)
async def fetch_category_spend_trend(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    invoices = await repo.select_invoices(filters, columns=(Invoice.id, Invoice.invoice_date))
    if not invoices:
        return ReportResult.empty([])

    lines = await repo.select_lines(
        invoice_ids(invoices),
        filters,
        columns=(InvoiceLine.invoice_id, InvoiceLine.category, InvoiceLine.line_total),
    )
    trend = compute_category_spend_trend(invoices, lines)
    logger.debug("Category spend trend computed", months=len(trend))
    return trend


@report("all_categories", list)
async def fetch_all_categories(repo: InvoiceRepository) -> List[str]:
    return await repo.distinct_categories()
