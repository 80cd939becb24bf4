"""
SKU Reports

- Top SKUs by spend
- Replenishment cadence (average days between purchases of a SKU)
- SKU options for the filter bar
"""

from typing import Any, Dict, List, Optional

import polars as pl
import structlog

from spend_analytics.database.models import Invoice, InvoiceLine
from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports.frames import SKU_SPEND_SCHEMA, invoice_ids, to_frame
from spend_analytics.reports.result import ReportResult, report
from spend_analytics.repository import InvoiceRepository

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _blank_to(column: str, default: str) -> pl.Expr:
    value = pl.col(column)
    return (
        pl.when(value.is_null() | (value.str.strip_chars() == ""))
        .then(pl.lit(default))
        .otherwise(value)
        .alias(column)
    )


def rank_skus_by_spend(lines: List[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    """
    Group lines by SKU and rank by summed line_total.

    The first line seen for a SKU supplies its description and category.

    Args:
        lines: Rows with sku, description, category and line_total
        limit: Number of SKUs to keep

    Returns:
        [{sku, description, category, total}] sorted by total descending
    """
    if not lines:
        return []

    ranked = (
        to_frame(lines, SKU_SPEND_SCHEMA)
        .group_by("sku", maintain_order=True)
        .agg(
            pl.col("description").first(),
            pl.col("category").first(),
            pl.col("line_total").fill_null(0).sum().alias("total"),
        )
        .with_columns(
            _blank_to("description", "No description"),
            _blank_to("category", "Unknown"),
        )
        .sort("total", descending=True, maintain_order=True)
        .head(limit)
    )
    return ranked.select("sku", "description", "category", "total").to_dicts()


def compute_replenishment_cadence(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Purchase count and average days between purchases per SKU.

    Each line is one purchase, timed by its created_at; lines without a
    created_at cannot be placed and are not counted. The average is the
    elapsed time between the first and last purchase divided by the number
    of gaps, or None for a single purchase.
    """
    purchases: Dict[Optional[str], Dict[str, Any]] = {}
    for line in lines:
        if line.get("created_at") is None:
            continue
        entry = purchases.setdefault(line["sku"], {
            "sku": line["sku"],
            "description": line.get("description") or "No description",
            "dates": [],
        })
        entry["dates"].append(line["created_at"])

    cadence = []
    for entry in purchases.values():
        dates = sorted(entry["dates"])
        avg_days = None
        if len(dates) > 1:
            elapsed = (dates[-1] - dates[0]).total_seconds() / SECONDS_PER_DAY
            avg_days = elapsed / (len(dates) - 1)
        cadence.append({
            "sku": entry["sku"],
            "description": entry["description"],
            "purchase_count": len(dates),
            "avg_days_between": avg_days,
            "last_purchase": dates[-1],
        })

    cadence.sort(key=lambda item: item["sku"] or "")
    return cadence


@report("top_skus_by_spend", list)
async def fetch_top_skus_by_spend(
    repo: InvoiceRepository,
    filters: InvoiceFilters,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Top SKUs by spend for the filter, truncated to limit (default 100)."""
    limit = limit or filters.limit or repo.settings.reports.top_skus_limit

    invoices = await repo.select_invoices(filters, columns=(Invoice.id,))
    if not invoices:
        return ReportResult.empty([])

    lines = await repo.select_lines(
        invoice_ids(invoices),
        filters,
        columns=(InvoiceLine.sku, InvoiceLine.description, InvoiceLine.category, InvoiceLine.line_total),
    )

    result = rank_skus_by_spend(lines, limit)
    logger.info("Top SKUs computed", invoices=len(invoices), lines=len(lines), skus=len(result), limit=limit)
    return result


async def load_cadence(
    repo: InvoiceRepository,
    filters: InvoiceFilters,
    sku: Optional[str] = None,
) -> List[Dict[str, Any]]:
    invoices = await repo.select_invoices(filters, columns=(Invoice.id,))
    if not invoices:
        return []

    lines = await repo.select_lines(
        invoice_ids(invoices),
        filters,
        columns=(InvoiceLine.invoice_id, InvoiceLine.sku, InvoiceLine.description, InvoiceLine.created_at),
        sku=sku,
    )
    return compute_replenishment_cadence(lines)


@report("sku_replenishment_cadence", list)
async def fetch_sku_replenishment_cadence(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """Replenishment cadence for every SKU bought under the filter."""
    return await load_cadence(repo, filters)


@report("all_skus", list)
async def fetch_all_skus(repo: InvoiceRepository) -> List[Dict[str, Any]]:
    return await repo.distinct_skus()
