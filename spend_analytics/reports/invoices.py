"""
Invoice Reports

Invoice and line listings joined in memory:
- Invoices with their non-ignored lines
- Flat export rows (one per invoice line)
- Most expensive invoices
- Invoice lines by filter, optionally narrowed to a SKU
"""

from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional

import structlog

from spend_analytics.database.models import (
    Invoice,
    InvoiceLine,
    INVOICE_LISTING_COLUMNS,
    INVOICE_SUMMARY_COLUMNS,
)
from spend_analytics.errors import ValidationError
from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports.frames import invoice_ids
from spend_analytics.reports.result import ReportResult, report
from spend_analytics.repository import InvoiceRepository, as_date

logger = structlog.get_logger(__name__)

# Invoice attributes copied onto each line in line listings
LINE_INVOICE_FIELDS = ("invoice_date", "invoice_number", "source", "location", "pdf_url")


def _newest_first(rows: List[Dict[str, Any]], field: str = "invoice_date") -> List[Dict[str, Any]]:
    """Sort by date descending; undated rows go last."""
    def key(row):
        value = as_date(row.get(field))
        return (value is not None, value or date.min)

    return sorted(rows, key=key, reverse=True)


async def load_invoices_with_lines(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """
    Invoices matching the filter, each with its matching lines attached.

    Without a category filter an invoice is dropped only when all of its
    lines are ignore-tagged. With a category filter only invoices having at
    least one matching line are kept.
    """
    invoices = await repo.select_invoices(
        filters,
        columns=INVOICE_LISTING_COLUMNS,
        order_by=(Invoice.invoice_date.desc(), Invoice.id),
        search=True,
    )
    if not invoices:
        return []

    ids = invoice_ids(invoices)
    lines_by_invoice: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for line in await repo.select_lines(ids, filters):
        lines_by_invoice[line["invoice_id"]].append(line)

    if filters.has_category_filter:
        kept = [invoice for invoice in invoices if lines_by_invoice.get(invoice["id"])]
    else:
        ignored = await repo.select_ignored_invoice_ids(ids)
        kept = [
            invoice for invoice in invoices
            if invoice["id"] not in ignored or lines_by_invoice.get(invoice["id"])
        ]

    logger.debug("Invoices joined to lines", invoices=len(invoices), kept=len(kept))
    return [{**invoice, "lines": lines_by_invoice.get(invoice["id"], [])} for invoice in kept]


@report("invoices", list)
async def fetch_invoices(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    return await load_invoices_with_lines(repo, filters)


@report("invoice_export", list)
async def export_invoice_rows(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """One flat row per invoice line for spreadsheet export."""
    rows = []
    for invoice in await load_invoices_with_lines(repo, filters):
        for line in invoice["lines"]:
            rows.append({
                "invoice_id": invoice["id"],
                "invoice_date": invoice["invoice_date"],
                "source": invoice["source"],
                "location": invoice["location"],
                "status": invoice["status"],
                "description": line["description"],
                "category": line["category"],
                "line_total": line["line_total"],
                "invoice_total": invoice["invoice_total"],
            })
    return rows


@report("most_expensive_invoices", list)
async def fetch_most_expensive_invoices(
    repo: InvoiceRepository,
    filters: InvoiceFilters,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Highest invoice_total first, top 20 by default.

    With a category filter only invoices having a line in that category
    qualify.
    """
    limit = limit or repo.settings.reports.most_expensive_limit

    invoices = await repo.select_invoices(
        filters,
        columns=INVOICE_SUMMARY_COLUMNS,
        order_by=(Invoice.invoice_total.desc().nulls_last(), Invoice.id),
    )
    logger.debug("Invoices after date/location filtering", count=len(invoices))
    if not invoices:
        return ReportResult.empty([])

    if filters.has_category_filter:
        lines = await repo.select_lines(invoice_ids(invoices), filters, columns=(InvoiceLine.invoice_id,))
        matching = {line["invoice_id"] for line in lines}
        invoices = [invoice for invoice in invoices if invoice["id"] in matching]
        logger.debug("Invoices with matching category", count=len(invoices), categories=filters.categories)

    return invoices[:limit]


async def _lines_with_invoice_details(
    repo: InvoiceRepository,
    filters: InvoiceFilters,
    sku: Optional[str] = None,
) -> List[Dict[str, Any]]:
    invoices = await repo.select_invoices(
        filters,
        columns=(Invoice.id,) + tuple(getattr(Invoice, field) for field in LINE_INVOICE_FIELDS),
    )
    if not invoices:
        return ReportResult.empty([])

    by_id = {invoice["id"]: invoice for invoice in invoices}
    lines = await repo.select_lines(list(by_id), filters, sku=sku)

    joined = []
    for line in lines:
        invoice = by_id.get(line["invoice_id"], {})
        joined.append({**line, **{field: invoice.get(field) for field in LINE_INVOICE_FIELDS}})

    joined = _newest_first(joined)
    if filters.limit:
        joined = joined[:filters.limit]

    logger.info("Invoice lines returned", count=len(joined), sku=sku)
    return joined


@report("invoice_lines", list)
async def fetch_invoice_lines_by_filters(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """Lines for the filter joined to invoice metadata, newest invoice first."""
    return await _lines_with_invoice_details(repo, filters, sku=filters.sku)


@report("invoice_lines_by_sku", list)
async def fetch_invoice_lines_by_sku(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """Like fetch_invoice_lines_by_filters, but a SKU is required."""
    if not filters.sku or not filters.sku.strip():
        raise ValidationError("sku is required")
    return await _lines_with_invoice_details(repo, filters, sku=filters.sku.strip())
