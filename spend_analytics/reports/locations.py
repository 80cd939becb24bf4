"""
Location Reports

- Location x category heat map of spend
- Invoice counts per location
- Location options for the filter bar
"""

from collections import Counter
from typing import Any, Dict, List

import structlog

from spend_analytics.database.models import Invoice, InvoiceLine
from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports.frames import drop_reserved, invoice_ids
from spend_analytics.reports.invoices import load_invoices_with_lines
from spend_analytics.reports.result import ReportResult, report
from spend_analytics.repository import InvoiceRepository

logger = structlog.get_logger(__name__)


def empty_heat_map() -> Dict[str, Any]:
    return {"locations": [], "categories": [], "data": []}


def build_heat_map(invoices: List[Dict[str, Any]], lines: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Location x category spend matrix.

    Locations come from the invoices and categories from the lines; every
    combination starts at zero so absent pairs are present as 0.
    """
    location_by_invoice = {invoice["id"]: invoice["location"] for invoice in invoices}
    locations = sorted({invoice["location"] for invoice in invoices if invoice["location"]})
    categories = drop_reserved(
        (line["category"] for line in lines if line["category"]), "location", "location_category_heat_map"
    )

    matrix = {location: {category: 0.0 for category in categories} for location in locations}

    for line in lines:
        location = location_by_invoice.get(line["invoice_id"])
        if location in matrix and line["category"] in matrix[location]:
            matrix[location][line["category"]] += line["line_total"] or 0.0

    return {
        "locations": locations,
        "categories": categories,
        "data": [{"location": location, **matrix[location]} for location in locations],
    }


@report("location_category_heat_map", empty_heat_map)
async def fetch_location_category_heat_map(repo: InvoiceRepository, filters: InvoiceFilters) -> Dict[str, Any]:
    invoices = await repo.select_invoices(
        filters,
        columns=(Invoice.id, Invoice.location),
        cache_key=filters.cache_key("location-heatmap-invoices"),
    )
    if not invoices:
        return ReportResult.empty(empty_heat_map())

    lines = await repo.select_lines(
        invoice_ids(invoices),
        filters,
        columns=(InvoiceLine.invoice_id, InvoiceLine.category, InvoiceLine.line_total),
    )
    heat_map = build_heat_map(invoices, lines)
    logger.info(
        "Heat map computed",
        locations=len(heat_map["locations"]),
        categories=len(heat_map["categories"]),
    )
    return heat_map


@report("invoice_count_by_location", list)
async def fetch_invoice_count_by_location(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    """[{name, value}] invoices per location, ignore-only invoices excluded."""
    invoices = await load_invoices_with_lines(repo, filters)
    counts = Counter(invoice["location"] for invoice in invoices if invoice["location"])
    return [{"name": name, "value": value} for name, value in sorted(counts.items())]


@report("all_locations", list)
async def fetch_all_locations(repo: InvoiceRepository) -> List[str]:
    return await repo.distinct_locations()
