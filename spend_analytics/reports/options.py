"""
Filter bar options: every location, category and SKU in the store.
"""

from typing import Any, Dict

from spend_analytics.reports.categories import fetch_all_categories
from spend_analytics.reports.locations import fetch_all_locations
from spend_analytics.reports.result import ReportResult, ReportStatus, report
from spend_analytics.reports.skus import fetch_all_skus
from spend_analytics.repository import InvoiceRepository


def empty_filter_options() -> Dict[str, Any]:
    return {"locations": [], "categories": [], "skus": []}


@report("filter_options", empty_filter_options)
async def fetch_filter_options(repo: InvoiceRepository) -> Dict[str, Any]:
    """
    Each list degrades to [] on its own when its query fails; the result is
    tagged FAILED if any of them did.
    """
    results = {
        "locations": await fetch_all_locations(repo),
        "categories": await fetch_all_categories(repo),
        "skus": await fetch_all_skus(repo),
    }
    options = {name: result.data for name, result in results.items()}

    errors = [f"{name}: {result.error}" for name, result in results.items() if result.is_failed]
    if errors:
        return ReportResult(ReportStatus.FAILED, options, "; ".join(errors))
    if not any(options.values()):
        return ReportResult.empty(options)
    return options
