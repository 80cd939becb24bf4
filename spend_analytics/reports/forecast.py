"""
Inventory Forecast

Projects the next purchase of each SKU from its replenishment cadence:
next_expected_purchase = last_purchase + avg_days_between.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

import structlog

from spend_analytics.errors import ValidationError
from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports.result import ReportResult, report
from spend_analytics.reports.skus import load_cadence
from spend_analytics.repository import InvoiceRepository

logger = structlog.get_logger(__name__)


def project_next_purchase(cadence: Dict[str, Any]) -> Dict[str, Any]:
    """Add next_expected_purchase to a cadence row (None when unknown)."""
    last_purchase = cadence.get("last_purchase")
    avg_days = cadence.get("avg_days_between")
    next_purchase = None
    if last_purchase is not None and avg_days is not None:
        next_purchase = last_purchase + timedelta(days=avg_days)
    return {**cadence, "next_expected_purchase": next_purchase}


@report("inventory_forecast", list)
async def forecast_inventory(repo: InvoiceRepository, filters: InvoiceFilters) -> List[Dict[str, Any]]:
    cadence = await load_cadence(repo, filters)
    forecast = [project_next_purchase(row) for row in cadence]
    logger.info("Inventory forecast computed", skus=len(forecast))
    return forecast


@report("sku_demand_forecast", lambda: None)
async def forecast_sku_demand(
    repo: InvoiceRepository,
    sku: Optional[str],
    filters: Optional[InvoiceFilters] = None,
) -> Optional[Dict[str, Any]]:
    """
    Forecast for one SKU, matched exactly but case-insensitively.

    Raises:
        ValidationError: sku is missing or blank
    """
    if not sku or not sku.strip():
        raise ValidationError("sku is required")
    sku = sku.strip()

    cadence = await load_cadence(repo, filters or InvoiceFilters(), sku=sku)
    for row in cadence:
        if row["sku"] is not None and row["sku"].lower() == sku.lower():
            return project_next_purchase(row)

    logger.debug("No purchases found for SKU", sku=sku)
    return ReportResult.empty(None)
