"""
Analytics API Endpoints

Spend reports for the dashboard. Every endpoint takes the filter bag as
query parameters and returns the report payload; a failed report is served
as its empty value.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from spend_analytics.filters import InvoiceFilters
from spend_analytics.reports import (
    fetch_category_spend_trend,
    fetch_category_volatility,
    fetch_dashboard_stats,
    fetch_invoice_count_by_location,
    fetch_location_category_heat_map,
    fetch_sku_replenishment_cadence,
    fetch_top_skus_by_spend,
)
from spend_analytics.repository import InvoiceRepository
from spend_analytics.serving.api.dependencies import filters_from_query, get_repository, report_data

router = APIRouter()
logger = structlog.get_logger(__name__)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class DashboardStats(BaseModel):
    """Spend totals for the header cards"""
    total_expenses: float
    expenses_by_category: Dict[str, float]
    expenses_by_location: Dict[str, float]


class TopSku(BaseModel):
    """SKU ranked by spend"""
    sku: Optional[str]
    description: str
    category: str
    total: float


class HeatMap(BaseModel):
    """Location x category spend; each data row maps category -> spend"""
    locations: List[str]
    categories: List[str]
    data: List[Dict[str, Any]]


class CategoryVolatility(BaseModel):
    """Line total spread for one category"""
    category: str
    min: float
    q1: float
    median: float
    q3: float
    max: float
    mean: float


class SkuCadence(BaseModel):
    """How often a SKU is bought"""
    sku: Optional[str]
    description: str
    purchase_count: int
    avg_days_between: Optional[float]
    last_purchase: Optional[datetime]


class LocationInvoiceCount(BaseModel):
    """Invoices per location"""
    name: str
    value: int


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/dashboard", response_model=DashboardStats)
async def get_dashboard_stats(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    result = await fetch_dashboard_stats(repo, filters)
    return report_data(result, "dashboard")


@router.get("/top-skus", response_model=List[TopSku])
async def get_top_skus(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    """Top SKUs by spend, 100 unless limit is given."""
    result = await fetch_top_skus_by_spend(repo, filters)
    return report_data(result, "top-skus")


@router.get("/heatmap", response_model=HeatMap)
async def get_heat_map(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    result = await fetch_location_category_heat_map(repo, filters)
    return report_data(result, "heatmap")


@router.get("/category-volatility", response_model=List[CategoryVolatility])
async def get_category_volatility(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    result = await fetch_category_volatility(repo, filters)
    return report_data(result, "category-volatility")


@router.get("/category-trend", response_model=List[Dict[str, Any]])
async def get_category_trend(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    """Monthly spend per category: [{month: "YYYY-MM", <category>: spend}]"""
    result = await fetch_category_spend_trend(repo, filters)
    return report_data(result, "category-trend")


@router.get("/replenishment", response_model=List[SkuCadence])
async def get_replenishment_cadence(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    result = await fetch_sku_replenishment_cadence(repo, filters)
    return report_data(result, "replenishment")


@router.get("/locations/invoice-counts", response_model=List[LocationInvoiceCount])
async def get_invoice_counts_by_location(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    result = await fetch_invoice_count_by_location(repo, filters)
    return report_data(result, "locations/invoice-counts")
