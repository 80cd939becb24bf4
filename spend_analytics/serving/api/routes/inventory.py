"""
Inventory API Endpoints

Purchase forecasts derived from SKU replenishment cadence.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from spend_analytics.filters import FilterRequest
from spend_analytics.reports import forecast_inventory, forecast_sku_demand
from spend_analytics.repository import InvoiceRepository
from spend_analytics.serving.api.dependencies import get_repository, report_data

router = APIRouter()


class SkuForecast(BaseModel):
    """Cadence of a SKU plus its projected next purchase"""
    sku: Optional[str]
    description: str
    purchase_count: int
    avg_days_between: Optional[float]
    last_purchase: Optional[datetime]
    next_expected_purchase: Optional[datetime]


class SkuForecastRequest(FilterRequest):
    """Forecast request for a single SKU"""
    sku: Optional[str] = None


class SkuForecastResponse(BaseModel):
    forecast: Optional[SkuForecast]


@router.post("/forecast", response_model=List[SkuForecast])
async def inventory_forecast(
    request: FilterRequest,
    repo: InvoiceRepository = Depends(get_repository),
):
    """Forecast for every SKU purchased under the filter."""
    result = await forecast_inventory(repo, request.to_filters())
    return report_data(result, "inventory/forecast")


@router.post("/forecast/sku", response_model=SkuForecastResponse)
async def sku_forecast(
    request: SkuForecastRequest,
    repo: InvoiceRepository = Depends(get_repository),
):
    """
    Forecast for one SKU.

    Returns 400 when sku is missing and {"forecast": null} when the SKU was
    never purchased.
    """
    result = await forecast_sku_demand(repo, request.sku, request.to_filters())
    return {"forecast": report_data(result, "inventory/forecast/sku")}
