"""
Filter Options Endpoint

Values for the dashboard's location, category and SKU pickers.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from spend_analytics.reports import fetch_filter_options
from spend_analytics.repository import InvoiceRepository
from spend_analytics.serving.api.dependencies import get_repository, report_data

router = APIRouter()


class SkuOption(BaseModel):
    sku: str
    description: str
    category: str


class FilterOptions(BaseModel):
    """Picker values; ignore-tagged categories and their SKUs are left out"""
    locations: List[str]
    categories: List[str]
    skus: List[SkuOption]


@router.get("/options", response_model=FilterOptions)
async def filter_options(repo: InvoiceRepository = Depends(get_repository)):
    result = await fetch_filter_options(repo)
    return report_data(result, "filters/options")
