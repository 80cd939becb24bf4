"""
FastAPI dependencies shared by the routers.
"""

from datetime import date
from typing import List, Optional

import structlog
from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from spend_analytics.config import get_settings
from spend_analytics.database.connection import get_db_dependency
from spend_analytics.filters import FilterValue, InvoiceFilters
from spend_analytics.reports import ReportResult
from spend_analytics.repository import InvoiceRepository
from spend_analytics.serving.cache import QueryCache

logger = structlog.get_logger(__name__)


def get_query_cache(request: Request) -> QueryCache:
    """The process-wide cache created in the application lifespan."""
    cache = getattr(request.app.state, "query_cache", None)
    if cache is None:
        raise RuntimeError("Query cache not initialized")
    return cache


async def get_repository(
    db: AsyncSession = Depends(get_db_dependency),
    cache: QueryCache = Depends(get_query_cache),
) -> InvoiceRepository:
    return InvoiceRepository(db, cache, get_settings())


def _single_or_list(values: Optional[List[str]]) -> FilterValue:
    # ?location=A is a substring match, ?location=A&location=B an exact match
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return values


def filters_from_query(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    location: Optional[List[str]] = Query(None),
    category: Optional[List[str]] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    sku: Optional[str] = None,
    search: Optional[str] = None,
) -> InvoiceFilters:
    """Build InvoiceFilters from query parameters."""
    return InvoiceFilters(
        date_from=date_from,
        date_to=date_to,
        location=_single_or_list(location),
        category=_single_or_list(category),
        limit=limit,
        sku=sku,
        search=search,
    )


def report_data(result: ReportResult, endpoint: str):
    """Payload for a report result; failures are logged and served as empty data."""
    if result.is_failed:
        logger.warning("Serving empty data for failed report", endpoint=endpoint, error=result.error)
    return result.data
