"""
Invoice API Endpoints

Invoice listings, spreadsheet export rows, most expensive invoices and
invoice line listings.
"""

from datetime import date, datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from spend_analytics.filters import FilterRequest, InvoiceFilters
from spend_analytics.reports import (
    export_invoice_rows,
    fetch_invoice_lines_by_filters,
    fetch_invoice_lines_by_sku,
    fetch_invoices,
    fetch_most_expensive_invoices,
)
from spend_analytics.repository import InvoiceRepository
from spend_analytics.serving.api.dependencies import filters_from_query, get_repository, report_data

router = APIRouter()
lines_router = APIRouter()
logger = structlog.get_logger(__name__)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class InvoiceSummary(BaseModel):
    """Invoice header fields"""
    id: str
    invoice_date: Optional[date] = None
    invoice_number: Optional[str] = None
    source: Optional[str] = None
    location: Optional[str] = None
    invoice_total: Optional[float] = None
    pdf_url: Optional[str] = None


class InvoiceLineItem(BaseModel):
    """One purchased item or service"""
    id: str
    invoice_id: str
    line_number: Optional[int] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    uom: Optional[str] = None
    qty: Optional[float] = None
    unit_price: Optional[float] = None
    line_total: Optional[float] = None
    tax: Optional[float] = None
    category: Optional[str] = None
    created_at: Optional[datetime] = None


class InvoiceWithLines(InvoiceSummary):
    """Full invoice with its non-ignored lines"""
    email_subject: Optional[str] = None
    status: Optional[str] = None
    vendor_name: Optional[str] = None
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    shipping: Optional[float] = None
    total: Optional[float] = None
    lines: List[InvoiceLineItem] = []


class InvoiceExportRow(BaseModel):
    """Flat (invoice, line) row"""
    invoice_id: str
    invoice_date: Optional[date] = None
    source: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    line_total: Optional[float] = None
    invoice_total: Optional[float] = None


class InvoiceLineDetail(InvoiceLineItem):
    """Invoice line with its invoice's metadata"""
    invoice_date: Optional[date] = None
    invoice_number: Optional[str] = None
    source: Optional[str] = None
    location: Optional[str] = None
    pdf_url: Optional[str] = None


# =============================================================================
# INVOICES
# =============================================================================

@router.get("", response_model=List[InvoiceWithLines])
async def list_invoices(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    """
    Invoices newest first with their lines attached.

    Supports filtering by:
    - Date range
    - Location
    - Category (only invoices with a matching line)
    - Free-text search over source and email subject
    """
    result = await fetch_invoices(repo, filters)
    return report_data(result, "invoices")


@router.get("/export", response_model=List[InvoiceExportRow])
async def export_invoices(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    result = await export_invoice_rows(repo, filters)
    return report_data(result, "invoices/export")


@router.post("/most-expensive", response_model=List[InvoiceSummary])
async def most_expensive_invoices(
    request: FilterRequest,
    repo: InvoiceRepository = Depends(get_repository),
):
    """
    Top 20 invoices by total.

    Body: {dateFrom?, dateTo?, location?, category?, locations?, categories?}
    """
    filters = request.to_filters()
    logger.info(
        "Most expensive invoices requested",
        date_from=str(filters.date_from) if filters.date_from else None,
        date_to=str(filters.date_to) if filters.date_to else None,
        location=filters.location,
        category=filters.category,
    )
    result = await fetch_most_expensive_invoices(repo, filters)
    return report_data(result, "invoices/most-expensive")


# =============================================================================
# INVOICE LINES
# =============================================================================

@lines_router.get("", response_model=List[InvoiceLineDetail])
async def list_invoice_lines(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    """Lines joined to invoice metadata, newest invoice first."""
    result = await fetch_invoice_lines_by_filters(repo, filters)
    return report_data(result, "invoice-lines")


@lines_router.get("/by-sku", response_model=List[InvoiceLineDetail])
async def list_invoice_lines_by_sku(
    filters: InvoiceFilters = Depends(filters_from_query),
    repo: InvoiceRepository = Depends(get_repository),
):
    """Same as the line listing but the sku parameter is required (400 without it)."""
    result = await fetch_invoice_lines_by_sku(repo, filters)
    return report_data(result, "invoice-lines/by-sku")
