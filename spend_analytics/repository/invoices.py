"""
Invoice Repository

Read-only access to the invoices and invoice_lines tables. Invoices and
lines are fetched separately and joined by the report layer; line queries
take the invoice id set in batches to keep IN lists bounded.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set

import structlog
from sqlalchemy import Select, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spend_analytics.config import get_settings
from spend_analytics.config.settings import Settings
from spend_analytics.database.models import Invoice, InvoiceLine, INVOICE_SUMMARY_COLUMNS, LINE_COLUMNS
from spend_analytics.errors import StoreQueryError
from spend_analytics.filters import (
    IGNORE_PATTERN,
    InvoiceFilters,
    apply_category_filter,
    apply_date_filter,
    apply_location_filter,
)
from spend_analytics.serving.cache import QueryCache, QueryResponse, safe_request

logger = structlog.get_logger(__name__)

Row = Dict[str, Any]


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _batched(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class InvoiceRepository:
    """
    Filter-driven fetches over the invoice store.

    Every store failure surfaces as StoreQueryError. Option lists
    (locations, categories, SKUs) go through the query cache and raise
    FetchExhausted once its retries are spent.
    """

    def __init__(self, session: AsyncSession, cache: QueryCache, settings: Optional[Settings] = None):
        self.session = session
        self.cache = cache
        self.settings = settings or get_settings()

    @property
    def batch_size(self) -> int:
        return self.settings.reports.line_batch_size

    async def fetch_rows(self, stmt: Select, table: str) -> List[Row]:
        """
        Execute a select and return rows as plain dicts.

        A failed statement rolls the session back, so the next query (or a
        retry of this one) starts on a clean transaction.
        """
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Store query failed", table=table, error=str(e), error_type=type(e).__name__)
            await self.session.rollback()
            raise StoreQueryError(f"Failed to query {table}", table=table) from e
        return [{key: _plain(value) for key, value in row.items()} for row in result.mappings().all()]

    async def _query(self, stmt: Select, table: str) -> QueryResponse:
        try:
            return QueryResponse(data=await self.fetch_rows(stmt, table))
        except StoreQueryError as e:
            return QueryResponse(error=e)

    async def _cached_rows(self, key: str, stmt: Select, table: str, **options: Any) -> List[Row]:
        cache_settings = self.settings.cache
        return await safe_request(
            self.cache,
            key,
            lambda: self._query(stmt, table),
            max_retries=cache_settings.max_retries,
            retry_delay=cache_settings.retry_delay_seconds,
            cache_ttl=cache_settings.ttl_seconds,
            **options,
        )

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def invoice_query(
        self,
        filters: InvoiceFilters,
        columns: Iterable = INVOICE_SUMMARY_COLUMNS,
        order_by: Iterable = (),
        search: bool = False,
    ) -> Select:
        stmt = select(*columns)
        stmt = apply_date_filter(stmt, Invoice.invoice_date, filters.date_from, filters.date_to)
        stmt = apply_location_filter(stmt, Invoice.location, filters.location)
        if search and filters.search:
            stmt = stmt.where(
                or_(
                    Invoice.source.icontains(filters.search, autoescape=True),
                    Invoice.email_subject.icontains(filters.search, autoescape=True),
                )
            )
        order_by = list(order_by)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return stmt

    async def select_invoices(
        self,
        filters: InvoiceFilters,
        columns: Iterable = INVOICE_SUMMARY_COLUMNS,
        order_by: Iterable = (),
        search: bool = False,
        cache_key: Optional[str] = None,
    ) -> List[Row]:
        """
        Invoices matching the date range and location filter.

        Args:
            filters: Request filters
            columns: Invoice columns to project
            order_by: ORDER BY clauses
            search: Apply the free-text search to source/email subject
            cache_key: Serve through the query cache under this key
        """
        stmt = self.invoice_query(filters, columns, order_by, search)
        if cache_key:
            return await self._cached_rows(cache_key, stmt, "invoices")
        rows = await self.fetch_rows(stmt, "invoices")
        logger.debug("Invoices fetched", count=len(rows))
        return rows

    # -------------------------------------------------------------------------
    # Invoice lines
    # -------------------------------------------------------------------------

    async def select_lines(
        self,
        invoice_ids: Sequence[str],
        filters: InvoiceFilters,
        columns: Iterable = LINE_COLUMNS,
        sku: Optional[str] = None,
    ) -> List[Row]:
        """
        Lines belonging to the given invoices, with the category filter (or
        the default ignore exclusion) applied.

        Args:
            invoice_ids: Owning invoice ids; queried in batches
            filters: Request filters (only category is used here)
            columns: Line columns to project
            sku: Case-insensitive substring match on SKU
        """
        if not invoice_ids:
            return []

        columns = list(columns)
        ids = list(invoice_ids)
        rows: List[Row] = []

        for batch in _batched(ids, self.batch_size):
            stmt = select(*columns).where(InvoiceLine.invoice_id.in_(batch))
            stmt = apply_category_filter(stmt, InvoiceLine.category, filters.category)
            if sku:
                stmt = stmt.where(InvoiceLine.sku.icontains(sku, autoescape=True))
            stmt = stmt.order_by(InvoiceLine.invoice_id, InvoiceLine.line_number, InvoiceLine.id)
            rows.extend(await self.fetch_rows(stmt, "invoice_lines"))

        if len(ids) > self.batch_size:
            logger.debug("Invoice lines fetched in batches", invoices=len(ids), lines=len(rows))
        return rows

    async def select_ignored_invoice_ids(self, invoice_ids: Sequence[str]) -> Set[str]:
        """Ids of invoices carrying at least one ignore-tagged line."""
        ignored: Set[str] = set()
        ids = list(invoice_ids)
        for batch in _batched(ids, self.batch_size):
            stmt = (
                select(InvoiceLine.invoice_id)
                .where(InvoiceLine.invoice_id.in_(batch))
                .where(InvoiceLine.category.ilike(IGNORE_PATTERN))
                .distinct()
            )
            ignored.update(row["invoice_id"] for row in await self.fetch_rows(stmt, "invoice_lines"))
        return ignored

    # -------------------------------------------------------------------------
    # Filter options
    # -------------------------------------------------------------------------

    async def distinct_locations(self) -> List[str]:
        stmt = select(Invoice.location).distinct()
        rows = await self._cached_rows("all-locations", stmt, "invoices")
        return sorted({row["location"] for row in rows if row["location"]})

    async def distinct_categories(self) -> List[str]:
        stmt = select(InvoiceLine.category).where(InvoiceLine.category.not_ilike(IGNORE_PATTERN)).distinct()
        rows = await self._cached_rows("all-categories", stmt, "invoice_lines")
        return sorted({row["category"] for row in rows if row["category"]})

    async def distinct_skus(self) -> List[Row]:
        """One entry per SKU with its first-seen description and category."""
        stmt = (
            select(InvoiceLine.sku, InvoiceLine.description, InvoiceLine.category)
            .where(InvoiceLine.category.not_ilike(IGNORE_PATTERN))
            .order_by(InvoiceLine.created_at, InvoiceLine.id)
        )
        rows = await self._cached_rows("all-skus", stmt, "invoice_lines")

        skus: Dict[str, Row] = {}
        for row in rows:
            if row["sku"] and row["sku"] not in skus:
                skus[row["sku"]] = {
                    "sku": row["sku"],
                    "description": row["description"] or "No description",
                    "category": row["category"] or "Other",
                }
        return list(skus.values())


def as_date(value: Any) -> Optional[date]:
    """Normalize invoice dates that may come back as strings from a JSON cache."""
    if value is None or (isinstance(value, date) and not isinstance(value, datetime)):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value)[:10])
