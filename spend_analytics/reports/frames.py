"""
Shared helpers for report rows and the polars frames built from them.
"""

from typing import Any, Dict, Iterable, List, Mapping

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

Row = Dict[str, Any]

LINE_SPEND_SCHEMA = {
    "invoice_id": pl.Utf8,
    "category": pl.Utf8,
    "line_total": pl.Float64,
}

SKU_SPEND_SCHEMA = {
    "sku": pl.Utf8,
    "description": pl.Utf8,
    "category": pl.Utf8,
    "line_total": pl.Float64,
}

INVOICE_LOCATION_SCHEMA = {
    "id": pl.Utf8,
    "location": pl.Utf8,
}


def to_frame(rows: Iterable[Mapping[str, Any]], schema: Mapping[str, Any]) -> pl.DataFrame:
    """Project rows onto the schema columns and build a typed frame."""
    projected = [{column: row.get(column) for column in schema} for row in rows]
    if not projected:
        return pl.DataFrame(schema=dict(schema))
    return pl.from_dicts(projected, schema=dict(schema))


def invoice_ids(invoices: Iterable[Row]) -> List[str]:
    return [invoice["id"] for invoice in invoices]


def sums_by(frame: pl.DataFrame, column: str) -> Dict[str, float]:
    """Sum line_total per value of column, skipping null keys."""
    grouped = (
        frame.filter(pl.col(column).is_not_null())
        .group_by(column, maintain_order=True)
        .agg(pl.col("line_total").fill_null(0).sum().alias("total"))
    )
    return {row[column]: row["total"] for row in grouped.iter_rows(named=True)}


def drop_reserved(categories: Iterable[str], key: str, report: str) -> List[str]:
    """
    Sorted category columns for rows keyed by ``key``.

    Rows are flat ({key: ..., <category>: spend}), so a category spelled
    exactly like the key column would overwrite it; such a category is left
    out and logged.
    """
    columns = set(categories)
    if key in columns:
        logger.warning("Category collides with row key, left out", report=report, category=key)
        columns.discard(key)
    return sorted(columns)
