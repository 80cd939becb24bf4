"""
Request Filters

The filter bag shared by every report (date range, location, category,
limit, sku, search) and the functions that apply it to SQLAlchemy
``select()`` statements.

Conventions:
- An absent field never constrains the query.
- "All Locations" / "All Categories" and blank strings mean "no filter".
- A single location/category value is a case-insensitive substring match;
  several values are an exact match against any of them.
- Unless a category filter survives normalization, lines whose category
  contains "ignore" are excluded.
"""

import json
from datetime import date
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Select
from sqlalchemy.orm import InstrumentedAttribute

ALL_LOCATIONS = "All Locations"
ALL_CATEGORIES = "All Categories"
IGNORE_MARKER = "ignore"
IGNORE_PATTERN = f"%{IGNORE_MARKER}%"

FilterValue = Optional[Union[str, List[str]]]


def normalize_filter_values(value: FilterValue, sentinel: str) -> List[str]:
    """Reduce a single value or list to the non-blank, non-sentinel values."""
    if value is None:
        return []
    raw = [value] if isinstance(value, str) else list(value)
    values = []
    for item in raw:
        if item is None:
            continue
        item = item.strip()
        if item and item != sentinel:
            values.append(item)
    return values


def is_ignored_category(category: Optional[str]) -> bool:
    """True when the category is tagged to be left out of spend reporting."""
    return category is not None and IGNORE_MARKER in category.lower()


def matches_substring(value: Optional[str], needle: str) -> bool:
    """Case-insensitive containment check mirroring SQL ILIKE '%needle%'."""
    return value is not None and needle.lower() in value.lower()


class InvoiceFilters(BaseModel):
    """Filter parameters accepted by every report"""

    model_config = ConfigDict(populate_by_name=True)

    date_from: Optional[date] = Field(default=None, alias="dateFrom")
    date_to: Optional[date] = Field(default=None, alias="dateTo")
    location: FilterValue = None
    category: FilterValue = None
    limit: Optional[int] = Field(default=None, ge=1)
    sku: Optional[str] = None
    search: Optional[str] = None

    @property
    def locations(self) -> List[str]:
        return normalize_filter_values(self.location, ALL_LOCATIONS)

    @property
    def categories(self) -> List[str]:
        return normalize_filter_values(self.category, ALL_CATEGORIES)

    @property
    def has_category_filter(self) -> bool:
        return bool(self.categories)

    def matches_category(self, category: Optional[str]) -> bool:
        """In-memory equivalent of apply_category_filter for one line."""
        categories = self.categories
        if not categories:
            return not is_ignored_category(category)
        if len(categories) == 1:
            return matches_substring(category, categories[0])
        return category in categories

    def cache_key(self, prefix: str) -> str:
        """Stable signature of the filter for query cache keys."""
        payload = self.model_dump(mode="json", exclude_none=True)
        return f"{prefix}:{json.dumps(payload, sort_keys=True)}"


class FilterRequest(BaseModel):
    """
    JSON body accepted by the POST endpoints.

    Both singular and plural location/category keys are accepted. The
    singular value wins; a one-element plural list collapses to its value.
    """

    model_config = ConfigDict(populate_by_name=True)

    date_from: Optional[date] = Field(default=None, alias="dateFrom")
    date_to: Optional[date] = Field(default=None, alias="dateTo")
    location: Optional[str] = None
    category: Optional[str] = None
    locations: Optional[List[str]] = None
    categories: Optional[List[str]] = None

    @staticmethod
    def _collapse(single: Optional[str], plural: Optional[List[str]]) -> FilterValue:
        if single:
            return single
        if plural and len(plural) == 1:
            return plural[0]
        return plural or None

    def to_filters(self) -> InvoiceFilters:
        return InvoiceFilters(
            date_from=self.date_from,
            date_to=self.date_to,
            location=self._collapse(self.location, self.locations),
            category=self._collapse(self.category, self.categories),
        )


def apply_date_filter(
    stmt: Select,
    column: InstrumentedAttribute,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Select:
    """Inclusive date range; a missing bound leaves that side open."""
    if date_from:
        stmt = stmt.where(column >= date_from)
    if date_to:
        stmt = stmt.where(column <= date_to)
    return stmt


def _apply_text_filter(stmt: Select, column: InstrumentedAttribute, values: Iterable[str]) -> Select:
    values = list(values)
    if len(values) == 1:
        return stmt.where(column.icontains(values[0], autoescape=True))
    if len(values) > 1:
        return stmt.where(column.in_(values))
    return stmt


def apply_location_filter(stmt: Select, column: InstrumentedAttribute, location: FilterValue) -> Select:
    return _apply_text_filter(stmt, column, normalize_filter_values(location, ALL_LOCATIONS))


def apply_category_filter(stmt: Select, column: InstrumentedAttribute, category: FilterValue) -> Select:
    """Apply the category filter, or the default ignore exclusion when there is none."""
    values = normalize_filter_values(category, ALL_CATEGORIES)
    if not values:
        return stmt.where(column.not_ilike(IGNORE_PATTERN))
    return _apply_text_filter(stmt, column, values)
