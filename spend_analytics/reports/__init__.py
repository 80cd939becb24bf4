"""
Reports Module

Every report takes an InvoiceRepository and InvoiceFilters and returns a
ReportResult.
"""
from .result import ReportResult, ReportStatus, report
from .dashboard import fetch_dashboard_stats
from .skus import (
    fetch_top_skus_by_spend,
    fetch_sku_replenishment_cadence,
    fetch_all_skus,
)
from .categories import (
    fetch_category_volatility,
    fetch_category_spend_trend,
    fetch_all_categories,
)
from .invoices import (
    fetch_invoices,
    export_invoice_rows,
    fetch_most_expensive_invoices,
    fetch_invoice_lines_by_filters,
    fetch_invoice_lines_by_sku,
)
from .locations import (
    fetch_location_category_heat_map,
    fetch_invoice_count_by_location,
    fetch_all_locations,
)
from .forecast import forecast_inventory, forecast_sku_demand
from .options import fetch_filter_options

__all__ = [
    "ReportResult",
    "ReportStatus",
    "report",
    "fetch_dashboard_stats",
    "fetch_top_skus_by_spend",
    "fetch_sku_replenishment_cadence",
    "fetch_all_skus",
    "fetch_category_volatility",
    "fetch_category_spend_trend",
    "fetch_all_categories",
    "fetch_invoices",
    "export_invoice_rows",
    "fetch_most_expensive_invoices",
    "fetch_invoice_lines_by_filters",
    "fetch_invoice_lines_by_sku",
    "fetch_location_category_heat_map",
    "fetch_invoice_count_by_location",
    "fetch_all_locations",
    "forecast_inventory",
    "forecast_sku_demand",
    "fetch_filter_options",
]
