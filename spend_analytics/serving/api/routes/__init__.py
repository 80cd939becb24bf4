"""
API Routes Module
"""
from .health import router as health_router
from .invoices import router as invoices_router, lines_router as invoice_lines_router
from .analytics import router as analytics_router
from .inventory import router as inventory_router
from .filters import router as filters_router

__all__ = [
    "health_router",
    "invoices_router",
    "invoice_lines_router",
    "analytics_router",
    "inventory_router",
    "filters_router",
]
