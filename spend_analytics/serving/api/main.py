"""
FastAPI Application Factory

Creates and configures the spend analytics API application.
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from spend_analytics.config import get_settings
from spend_analytics.errors import ValidationError
from spend_analytics.serving.api.middleware import RequestLoggingMiddleware
from spend_analytics.serving.api.routes import (
    analytics_router,
    filters_router,
    health_router,
    inventory_router,
    invoice_lines_router,
    invoices_router,
)
from spend_analytics.serving.cache import QueryCache

logger = structlog.get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    return f"{field}: {first.get('msg')}" if field else str(first.get("msg"))


def register_exception_handlers(app: FastAPI) -> None:
    """Map errors to {"error": message} JSON bodies."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("Rejected request", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.info("Rejected request", path=request.url.path, error=message)
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


def create_api_app(lifespan=None, query_cache: Optional[QueryCache] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Lifespan context manager (startup/shutdown of shared resources)
        query_cache: Pre-built cache, mainly for tests; otherwise the lifespan sets one

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Car-Wash Spend Analytics API",
        description="Vendor invoice spend reports for the operations dashboard",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    if query_cache is not None:
        app.state.query_cache = query_cache

    # Add CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add compression
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, prefix="/api", tags=["Health"])
    app.include_router(invoices_router, prefix="/api/invoices", tags=["Invoices"])
    app.include_router(invoice_lines_router, prefix="/api/invoice-lines", tags=["Invoices"])
    app.include_router(analytics_router, prefix="/api/analytics", tags=["Analytics"])
    app.include_router(inventory_router, prefix="/api/inventory", tags=["Inventory"])
    app.include_router(filters_router, prefix="/api/filters", tags=["Filters"])

    return app
