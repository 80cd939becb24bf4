"""
Health Check Endpoints

Liveness, readiness and a detailed status covering the invoice store and the
query cache backend.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from spend_analytics.config import get_settings
from spend_analytics.database.connection import check_database_health
from spend_analytics.serving.api.dependencies import get_query_cache
from spend_analytics.serving.cache import QueryCache

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


async def cache_health(cache: QueryCache, backend: str) -> Dict[str, Any]:
    try:
        reachable = await cache.ping()
    except Exception as e:
        return {"status": "unhealthy", "backend": backend, "error": str(e)}
    return {"status": "healthy" if reachable else "unhealthy", "backend": backend}


@router.get("/health", response_model=HealthResponse)
async def health_check(cache: QueryCache = Depends(get_query_cache)) -> HealthResponse:
    """
    Store down means unhealthy; cache down only degrades, since option
    lists fall back to direct queries.
    """
    settings = get_settings()
    checks = {
        "database": await check_database_health(),
        "cache": await cache_health(cache, settings.cache.backend),
    }

    if checks["database"]["status"] != "healthy":
        status = "unhealthy"
    elif checks["cache"]["status"] != "healthy":
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """503 until the invoice store answers."""
    db_health = await check_database_health()
    if db_health["status"] != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}
