"""
Health check endpoints.
Basic liveness plus a detailed check of the database and Redis.
"""

import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal, engine
from shared.infrastructure.events import check_redis_async_health
from shared.utils.health import (
    HealthStatus,
    aggregate_health_checks,
    health_check_with_timeout,
)
from pos_sync.services.events import get_outbox_processor


router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check():
    """
    Basic health check endpoint.
    Returns service status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": "pos-sync",
        "environment": settings.environment,
    }


def _ping_database() -> None:
    with SessionLocal() as db:
        db.execute(text("SELECT 1"))


@health_check_with_timeout(timeout=3.0, component="database")
async def check_database_health() -> dict:
    """Check database connectivity (blocking driver call runs in a thread)."""
    await asyncio.to_thread(_ping_database)
    return {"dialect": engine.dialect.name}


@router.get("/health/detailed")
async def detailed_health_check():
    """
    Status of the database and Redis, plus whether the outbox processor runs.

    Returns 503 when the database is down. Redis only degrades the service:
    sync keeps working without live dashboard events.
    """
    health_results = await aggregate_health_checks([
        check_database_health(),
        check_redis_async_health(),
    ])

    components = health_results["components"]
    body = {
        "service": "pos-sync",
        "environment": settings.environment,
        "status": health_results["status"],
        "dependencies": components,
        "outbox_processor": {"running": get_outbox_processor().is_running},
    }

    database_ok = components.get("database", {}).get("status") == HealthStatus.HEALTHY.value
    if not database_ok:
        body["status"] = HealthStatus.UNHEALTHY.value
        return JSONResponse(status_code=503, content=body)
    return body
