"""
Probes and monitoring for the admin console.

The service is only useful while audit records can be written, so readiness
follows the audit database.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from admin_console.config import settings
from admin_console.database import Database, get_db
from admin_console.models import HealthStatus

router = APIRouter(tags=["monitoring"])

STARTED_AT = time.time()


def _uptime() -> float:
    return time.time() - STARTED_AT


@router.get("/health", response_model=HealthStatus)
async def health_check(db: Database = Depends(get_db)):
    """Audit database state, version and uptime."""
    audit_db_up = await db.health_check()
    return HealthStatus(
        status="healthy" if audit_db_up else "unhealthy",
        version=settings.app_version,
        database="connected" if audit_db_up else "disconnected",
        uptime_seconds=_uptime(),
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health/live")
async def liveness_check():
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: Database = Depends(get_db)):
    """503 while tenant update requests would fail their audit write."""
    if not await db.health_check():
        return JSONResponse(
            status_code=503,
            content={"status": "not ready", "reason": "database disconnected"},
        )
    return {"status": "ready"}


@router.get("/metrics")
async def metrics():
    """
    Prometheus exposition of ``tenant_update_requests_total``,
    ``audit_write_seconds`` and ``tenant_service_forward_seconds``.

    Returns 404 when ``ENABLE_METRICS`` is off.
    """
    if not settings.enable_metrics:
        return Response(status_code=404)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/info")
async def info():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "tenant_service_url": settings.get_tenant_service_url(),
        "uptime_seconds": _uptime(),
    }
