"""Liveness (/health) and readiness (/health/ready) probes.

Readiness runs a storefront database round-trip and checks that a HubSpot
token is configured. It never calls HubSpot.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.hubsync.config import get_settings
from src.hubsync.core.database import check_connection

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    return {"status": "ok", "environment": get_settings().ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check():
    checks: dict[str, str] = {}

    try:
        await check_connection()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = "error"
        checks["database_error"] = str(exc)

    checks["hubspot"] = "ok" if get_settings().HUBSPOT_PRIVATE_APP_TOKEN else "no_token"

    ready = checks["database"] == "ok" and checks["hubspot"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
