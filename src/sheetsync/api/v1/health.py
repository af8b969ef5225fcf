"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. Readiness
only probes the storage backend that preferences are configured to use.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.sheetsync.config import PreferenceBackend, get_settings
from src.sheetsync.core.database import get_engine
from src.sheetsync.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_backend() -> dict:
    """Check connectivity of the configured preference backend."""
    settings = get_settings()
    backend = settings.PREFERENCE_BACKEND
    checks: dict = {"backend": backend.value, "storage": "ok"}

    try:
        if backend == PreferenceBackend.database:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        elif backend == PreferenceBackend.redis:
            redis = get_redis_pool()
            pong = await redis.ping()
            if not pong:
                checks["storage"] = "error"
                checks["storage_error"] = "PING did not return PONG"
    except Exception as e:
        checks["storage"] = "error"
        checks["storage_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: 200 if the preference backend is reachable, 503 otherwise."""
    checks = await _check_backend()
    healthy = checks.get("storage") == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if healthy else "degraded",
            "checks": checks,
        },
    )
