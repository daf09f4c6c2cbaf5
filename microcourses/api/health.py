"""Liveness and readiness probes.

/api/health answers "is the process alive" and reports dependency
status; it returns 200 even when degraded so an orchestrator does not
restart the container over a Redis blip.  /api/ready answers "can this
instance take traffic": 503 when the configured database is unreachable.
Redis is never critical, every Redis-backed concern has an in-memory
fallback.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Response, status

from microcourses.core.config import SETTINGS
from microcourses.db import engine as db_engine
from microcourses.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])

_STARTED_AT = time.monotonic()


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis ping failed", exc_info=True)
        return "degraded"
    return "ok"


async def _database_status() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        await db_engine.ping_database()
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _database_status(),
        "redis": await _redis_status(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {
        "status": overall,
        "environment": SETTINGS.app_env,
        "uptime_seconds": round(time.monotonic() - _STARTED_AT, 1),
        "checks": checks,
    }


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
