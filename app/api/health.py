"""Health and readiness endpoints.

  /health  liveness: the process answers.  Always 200; "status" reports
           whether configured backends respond ("ok" or "degraded").
  /ready   readiness: 503 while a configured backend is unreachable.
           Pending logins and sessions live only in Redis/PostgreSQL when
           those are configured, so this instance cannot sign anyone in
           without them.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response

from app.db import engine as db_engine
from app.db import redis as db_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if db_redis.redis_pool is None:
        return "not_configured"
    try:
        await db_redis.redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis ping failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    return "ok" if await db_engine.ping_database() else "degraded"


async def _checks() -> dict[str, str]:
    return {"redis": await _check_redis(), "database": await _check_database()}


@router.get("/health")
async def health() -> dict:
    checks = await _checks()
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    checks = await _checks()
    if "degraded" in checks.values():
        return Response(status_code=503)
    return Response(status_code=200)
