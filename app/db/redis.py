"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured we create a connection
pool; when it's None (local dev, tests) the ephemeral stores (pending
logins, sessions) fall back to in-memory implementations.

WHY REDIS FOR STATE TOKENS AND SESSIONS
-----------------------------------------
Both are short-lived, checked on the hot path, and must be shared by
every API instance: a callback can land on a different replica than the
one that issued its state token.  Redis gives us:
  - native TTLs (expired entries disappear without a cleanup job)
  - GETDEL, an atomic read-and-delete for single-use state tokens
  - sub-millisecond reads for per-request session validation
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,  # str instead of bytes
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis() -> AsyncGenerator[None, None]:
    """Startup/shutdown hook for Redis, mirrors lifespan_db().

    Pending logins and sessions live ONLY in Redis when it is configured,
    so an unreachable Redis at startup is fatal: falling back to memory
    would split sessions across replicas.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, state and sessions kept in memory")
        yield
        return

    await redis_pool.ping()  # type: ignore[misc]
    logger.info("Redis connected")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
