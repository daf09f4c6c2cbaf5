"""Rate limiting dependency for the /api routers.

A dependency rather than middleware so each router opts in (health
checks stay unlimited).  Buckets are keyed by the verified token subject
when there is one, else by client IP: users behind a shared NAT are not
throttled together, and a forged token cannot pick someone else's
bucket.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response

from microcourses.core.config import SETTINGS
from microcourses.core.errors import RateLimited
from microcourses.core.metrics import RATE_LIMIT_HITS
from microcourses.db.redis import redis_pool
from microcourses.services import token_service
from microcourses.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiter,
    RedisRateLimiter,
)

logger = logging.getLogger(__name__)

_rate_limiter: RateLimiter
if redis_pool is not None:
    _rate_limiter = RedisRateLimiter(redis_pool)
else:
    _rate_limiter = InMemoryRateLimiter()

DEFAULT_CONFIG = RateLimitConfig.per_minute(SETTINGS.rate_limit_per_minute)


def require_rate_limit(config: RateLimitConfig = DEFAULT_CONFIG):
    """Dependency factory: spend one token from the caller's bucket.

    Usage: APIRouter(dependencies=[Depends(require_rate_limit())])
    """

    async def _check(request: Request, response: Response) -> None:
        key = build_key(request)
        result = await _rate_limiter.check(key, config)

        if not result.allowed:
            RATE_LIMIT_HITS.labels(key_type=key.split(":", 1)[0]).inc()
            logger.warning("Rate limit exceeded key=%s", key)
            raise RateLimited(
                "Too many requests, please try again later",
                headers={
                    "Retry-After": str(int(result.retry_after) + 1),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)

    return _check


def build_key(request: Request) -> str:
    sub = token_service.subject_from_header(request.headers.get("authorization"))
    if sub:
        return f"user:{sub}"
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"
