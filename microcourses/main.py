from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from microcourses.api.admin import router as admin_router
from microcourses.api.auth import router as auth_router
from microcourses.api.certificates import router as certificates_router
from microcourses.api.courses import router as courses_router
from microcourses.api.creator import router as creator_router
from microcourses.api.enrollment import router as enrollment_router
from microcourses.api.health import router as health_router
from microcourses.api.metrics_endpoint import router as metrics_router
from microcourses.core.config import SETTINGS
from microcourses.core.errors import register_exception_handlers
from microcourses.core.logging import setup_logging
from microcourses.db.engine import lifespan_db
from microcourses.db.redis import lifespan_redis
from microcourses.middleware.idempotency import IdempotencyMiddleware
from microcourses.middleware.metrics import MetricsMiddleware
from microcourses.middleware.request_context import RequestContextMiddleware
from microcourses.repos import registry
from microcourses.services import idempotency
from microcourses.services.seed import seed_demo

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def idempotency_sweeper() -> AsyncGenerator[None, None]:
    """Run the expired-key sweeper for the lifetime of the app."""
    task = asyncio.create_task(
        idempotency.run_sweeper(
            idempotency.get_idempotency_store(), SETTINGS.idempotency_sweep_seconds
        ),
        name="idempotency-sweeper",
    )
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


async def maybe_seed_demo() -> None:
    if not SETTINGS.seed_demo:
        return
    try:
        await seed_demo(users=registry.user_repo, courses=registry.course_repo)
    except Exception:
        # Demo data is a convenience; the API must come up without it.
        logger.exception("Demo seed failed")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if a later stage fails.
    async with lifespan_db():
        async with lifespan_redis():
            async with idempotency_sweeper():
                await maybe_seed_demo()
                yield


app = FastAPI(
    title="microcourses",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "X-Request-ID",
        "Idempotent-Replayed",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "Retry-After",
    ],
)

# Last-added runs first (outermost):
# RequestContext → Metrics → Idempotency → CORS → route handler
# so replayed and rejected responses still get a request id and are counted.
app.add_middleware(IdempotencyMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(creator_router)
app.include_router(enrollment_router)
app.include_router(certificates_router)
app.include_router(admin_router)

logger.info(
    "microcourses started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
