"""Idempotency gate for mutating requests.

POST requests must carry an `Idempotency-Key` header; without one they
are rejected with 400 MISSING_IDEMPOTENCY_KEY before authentication or
any handler runs.  PUT, PATCH and DELETE are cached only when a key is
sent.

Keys are scoped by the caller, so two users who happen to pick the same
key never see each other's responses.  An authenticated caller is its
verified bearer subject.  An anonymous caller (register, login) is a
digest of client address, method, path and body, so a replayed login
token only ever reaches the client that sent those exact credentials.
For a scoped key:

  recorded       -> replay stored status + body, `Idempotent-Replayed: true`
  in flight      -> 409 IDEMPOTENCY_KEY_IN_USE
  unseen/expired -> reserve, run the handler, record the response

Responses with status >= 500, and handler exceptions, release the
reservation instead of recording it so the client can retry.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from microcourses.core.errors import error_body
from microcourses.core.metrics import IDEMPOTENCY_REQUESTS
from microcourses.services import token_service
from microcourses.services.idempotency import (
    IdempotencyStore,
    StoredResponse,
    get_idempotency_store,
)

logger = logging.getLogger(__name__)

HEADER = "Idempotency-Key"
REPLAYED_HEADER = "Idempotent-Replayed"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
KEY_REQUIRED_METHODS = frozenset({"POST"})
MAX_KEY_LENGTH = 255


async def scoped_key(request: Request, key: str) -> str:
    subject = token_service.subject_from_header(request.headers.get("authorization"))
    if subject is not None:
        return f"{subject}:{key}"
    client = request.client.host if request.client else ""
    digest = hashlib.sha256()
    for part in (client, request.method, request.url.path):
        digest.update(part.encode())
        digest.update(b"\0")
    digest.update(await request.body())
    return f"anon:{digest.hexdigest()[:32]}:{key}"


class IdempotencyMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        *,
        store_provider: Callable[[], IdempotencyStore] = get_idempotency_store,
        path_prefix: str = "/api",
    ) -> None:
        super().__init__(app)
        self._store_provider = store_provider
        self._path_prefix = path_prefix

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method not in MUTATING_METHODS or not request.url.path.startswith(
            self._path_prefix
        ):
            return await call_next(request)

        raw_key = (request.headers.get(HEADER) or "").strip()
        if not raw_key:
            if request.method in KEY_REQUIRED_METHODS:
                IDEMPOTENCY_REQUESTS.labels(result="missing_key").inc()
                logger.warning(
                    "Missing idempotency key on %s %s",
                    request.method,
                    request.url.path,
                    extra={"error_code": "MISSING_IDEMPOTENCY_KEY"},
                )
                return JSONResponse(
                    status_code=400,
                    content=error_body(
                        "MISSING_IDEMPOTENCY_KEY",
                        "Idempotency-Key header is required for POST requests",
                        HEADER,
                    ),
                )
            return await call_next(request)

        if len(raw_key) > MAX_KEY_LENGTH:
            return JSONResponse(
                status_code=400,
                content=error_body(
                    "VALIDATION_ERROR",
                    f"Idempotency-Key must be at most {MAX_KEY_LENGTH} characters",
                    HEADER,
                ),
            )

        store = self._store_provider()
        key = await scoped_key(request, raw_key)

        stored = await store.check(key)
        if stored is not None:
            return _replay(stored)

        if not await store.reserve(key):
            # Either recorded between check and reserve, or still in flight.
            stored = await store.check(key)
            if stored is not None:
                return _replay(stored)
            IDEMPOTENCY_REQUESTS.labels(result="in_flight").inc()
            logger.warning(
                "Idempotency key in use on %s %s",
                request.method,
                request.url.path,
                extra={"error_code": "IDEMPOTENCY_KEY_IN_USE"},
            )
            return JSONResponse(
                status_code=409,
                content=error_body(
                    "IDEMPOTENCY_KEY_IN_USE",
                    "A request with this Idempotency-Key is still being processed",
                    HEADER,
                ),
            )

        try:
            response = await call_next(request)
            body = b"".join([chunk async for chunk in response.body_iterator])
        except BaseException:
            await store.release(key)
            raise

        if response.status_code >= 500:
            await store.release(key)
        else:
            await store.record(
                key,
                StoredResponse(
                    status_code=response.status_code,
                    body=body,
                    media_type=response.headers.get("content-type", "application/json"),
                ),
            )
            IDEMPOTENCY_REQUESTS.labels(result="executed").inc()

        return Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
        )


def _replay(stored: StoredResponse) -> Response:
    IDEMPOTENCY_REQUESTS.labels(result="replayed").inc()
    logger.info("Replayed idempotent response status=%d", stored.status_code)
    return Response(
        content=stored.body,
        status_code=stored.status_code,
        media_type=stored.media_type,
        headers={REPLAYED_HEADER: "true"},
    )
