"""Idempotency store: recorded responses for retried mutations.

A client that retries a mutating request with the same Idempotency-Key
must observe the first response again, byte for byte, without the
handler running twice.  The store holds, per scoped key, either

  * a pending marker while the first request is still executing, or
  * the recorded (status_code, body) once it has finished.

Contract used by IdempotencyMiddleware:

    check(key)              -> StoredResponse | None   (recorded, unexpired)
    reserve(key)            -> bool   claim the key; False if taken
    record(key, response)   store the final response, replacing the marker
    release(key)            drop a pending marker (handler failed, retry ok)
    sweep()                 -> int    drop expired entries

Entries expire `ttl_seconds` after they are recorded (24h by default).
Expired entries are treated as unseen on access; the in-memory store is
additionally swept by a background task so keys that are never retried
do not accumulate.  Redis expires keys natively.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from microcourses.core.config import SETTINGS
from microcourses.db.redis import redis_pool

logger = logging.getLogger(__name__)

# Default upper bound on how long a key stays reserved if the process dies
# mid-request; IDEMPOTENCY_PENDING_TTL_SECONDS overrides it.
PENDING_TTL_SECONDS = 60


@dataclass(frozen=True, slots=True)
class StoredResponse:
    status_code: int
    body: bytes
    media_type: str = "application/json"


@runtime_checkable
class IdempotencyStore(Protocol):
    async def check(self, key: str) -> StoredResponse | None: ...
    async def reserve(self, key: str) -> bool: ...
    async def record(self, key: str, response: StoredResponse) -> None: ...
    async def release(self, key: str) -> None: ...
    async def sweep(self) -> int: ...


@dataclass(slots=True)
class _Entry:
    expires_at: float
    response: StoredResponse | None = None  # None while pending


class InMemoryIdempotencyStore:
    """Process-local store.

    Guarded by a threading.Lock because TestClient and sync callers may
    touch it from worker threads; every critical section is pure dict work.
    `clock` is injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 86_400,
        pending_ttl_seconds: float = PENDING_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._pending_ttl = pending_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    async def check(self, key: str) -> StoredResponse | None:
        with self._lock:
            entry = self._live(key)
            return entry.response if entry is not None else None

    async def reserve(self, key: str) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = _Entry(expires_at=self._clock() + self._pending_ttl)
            return True

    async def record(self, key: str, response: StoredResponse) -> None:
        with self._lock:
            self._entries[key] = _Entry(
                expires_at=self._clock() + self._ttl, response=response
            )

    async def release(self, key: str) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.response is None:
                del self._entries[key]

    async def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> _Entry | None:
        # Caller holds the lock.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry


class RedisIdempotencyStore:
    """Shared store for multi-instance deployments.

    reserve() is `SET key PENDING NX EX pending_ttl`: atomic, so exactly one
    instance wins the key.  record() overwrites the marker with the
    response and the full retention TTL.
    """

    _PENDING = "__pending__"

    def __init__(
        self,
        redis_client,
        *,
        ttl_seconds: int = 86_400,
        pending_ttl_seconds: int = PENDING_TTL_SECONDS,
    ) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._pending_ttl = pending_ttl_seconds

    @staticmethod
    def _k(key: str) -> str:
        return f"idempotency:{key}"

    async def check(self, key: str) -> StoredResponse | None:
        raw = await self._redis.get(self._k(key))
        if raw is None or raw == self._PENDING:
            return None
        data = json.loads(raw)
        return StoredResponse(
            status_code=int(data["status_code"]),
            body=base64.b64decode(data["body"]),
            media_type=data.get("media_type", "application/json"),
        )

    async def reserve(self, key: str) -> bool:
        ok = await self._redis.set(
            self._k(key), self._PENDING, nx=True, ex=self._pending_ttl
        )
        return bool(ok)

    async def record(self, key: str, response: StoredResponse) -> None:
        payload = json.dumps(
            {
                "status_code": response.status_code,
                "body": base64.b64encode(response.body).decode("ascii"),
                "media_type": response.media_type,
            }
        )
        await self._redis.set(self._k(key), payload, ex=self._ttl)

    async def release(self, key: str) -> None:
        k = self._k(key)
        if await self._redis.get(k) == self._PENDING:
            await self._redis.delete(k)

    async def sweep(self) -> int:
        return 0


async def run_sweeper(store: IdempotencyStore, interval_seconds: float) -> None:
    """Periodically drop expired entries until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await store.sweep()
        except Exception:
            logger.exception("Idempotency sweep failed")
            continue
        if removed:
            logger.debug("Idempotency sweep removed %d expired entries", removed)


# ---------------------------------------------------------------------------
# Module-level singleton: Redis when configured, else in-memory
# ---------------------------------------------------------------------------

idempotency_store: IdempotencyStore
if redis_pool is not None:
    idempotency_store = RedisIdempotencyStore(
        redis_pool,
        ttl_seconds=SETTINGS.idempotency_ttl_seconds,
        pending_ttl_seconds=SETTINGS.idempotency_pending_ttl_seconds,
    )
else:
    idempotency_store = InMemoryIdempotencyStore(
        ttl_seconds=SETTINGS.idempotency_ttl_seconds,
        pending_ttl_seconds=SETTINGS.idempotency_pending_ttl_seconds,
    )


def get_idempotency_store() -> IdempotencyStore:
    """Current store; resolved per request so it can be swapped at runtime."""
    return idempotency_store
