from __future__ import annotations

import asyncio

from microcourses.services.idempotency import (
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
    StoredResponse,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _store(clock: FakeClock) -> InMemoryIdempotencyStore:
    return InMemoryIdempotencyStore(ttl_seconds=100, pending_ttl_seconds=10, clock=clock)


RESPONSE = StoredResponse(status_code=201, body=b'{"ok":true}')


def test_reserve_is_exclusive_until_released() -> None:
    store = _store(FakeClock())
    assert asyncio.run(store.reserve("k")) is True
    assert asyncio.run(store.reserve("k")) is False
    assert asyncio.run(store.check("k")) is None  # pending, nothing to replay

    asyncio.run(store.release("k"))
    assert asyncio.run(store.reserve("k")) is True


def test_recorded_response_is_returned_and_blocks_reserve() -> None:
    store = _store(FakeClock())
    asyncio.run(store.reserve("k"))
    asyncio.run(store.record("k", RESPONSE))

    assert asyncio.run(store.check("k")) == RESPONSE
    assert asyncio.run(store.reserve("k")) is False


def test_release_never_drops_a_recorded_response() -> None:
    store = _store(FakeClock())
    asyncio.run(store.reserve("k"))
    asyncio.run(store.record("k", RESPONSE))
    asyncio.run(store.release("k"))
    assert asyncio.run(store.check("k")) == RESPONSE


def test_recorded_response_expires_after_ttl() -> None:
    clock = FakeClock()
    store = _store(clock)
    asyncio.run(store.record("k", RESPONSE))

    clock.now += 99
    assert asyncio.run(store.check("k")) == RESPONSE
    clock.now += 1
    assert asyncio.run(store.check("k")) is None
    assert asyncio.run(store.reserve("k")) is True


def test_stale_pending_marker_expires() -> None:
    clock = FakeClock()
    store = _store(clock)
    asyncio.run(store.reserve("k"))
    clock.now += 10
    assert asyncio.run(store.reserve("k")) is True


def test_sweep_removes_only_expired_entries() -> None:
    clock = FakeClock()
    store = _store(clock)
    asyncio.run(store.record("old", RESPONSE))
    clock.now += 50
    asyncio.run(store.record("new", RESPONSE))
    clock.now += 60

    assert asyncio.run(store.sweep()) == 1
    assert len(store) == 1
    assert asyncio.run(store.check("new")) == RESPONSE


def test_keys_are_independent() -> None:
    store = _store(FakeClock())
    asyncio.run(store.reserve("a"))
    assert asyncio.run(store.reserve("b")) is True


class _RecordingRedis:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []

    async def set(self, key: str, value, **kwargs) -> bool:
        self.calls.append((key, kwargs))
        return True


def test_redis_reservation_uses_configured_pending_ttl() -> None:
    redis = _RecordingRedis()
    store = RedisIdempotencyStore(redis, ttl_seconds=100, pending_ttl_seconds=900)

    assert asyncio.run(store.reserve("u1:k")) is True
    assert redis.calls == [("idempotency:u1:k", {"nx": True, "ex": 900})]
