"""
Execution stores.

The tracker persists through a small key-value + sorted-set contract:

- ``set/get/delete``: string records with optional TTL
- ``zadd/zrangebyscore/zremrangebyrank/zrem/zcard``: time-ordered indices
- ``sadd/smembers/srem``: registries of known index names
- ``ping``: availability check

RedisExecutionStore is the production backend. InMemoryExecutionStore
implements the same contract in-process (single-process deployments and
tests), with TTL expiry driven by an injectable clock.

Store failures surface as TrackingError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from remedy_engine.config.redis import RedisConfig, get_async_redis_client
from remedy_engine.exceptions import TrackingError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@runtime_checkable
class ExecutionStore(Protocol):
    """Storage contract used by the remediation tracker."""

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None: ...

    async def get(self, key: str) -> str | None: ...

    async def delete(self, *keys: str) -> int: ...

    async def zadd(self, key: str, member: str, score: float) -> None: ...

    async def zrangebyscore(self, key: str, min_score: float, max_score: float) -> list[str]: ...

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int: ...

    async def zrem(self, key: str, *members: str) -> int: ...

    async def zcard(self, key: str) -> int: ...

    async def sadd(self, key: str, *members: str) -> int: ...

    async def srem(self, key: str, *members: str) -> int: ...

    async def smembers(self, key: str) -> set[str]: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class RedisExecutionStore:
    """ExecutionStore backed by ``redis.asyncio``.

    Args:
        client: Pre-built client (must use ``decode_responses=True``)
        config: Connection settings used when no client is given
    """

    def __init__(self, client: AsyncRedis | None = None, config: RedisConfig | None = None) -> None:
        self._client = client or get_async_redis_client(config)

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        try:
            if ttl_seconds is None:
                await self._client.set(key, value)
            else:
                await self._client.set(key, value, px=max(1, int(ttl_seconds * 1000)))
        except RedisError as e:
            raise TrackingError(f"Redis SET {key} failed: {e}") from e

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise TrackingError(f"Redis GET {key} failed: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(await self._client.delete(*keys))
        except RedisError as e:
            raise TrackingError(f"Redis DEL failed: {e}") from e

    async def zadd(self, key: str, member: str, score: float) -> None:
        try:
            await self._client.zadd(key, {member: score})
        except RedisError as e:
            raise TrackingError(f"Redis ZADD {key} failed: {e}") from e

    async def zrangebyscore(self, key: str, min_score: float, max_score: float) -> list[str]:
        try:
            return list(await self._client.zrangebyscore(key, min_score, max_score))
        except RedisError as e:
            raise TrackingError(f"Redis ZRANGEBYSCORE {key} failed: {e}") from e

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        try:
            return int(await self._client.zremrangebyrank(key, start, stop))
        except RedisError as e:
            raise TrackingError(f"Redis ZREMRANGEBYRANK {key} failed: {e}") from e

    async def zrem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        try:
            return int(await self._client.zrem(key, *members))
        except RedisError as e:
            raise TrackingError(f"Redis ZREM {key} failed: {e}") from e

    async def zcard(self, key: str) -> int:
        try:
            return int(await self._client.zcard(key))
        except RedisError as e:
            raise TrackingError(f"Redis ZCARD {key} failed: {e}") from e

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        try:
            return int(await self._client.sadd(key, *members))
        except RedisError as e:
            raise TrackingError(f"Redis SADD {key} failed: {e}") from e

    async def smembers(self, key: str) -> set[str]:
        try:
            return set(await self._client.smembers(key))
        except RedisError as e:
            raise TrackingError(f"Redis SMEMBERS {key} failed: {e}") from e

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        try:
            return int(await self._client.srem(key, *members))
        except RedisError as e:
            raise TrackingError(f"Redis SREM {key} failed: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            raise TrackingError(f"Redis PING failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryExecutionStore:
    """In-process ExecutionStore.

    Expired records are dropped lazily on access. Sorted-set semantics
    follow Redis: members ordered by (score, member), ranks are inclusive
    and negative ranks count from the end.

    Args:
        clock: Source of "now" for TTL expiry
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._values: dict[str, tuple[str, float | None]] = {}
        self._zsets: dict[str, dict[str, float]] = {}
        self._sets: dict[str, set[str]] = {}

    def _now(self) -> float:
        return self._clock().timestamp()

    def _ordered(self, key: str) -> list[str]:
        members = self._zsets.get(key, {})
        return sorted(members, key=lambda m: (members[m], m))

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        expires_at = self._now() + ttl_seconds if ttl_seconds is not None else None
        self._values[key] = (value, expires_at)

    async def get(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._now():
            del self._values[key]
            return None
        return value

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            found = False
            if key in self._values:
                found = await self.get(key) is not None
                self._values.pop(key, None)
            for container in (self._zsets, self._sets):
                if container.pop(key, None) is not None:
                    found = True
            removed += int(found)
        return removed

    async def zadd(self, key: str, member: str, score: float) -> None:
        self._zsets.setdefault(key, {})[member] = score

    async def zrangebyscore(self, key: str, min_score: float, max_score: float) -> list[str]:
        members = self._zsets.get(key, {})
        return [m for m in self._ordered(key) if min_score <= members[m] <= max_score]

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        ordered = self._ordered(key)
        size = len(ordered)
        if start < 0:
            start += size
        if stop < 0:
            stop += size
        start = max(start, 0)
        stop = min(stop, size - 1)
        if start > stop:
            return 0
        members = self._zsets[key]
        for member in ordered[start : stop + 1]:
            del members[member]
        if not members:
            del self._zsets[key]
        return stop - start + 1

    async def zrem(self, key: str, *members: str) -> int:
        zset = self._zsets.get(key)
        if not zset:
            return 0
        removed = sum(1 for m in members if zset.pop(m, None) is not None)
        if not zset:
            del self._zsets[key]
        return removed

    async def zcard(self, key: str) -> int:
        return len(self._zsets.get(key, {}))

    async def sadd(self, key: str, *members: str) -> int:
        existing = self._sets.setdefault(key, set())
        added = len(set(members) - existing)
        existing.update(members)
        return added

    async def smembers(self, key: str) -> set[str]:
        return set(self._sets.get(key, set()))

    async def srem(self, key: str, *members: str) -> int:
        existing = self._sets.get(key, set())
        removed = len(existing & set(members))
        existing.difference_update(members)
        if not existing:
            self._sets.pop(key, None)
        return removed

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        logger.debug("Closing in-memory execution store")
