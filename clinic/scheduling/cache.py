"""Availability cache port and its implementations.

The calculator only talks to the ``SlotCache`` interface. Keys are plain
strings built by ``slots_key``/``dates_key`` and values are JSON-compatible
lists so every backend can store them unchanged.
"""

import json
import logging
import time
from datetime import date
from threading import Lock
from typing import Any, Callable, Protocol

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = 'availability'


def slots_key(settings_version: int, slot_date: date) -> str:
    return f'{KEY_PREFIX}:slots:v{settings_version}:{slot_date.isoformat()}'


def dates_key(settings_version: int, from_date: date, horizon_days: int) -> str:
    return f'{KEY_PREFIX}:dates:v{settings_version}:{from_date.isoformat()}:{horizon_days}'


class SlotCache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def invalidate_date(self, slot_date: date) -> None: ...

    def invalidate_all(self) -> None: ...


class MemorySlotCache:
    """Process-local cache with a fixed TTL."""

    def __init__(self, ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def invalidate_date(self, slot_date: date) -> None:
        suffix = f':{slot_date.isoformat()}'
        with self._lock:
            stale = [
                key for key in self._entries
                if key.startswith(f'{KEY_PREFIX}:dates:')
                or (key.startswith(f'{KEY_PREFIX}:slots:') and key.endswith(suffix))
            ]
            for key in stale:
                del self._entries[key]
        logger.debug('Invalidated %d availability entries for %s', len(stale), slot_date)

    def invalidate_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug('Invalidated all %d availability entries', count)

    def __len__(self) -> int:
        return len(self._entries)


class RedisSlotCache:
    """Redis-backed cache shared by every worker process.

    Cache errors are logged and treated as misses; availability is always
    recomputable from the database.
    """

    def __init__(self, client: 'redis.Redis', ttl_seconds: int = 300):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 300) -> 'RedisSlotCache':
        return cls(redis.Redis.from_url(url, encoding='utf-8', decode_responses=True), ttl_seconds)

    def get(self, key: str) -> Any | None:
        try:
            value = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning('Availability cache get failed for %s: %s', key, exc)
            return None
        if value is None:
            return None
        return json.loads(value)

    def set(self, key: str, value: Any) -> None:
        try:
            self.client.setex(key, self.ttl_seconds, json.dumps(value))
        except redis.RedisError as exc:
            logger.warning('Availability cache set failed for %s: %s', key, exc)

    def _delete_matching(self, pattern: str) -> int:
        keys = list(self.client.scan_iter(match=pattern))
        if not keys:
            return 0
        return self.client.delete(*keys)

    def invalidate_date(self, slot_date: date) -> None:
        try:
            deleted = self._delete_matching(f'{KEY_PREFIX}:slots:*:{slot_date.isoformat()}')
            deleted += self._delete_matching(f'{KEY_PREFIX}:dates:*')
        except redis.RedisError as exc:
            logger.warning('Availability cache invalidation failed for %s: %s', slot_date, exc)
            return
        logger.debug('Invalidated %d availability entries for %s', deleted, slot_date)

    def invalidate_all(self) -> None:
        try:
            deleted = self._delete_matching(f'{KEY_PREFIX}:*')
        except redis.RedisError as exc:
            logger.warning('Availability cache invalidation failed: %s', exc)
            return
        logger.debug('Invalidated all %d availability entries', deleted)
