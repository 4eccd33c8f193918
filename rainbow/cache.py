"""In-memory TTL cache for decoded upstream payloads."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import structlog

logger = structlog.get_logger()

# 15 minutes
DEFAULT_TTL_SECONDS = 900
SWEEP_INTERVAL_SECONDS = 60


@dataclass
class CacheEntry:
    payload: Any
    expires_at: float


class ReadWriteLock:
    """Many concurrent readers, or one writer excluding everyone else.

    Waiting writers block new readers so a steady stream of lookups
    cannot starve an insert.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class TTLCache:
    """Process-local cache keyed by the exact upstream request URL.

    Entries past their expiry are treated as absent and are evicted on
    lookup, plus by a sweep that runs from ``set`` at most once every
    ``sweep_interval`` seconds. One instance is created at startup and
    injected into the weather client.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        self.ttl_seconds = ttl_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()
        self._next_sweep = clock() + sweep_interval

    def get(self, key: str) -> Any | None:
        """Return the cached payload, or None on miss or expiry."""
        with self._lock.read():
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() < entry.expires_at:
                logger.debug("cache_hit", key=key)
                return entry.payload

        with self._lock.write():
            entry = self._entries.get(key)
            if entry is not None and self._clock() >= entry.expires_at:
                del self._entries[key]
                logger.debug("cache_expired", key=key)
        return None

    def set(self, key: str, payload: Any, ttl: float | None = None) -> None:
        """Insert or overwrite an entry with a fresh TTL."""
        if ttl is None:
            ttl = self.ttl_seconds
        with self._lock.write():
            now = self._clock()
            if now >= self._next_sweep:
                self._drop_expired(now)
            self._entries[key] = CacheEntry(payload=payload, expires_at=now + ttl)
        logger.debug("cache_set", key=key, ttl=ttl)

    def delete(self, key: str) -> None:
        with self._lock.write():
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        with self._lock.write():
            return self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> int:
        # Caller holds the write lock
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for k in expired:
            del self._entries[k]
        self._next_sweep = now + self.sweep_interval
        if expired:
            logger.debug("cache_purged", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)
