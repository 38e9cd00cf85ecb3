"""
In-process result cache for expensive registry and process calls.

Values expire after a per-call TTL (``None`` = keep for the process
lifetime).  Nothing is written to disk.

Thread safety
-------------
Concurrent ``get_or_compute`` calls for the same key are coalesced:
the first caller runs the producer, every later caller waits on the
same in-flight ``Future`` and receives the identical value (or the
identical exception).  At most one producer runs per key at any time.
Different keys compute in parallel.

Invalidating a key while its producer runs marks that flight stale: it
stays registered until the producer returns, but its value is not
stored.  A caller arriving in the meantime waits for the stale flight
to finish and then starts a fresh one.

Counters
--------
Every call counts towards ``total_requests``.  A cached value or a
coalesced wait counts as a hit; running the producer counts as a miss.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from runtimekit.core.models.package import Stats

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Registry metadata changes slowly; status must follow local edits quickly.
REGISTRY_TTL = 300.0
STATUS_TTL = 30.0


@dataclass
class _CacheEntry:
    key: str
    value: Any
    expires_at: float | None  # None = never

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class _InFlight:
    future: Future
    # Set when the key is invalidated mid-computation: the result is
    # still handed to waiters but not stored.
    stale: bool = False


class ResultCache:
    """Key → value store with TTL expiry, coalescing and hit/miss stats."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, _CacheEntry] = {}
        self._in_flight: dict[str, _InFlight] = {}
        self._hits = 0
        self._misses = 0
        self._total = 0

    def get_or_compute(self, key: str, ttl: float | None, producer: Callable[[], T]) -> T:
        """Return the cached value for ``key``, computing it at most once.

        Args:
            key:      Cache key.
            ttl:      Seconds until expiry; ``None`` never expires.
            producer: Zero-arg callable; its exception propagates to the
                      caller and to every coalesced waiter, and nothing
                      is cached.
        """
        with self._lock:
            self._total += 1

        while True:
            with self._lock:
                entry = self._entries.get(key)
                if entry is not None:
                    if not entry.expired(self._clock()):
                        self._hits += 1
                        logger.debug("cache HIT for %s", key)
                        return entry.value
                    del self._entries[key]

                flight = self._in_flight.get(key)
                if flight is None:
                    self._misses += 1
                    flight = _InFlight(future=Future())
                    self._in_flight[key] = flight
                    owner = True
                    break
                if not flight.stale:
                    self._hits += 1
                    owner = False
                    break
                pending = flight.future

            logger.debug("cache WAIT for %s (stale computation still running)", key)
            wait([pending])

        if not owner:
            logger.debug("cache WAIT for %s (coalesced)", key)
            return flight.future.result()

        t0 = time.monotonic()
        try:
            value = producer()
        except BaseException as exc:
            with self._lock:
                if self._in_flight.get(key) is flight:
                    del self._in_flight[key]
            flight.future.set_exception(exc)
            logger.debug("cache MISS for %s failed: %s", key, exc)
            raise

        with self._lock:
            if self._in_flight.get(key) is flight:
                del self._in_flight[key]
            if not flight.stale:
                expires_at = None if ttl is None else self._clock() + ttl
                self._entries[key] = _CacheEntry(key=key, value=value, expires_at=expires_at)
        flight.future.set_result(value)

        logger.debug("cache MISS for %s (computed in %.3fs)", key, time.monotonic() - t0)
        return value

    def peek(self, key: str) -> Any | None:
        """Return an unexpired value without computing or counting."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expired(self._clock()):
                return None
            return entry.value

    def invalidate(self, key: str) -> None:
        """Drop one key; a computation still in flight will not be stored."""
        with self._lock:
            self._entries.pop(key, None)
            flight = self._in_flight.get(key)
            if flight is not None:
                flight.stale = True
        logger.debug("cache invalidated %s", key)

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``. Returns entries removed."""
        with self._lock:
            keys = [k for k in self._entries if k.startswith(prefix)]
            for k in keys:
                del self._entries[k]
            for k, flight in self._in_flight.items():
                if k.startswith(prefix):
                    flight.stale = True
        if keys:
            logger.debug("cache invalidated %d key(s) under %s", len(keys), prefix)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            for flight in self._in_flight.values():
                flight.stale = True

    def stats(self) -> Stats:
        with self._lock:
            return Stats(
                cache_hits=self._hits,
                cache_misses=self._misses,
                total_requests=self._total,
            )

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = self._misses = self._total = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
