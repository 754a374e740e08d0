"""
Windowed counters for the daily review quota.

Supports an in-memory store for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

import redis
from redis import exceptions as redis_exceptions


class CounterStore(Protocol):
    """Minimal interface for expiring integer counters."""

    def incr(self, key: str, window_seconds: int) -> int:
        ...

    def get(self, key: str) -> int:
        ...

    def ttl(self, key: str) -> int:
        ...

    def ping(self) -> bool:
        ...


@dataclass
class InMemoryCounterStore:
    """Dict-backed counters with expiry, for testing/dev."""

    counters: dict = field(default_factory=dict)
    clock: Callable[[], float] = time.time

    def __post_init__(self):
        self._lock = threading.Lock()

    def _live(self, key: str):
        entry = self.counters.get(key)
        if entry and entry[1] <= self.clock():
            del self.counters[key]
            return None
        return entry

    def incr(self, key: str, window_seconds: int) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                entry = [0, self.clock() + window_seconds]
                self.counters[key] = entry
            entry[0] += 1
            return entry[0]

    def get(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else 0

    def ttl(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            return max(0, int(entry[1] - self.clock()))

    def ping(self) -> bool:
        return True

    def reset(self) -> None:
        self.counters.clear()


@dataclass
class RedisCounterStore:
    """Redis-backed counters using INCR with a key expiry."""

    url: str

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _reconnect(self) -> None:
        self.client = redis.Redis.from_url(self.url)

    def incr(self, key: str, window_seconds: int) -> int:
        try:
            count = int(self.client.incr(key))
            if count == 1:
                self.client.expire(key, window_seconds)
            return count
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; the caller decides whether to fail open.
            self._reconnect()
            raise

    def get(self, key: str) -> int:
        value = self.client.get(key)
        return int(value) if value is not None else 0

    def ttl(self, key: str) -> int:
        return int(self.client.ttl(key))

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis_exceptions.ConnectionError:
            self._reconnect()
            return False
