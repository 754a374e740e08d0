"""
Fixed-window request limiting on top of the ``limits`` package.

Redis-backed when ``REDIS_URL`` is set, in-process memory otherwise. A
storage outage lets the request through so the API stays available.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter

from restoguide.errors import AppError

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage if storage is not None else MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    @classmethod
    def from_url(cls, url: Optional[str]) -> "RateLimiter":
        return cls(storage_from_string(url) if url else MemoryStorage())

    def check(
        self, identifier: str, limit: int, window_seconds: int, scope: str
    ) -> dict[str, str]:
        """
        Count one hit for ``identifier`` in ``scope``. Returns the
        ``X-RateLimit-*`` headers, or raises 429 once the window is used up.
        """
        item = RateLimitItemPerSecond(limit, window_seconds)
        try:
            allowed = self.strategy.hit(item, scope, identifier)
            reset_at, remaining = self.strategy.get_window_stats(item, scope, identifier)
        except Exception:
            logger.exception("Rate limiter unavailable; allowing request")
            return {}
        reset_at = int(reset_at)
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(0, remaining)),
            "X-RateLimit-Reset": str(reset_at),
        }
        if not allowed:
            retry_after = max(1, int(reset_at - time.time()))
            headers["Retry-After"] = str(retry_after)
            raise AppError(
                "Too many requests, please try again later",
                429,
                "RATE_LIMIT_EXCEEDED",
                {
                    "limit": limit,
                    "window": window_seconds,
                    "retry_after": retry_after,
                    "reset_at": reset_at,
                },
                headers=headers,
            )
        return headers

    def reset(self) -> None:
        self.storage.reset()
