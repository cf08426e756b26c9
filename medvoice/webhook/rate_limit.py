"""
Rate Limiter — fixed-window request counting per caller identity.

Keys are ``"<identity>:<window index>"``. Counters live in a CounterStore
whose increment is atomic per key; the default InMemoryCounterStore is
process-local, so multi-instance deployments need a shared store.

Entries are never swept automatically. A bucket is reset lazily when it is
reused after its reset time; call ``evict_expired()`` from outside to bound
memory.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Mapping

logger = logging.getLogger("webhook.rate_limit")

DEFAULT_RATE_LIMIT = 100
DEFAULT_WINDOW_SECONDS = 15 * 60
UNKNOWN_IDENTITY = "unknown"


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int        # whole seconds; 0 when allowed
    reset_at: datetime


class CounterStore(ABC):
    """Key → (count, reset_at) with atomic increment-and-read."""

    @abstractmethod
    def increment(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        """Bump the counter for ``key`` and return (count, reset_at epoch seconds)."""

    @abstractmethod
    def evict_expired(self, now: float) -> int:
        """Drop entries whose reset time has passed. Returns how many were dropped."""


class InMemoryCounterStore(CounterStore):
    def __init__(self) -> None:
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        with self._lock:
            count, reset_at = self._counters.get(key, (0, now + window_seconds))
            if now > reset_at:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._counters[key] = (count, reset_at)
            return count, reset_at

    def evict_expired(self, now: float) -> int:
        with self._lock:
            expired = [k for k, (_, reset_at) in self._counters.items() if now > reset_at]
            for key in expired:
                del self._counters[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._counters)


def client_identity(headers: Mapping[str, str]) -> str:
    """Forwarded IP, else real IP, else a shared "unknown" bucket."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_IDENTITY


class RateLimiter:
    """Counts requests per identity per fixed window."""

    def __init__(
        self,
        limit: int = DEFAULT_RATE_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        counters: CounterStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._counters = counters if counters is not None else InMemoryCounterStore()
        self._clock = clock

    def check(self, identity: str) -> RateLimitDecision:
        now = self._clock()
        window_index = int(now // self.window_seconds)
        key = f"{identity}:{window_index}"

        count, reset_at = self._counters.increment(key, self.window_seconds, now)
        reset_dt = datetime.fromtimestamp(reset_at, tz=timezone.utc)

        if count > self.limit:
            retry_after = max(1, math.ceil(reset_at - now))
            logger.warning(
                "Rate limit exceeded for %s (%d/%d), retry in %ds",
                identity, count, self.limit, retry_after,
            )
            return RateLimitDecision(
                allowed=False,
                limit=self.limit,
                remaining=0,
                retry_after=retry_after,
                reset_at=reset_dt,
            )

        return RateLimitDecision(
            allowed=True,
            limit=self.limit,
            remaining=self.limit - count,
            retry_after=0,
            reset_at=reset_dt,
        )

    def evict_expired(self) -> int:
        return self._counters.evict_expired(self._clock())
