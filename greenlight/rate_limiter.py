"""In-memory per-client rate limiter (per-process, token bucket)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenBucket:
    """Admission state for a single client."""

    __slots__ = ("capacity", "rate", "tokens", "last_refill", "last_seen")

    def __init__(self, rate: float, capacity: int, now: float) -> None:
        self.rate = rate
        self.capacity = capacity
        self.tokens = float(capacity)
        self.last_refill = now
        self.last_seen = now

    def consume(self, now: float) -> bool:
        # Callers must hold the registry lock.
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(float(self.capacity), self.tokens + elapsed * self.rate)
        self.last_refill = now
        self.last_seen = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class RateLimiterRegistry:
    """
    Per-client token buckets sharing one configuration.

    Every read, creation, update and eviction of a bucket happens under a
    single lock, so updates for one key are linearized and a key never gets
    two buckets. Idle buckets are dropped by a periodic sweep started with
    ``start()``.
    """

    def __init__(
        self,
        rate_per_sec: float,
        burst: int,
        *,
        enabled: bool = True,
        eviction_interval: float = 60.0,
        idle_threshold: float = 180.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self.rate = rate_per_sec
        self.burst = burst
        self.enabled = enabled
        self.eviction_interval = eviction_interval
        self.idle_threshold = idle_threshold
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    async def allow(self, key: str) -> bool:
        """Return True if ``key`` may proceed, consuming one token."""
        if not self.enabled:
            return True
        async with self._lock:
            now = self._clock()
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(self.rate, self.burst, now)
                self._buckets[key] = bucket
            return bucket.consume(now)

    async def sweep(self) -> int:
        """Remove buckets not seen for longer than the idle threshold."""
        async with self._lock:
            cutoff = self._clock() - self.idle_threshold
            stale = [key for key, bucket in self._buckets.items() if bucket.last_seen < cutoff]
            for key in stale:
                del self._buckets[key]
        if stale:
            logger.debug("limiter sweep removed=%d remaining=%d", len(stale), len(self._buckets))
        return len(stale)

    def start(self) -> None:
        """Launch the eviction loop on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="rate_limiter_sweep")

    async def stop(self) -> None:
        task = self._sweeper
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.eviction_interval)
            try:
                await self.sweep()
            except Exception as exc:
                logger.warning("limiter sweep failed error=%s", exc, extra={"error": str(exc)})
