"""
Per-client token bucket rate limiting.

Every client key owns a bucket that holds up to ``burst`` tokens and refills
continuously at ``rate`` tokens per second. Admitting a request costs one
token; a request that finds less than one token is rejected and costs nothing.
Buckets start full, are created on first sight of a key and dropped after the
key has been idle for ``idle_ttl`` seconds.

The bucket table is split into shards, each guarded by its own lock, so
clients hashing to different shards never wait on each other.
"""

import threading
import time
from typing import Callable, Dict, Hashable, List, Optional

from ..utils.logging import logger


class _Bucket:
    __slots__ = ('tokens', 'updated')

    def __init__(self, tokens: float, updated: float):
        self.tokens = tokens
        self.updated = updated


class _Shard:
    __slots__ = ('lock', 'buckets', 'last_sweep')

    def __init__(self, now: float):
        self.lock = threading.Lock()
        self.buckets: Dict[Hashable, _Bucket] = {}
        self.last_sweep = now


class RateLimiter:
    """Token bucket rate limiter keyed by client."""

    def __init__(self, rate: float, burst: Optional[int] = None, idle_ttl: float = 600.0,
                 shards: int = 16, clock: Callable[[], float] = time.monotonic):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst is None:
            burst = max(1, int(rate))
        if burst < 1:
            raise ValueError("burst must be at least 1")
        if shards < 1:
            raise ValueError("shards must be at least 1")

        self.rate = float(rate)
        self.burst = burst
        self.idle_ttl = idle_ttl
        self._clock = clock
        now = clock()
        self._shards: List[_Shard] = [_Shard(now) for _ in range(shards)]

    def _shard_for(self, key: Hashable) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def allow(self, key: Hashable) -> bool:
        """Spend one token for ``key``. Returns False if none is available."""
        shard = self._shard_for(key)
        with shard.lock:
            now = self._clock()
            if now - shard.last_sweep >= self.idle_ttl:
                self._sweep(shard, now)

            bucket = shard.buckets.get(key)
            if bucket is None:
                bucket = _Bucket(float(self.burst), now)
                shard.buckets[key] = bucket
            else:
                elapsed = max(0.0, now - bucket.updated)
                bucket.tokens = min(float(self.burst), bucket.tokens + elapsed * self.rate)
                bucket.updated = now

            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True
            return False

    def _sweep(self, shard: _Shard, now: float) -> int:
        """Drop idle buckets from one shard. Caller holds the shard lock."""
        idle = [key for key, bucket in shard.buckets.items()
                if now - bucket.updated >= self.idle_ttl]
        for key in idle:
            del shard.buckets[key]
        shard.last_sweep = now
        return len(idle)

    def evict_idle(self) -> int:
        """Drop every bucket idle for at least ``idle_ttl``. Returns the count."""
        evicted = 0
        for shard in self._shards:
            with shard.lock:
                evicted += self._sweep(shard, self._clock())
        if evicted:
            logger.debug(f"Evicted {evicted} idle rate limit buckets")
        return evicted

    def tokens(self, key: Hashable) -> Optional[float]:
        """Tokens ``key`` would have right now, or None if it has no bucket."""
        shard = self._shard_for(key)
        with shard.lock:
            bucket = shard.buckets.get(key)
            if bucket is None:
                return None
            elapsed = max(0.0, self._clock() - bucket.updated)
            return min(float(self.burst), bucket.tokens + elapsed * self.rate)

    def __len__(self) -> int:
        return sum(len(shard.buckets) for shard in self._shards)

    def __contains__(self, key: Hashable) -> bool:
        shard = self._shard_for(key)
        with shard.lock:
            return key in shard.buckets
