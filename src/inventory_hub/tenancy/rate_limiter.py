"""
Per-tenant fixed-window API rate limiter.

Each tenant gets one counter per UTC minute, keyed
``rate_limit:{tenant_id}:{YYYYmmddHHMM}``. A window resets simply because the
next minute produces a new key; old keys expire on their own (Redis TTL) or
are evicted on the next write (in-process backend).

Backends:
- RedisCounterBackend: shared across API workers, INCR + EXPIRE pipeline
- InMemoryCounterBackend: single process deployments and tests
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple

from redis import Redis
from redis.exceptions import RedisError

from inventory_hub.utils.logger import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one counted request."""
    allowed: bool
    limit: int
    current: int
    remaining: int
    reset_at: int       # unix timestamp at which the window rolls over
    retry_after: int    # seconds until reset_at


class RedisCounterBackend:
    """Window counters stored in Redis."""

    def __init__(self, redis_client: Redis):
        self.redis_client = redis_client

    def increment(self, key: str, ttl_seconds: int) -> int:
        # INCR and EXPIRE travel in one MULTI/EXEC so concurrent workers
        # never observe the same count
        pipe = self.redis_client.pipeline()
        pipe.incr(key)
        pipe.expire(key, ttl_seconds)
        results = pipe.execute()
        return int(results[0])

    def get(self, key: str) -> int:
        value = self.redis_client.get(key)
        return int(value) if value else 0

    def delete(self, key: str) -> None:
        self.redis_client.delete(key)


class InMemoryCounterBackend:
    """Window counters kept in process memory, guarded by a lock."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        with self._lock:
            self._evict_expired(now)
            count, expires_at = self._counters.get(key, (0, now + ttl_seconds))
            count += 1
            self._counters[key] = (count, expires_at)
            return count

    def get(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            count, expires_at = self._counters.get(key, (0, now))
            return count if expires_at > now else 0

    def delete(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]

    def __len__(self) -> int:
        return len(self._counters)


class FixedWindowRateLimiter:
    """
    Counts API calls per tenant per UTC minute.

    Usage:
        limiter = FixedWindowRateLimiter(RedisCounterBackend(redis_client))
        result = limiter.hit(tenant_id, limit=300)
        if not result.allowed:
            ...  # 429 with Retry-After: result.retry_after
    """

    def __init__(self, backend, clock: Callable[[], float] = time.time):
        """
        Args:
            backend: Counter backend (Redis or in-memory)
            clock: Source of unix time, injectable for tests
        """
        self.backend = backend
        self.clock = clock

    def _window(self, now: float) -> Tuple[str, int]:
        """Return (minute label, unix timestamp of the next window start)."""
        moment = datetime.fromtimestamp(now, tz=timezone.utc)
        window_start = int(now) - moment.second
        return moment.strftime("%Y%m%d%H%M"), window_start + WINDOW_SECONDS

    def _key(self, tenant_id, window: str) -> str:
        return f"rate_limit:{tenant_id}:{window}"

    def hit(self, tenant_id, limit: int) -> RateLimitResult:
        """
        Count one request for the tenant and decide whether it is allowed.

        The request that takes the counter to ``limit`` is the last one
        allowed in the window.
        """
        now = self.clock()
        window, reset_at = self._window(now)
        key = self._key(tenant_id, window)
        retry_after = max(0, reset_at - int(now))

        try:
            # The key lives until its own window closes
            current = self.backend.increment(key, retry_after + 1)
        except RedisError as e:
            # Fail open: losing the counter store must not take the API down
            logger.error(f"Rate limit counter unavailable for tenant {tenant_id}: {e}")
            return RateLimitResult(True, limit, 0, limit, reset_at, retry_after)

        allowed = current <= limit
        if not allowed:
            logger.warning(f"Tenant {tenant_id} exceeded rate limit: {current}/{limit} in window {window}")

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            current=current,
            remaining=max(0, limit - current),
            reset_at=reset_at,
            retry_after=retry_after,
        )

    def peek(self, tenant_id) -> int:
        """Requests counted so far in the current window, without counting one."""
        window, _ = self._window(self.clock())
        try:
            return self.backend.get(self._key(tenant_id, window))
        except RedisError as e:
            logger.error(f"Failed to read rate limit counter: {e}")
            return 0

    def reset(self, tenant_id) -> None:
        """Clear the current window for a tenant."""
        window, _ = self._window(self.clock())
        self.backend.delete(self._key(tenant_id, window))
        logger.info(f"Rate limit reset for tenant: {tenant_id}")


def create_rate_limiter(backend: str = "redis", redis_url: Optional[str] = None) -> FixedWindowRateLimiter:
    """Build the limiter configured by RATE_LIMIT_BACKEND."""
    if backend == "memory":
        logger.info("Rate limiter using in-process counters")
        return FixedWindowRateLimiter(InMemoryCounterBackend())

    client = Redis.from_url(redis_url or "redis://localhost:6379/0", decode_responses=True)
    logger.info(f"Rate limiter using Redis counters ({redis_url})")
    return FixedWindowRateLimiter(RedisCounterBackend(client))
