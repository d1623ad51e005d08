"""Fixed-window rate limiter backed by a counter store."""

import asyncio
import logging
import time
from typing import Callable, Optional

from redis import asyncio as aioredis

from site_reader.models.schemas import RateLimitDecision

logger = logging.getLogger(__name__)


class MemoryCounterStore:
    """
    In-process counter store with per-key expiry.

    Mirrors the INCR/EXPIRE subset of Redis that the rate limiter needs.
    Used when no Redis URL is configured, and in tests.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._counts: dict[str, int] = {}
        self._expires_at: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _purge_if_expired(self, key: str, now: float) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and now >= expires_at:
            self._counts.pop(key, None)
            del self._expires_at[key]

    async def incr(self, key: str) -> int:
        async with self._lock:
            self._purge_if_expired(key, self._clock())
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    async def expire(self, key: str, seconds: int) -> bool:
        async with self._lock:
            if key not in self._counts:
                return False
            self._expires_at[key] = self._clock() + seconds
            return True

    async def close(self) -> None:
        pass


class RedisCounterStore:
    """Counter store on a remote Redis instance."""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def incr(self, key: str) -> int:
        return int(await self.client.incr(key))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self.client.expire(key, seconds))

    async def close(self) -> None:
        await self.client.aclose()


class RateLimiter:
    """
    Per-client fixed window rate limiter.

    The first request of a window creates the counter and sets its expiry;
    the window resets implicitly when the counter expires. Increment and
    expiry are two separate store calls, so a crash between them can leave a
    counter without a TTL.
    """

    def __init__(
        self,
        store,
        max_requests: int = 5,
        window_seconds: int = 60,
        key_prefix: str = "ratelimit",
    ):
        """
        Initialize rate limiter.

        Args:
            store: Counter store exposing async incr(key) and expire(key, seconds)
            max_requests: Requests allowed per client per window
            window_seconds: Window length in seconds
            key_prefix: Prefix for counter keys
        """
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    def _key(self, client_id: str) -> str:
        return f"{self.key_prefix}:{client_id}"

    async def check(self, client_id: str) -> RateLimitDecision:
        """Count a request for client_id and decide whether it may proceed."""
        key = self._key(client_id)

        requests = await self.store.incr(key)
        if requests == 1:
            await self.store.expire(key, self.window_seconds)

        allowed = requests <= self.max_requests
        remaining = max(0, self.max_requests - requests)

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_id}: {requests} requests in window")

        return RateLimitDecision(allowed=allowed, remaining=remaining)

    async def close(self) -> None:
        await self.store.close()
