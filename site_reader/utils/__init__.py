"""Utility modules for Site Reader."""

from .rate_limiter import RateLimiter, MemoryCounterStore, RedisCounterStore
from .cache import CacheStore
from .retry import RetryStep, next_step, scrape_with_retry

__all__ = [
    "RateLimiter",
    "MemoryCounterStore",
    "RedisCounterStore",
    "CacheStore",
    "RetryStep",
    "next_step",
    "scrape_with_retry",
]
