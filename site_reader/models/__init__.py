"""Pydantic models for Site Reader."""

from .schemas import (
    # Enums
    ScrapeStatus,
    # Request models
    CrawlRequest,
    # Capability models
    CrawledPage,
    CrawlResult,
    ScrapeResult,
    # Content / cache models
    ScrapedPage,
    CacheEntry,
    RateLimitDecision,
    # Response models
    CrawlResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    # Enums
    "ScrapeStatus",
    # Request models
    "CrawlRequest",
    # Capability models
    "CrawledPage",
    "CrawlResult",
    "ScrapeResult",
    # Content / cache models
    "ScrapedPage",
    "CacheEntry",
    "RateLimitDecision",
    # Response models
    "CrawlResponse",
    "ErrorResponse",
    "HealthResponse",
]
