"""Pydantic schemas for Site Reader requests, responses and cached content."""

import ipaddress
from datetime import datetime
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class ScrapeStatus(str, Enum):
    """Outcome of a single scrape attempt."""
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


# ============================================================================
# Request Models
# ============================================================================

INTERNAL_HOSTNAMES = ("localhost", "localhost.localdomain")


def _is_internal_host(host: str) -> bool:
    """Check if a host is an internal/private address."""
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return host.lower() in INTERNAL_HOSTNAMES

    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_reserved
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_unspecified
    )


def check_public_url(url: str) -> None:
    """
    Raise ValueError unless url is an absolute http(s) URL on a public host.

    Applied to submitted URLs and to every link found while crawling.
    """
    parsed = urlparse(url)

    if parsed.scheme not in ("http", "https"):
        raise ValueError("URL must use http or https scheme")

    try:
        host = parsed.hostname
        parsed.port
    except ValueError as e:
        raise ValueError(f"URL is malformed: {e}") from e

    if not host:
        raise ValueError("URL must have a valid hostname")

    if _is_internal_host(host):
        raise ValueError("URLs pointing to internal/private addresses are not allowed")


def is_public_url(url: str) -> bool:
    try:
        check_public_url(url)
    except ValueError:
        return False
    return True


class CrawlRequest(BaseModel):
    """Request to crawl a site and scrape its pages."""
    url: str = Field(..., description="Absolute http(s) URL to crawl; used verbatim as cache key")
    limit: int = Field(default=10, ge=1, le=100, description="Maximum pages to crawl")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL scheme and block internal hosts for SSRF prevention."""
        check_public_url(v)
        # Returned verbatim: the raw string is the cache key
        return v

    @field_validator("limit", mode="before")
    @classmethod
    def validate_limit(cls, v):
        """Accept JSON numbers with an integral value (5 or 5.0); reject strings and booleans."""
        if isinstance(v, (str, bool)):
            raise ValueError("limit must be a number")
        return v


# ============================================================================
# Capability Models
# ============================================================================

class CrawledPage(BaseModel):
    """A page discovered by the crawl capability."""
    source_url: Optional[str] = None
    links_on_page: list[str] = Field(default_factory=list)


class CrawlResult(BaseModel):
    """Pages discovered from a seed URL, or a domain-level error."""
    pages: list[CrawledPage] = Field(default_factory=list)
    error: Optional[str] = None


class ScrapeResult(BaseModel):
    """Explicit result of one scrape attempt."""
    url: str
    status: ScrapeStatus
    markdown: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ScrapeStatus.SUCCESS


# ============================================================================
# Content / Cache Models
# ============================================================================

class ScrapedPage(BaseModel):
    """Main-content markdown of one scraped page."""
    url: str
    markdown: Optional[str] = None


class CacheEntry(BaseModel):
    """Cached scrape results for a request URL."""
    url: str
    content: list[ScrapedPage]
    expires_at: datetime


class RateLimitDecision(BaseModel):
    """Result of a rate limit check."""
    allowed: bool
    remaining: int


# ============================================================================
# Response Models
# ============================================================================

class CrawlResponse(BaseModel):
    """Scraped content for every derived page."""
    model_config = ConfigDict(populate_by_name=True)

    scraped_content: list[ScrapedPage] = Field(alias="scrapedContent")


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: float
    version: str
