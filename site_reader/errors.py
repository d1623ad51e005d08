"""Error taxonomy for the crawl workflow.

Each error maps to one HTTP status at the API boundary. Messages are meant
for the operator log; callers only ever see the generic ``public_message``.
"""


class SiteReaderError(Exception):
    """Base class for all Site Reader errors."""
    status_code = 500
    public_message = "Failed to crawl and scrape"


class InputError(SiteReaderError):
    """Malformed request. Never retried."""
    status_code = 400
    public_message = "Invalid input"


class RateLimitError(SiteReaderError):
    """Client exceeded its request quota for the current window."""
    status_code = 429
    public_message = "Too many requests"

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int = 60, remaining: int = 0):
        super().__init__(message)
        self.retry_after = retry_after
        self.remaining = remaining


class UpstreamError(SiteReaderError):
    """Crawl or scrape capability failed."""


class CacheError(SiteReaderError):
    """Cache store unavailable."""
