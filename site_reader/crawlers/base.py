"""Base crawler class with common browser configuration."""

import logging
from typing import Any, Callable, Optional

from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig, CacheMode

logger = logging.getLogger(__name__)


class BaseCrawler:
    """
    Base class for the crawl and scrape capabilities.

    Provides common functionality:
    - Browser automation via Crawl4AI
    - Default run configuration
    - Swappable browser factory (for tests)
    """

    def __init__(
        self,
        headless: bool = True,
        page_timeout_ms: int = 60000,
        browser_factory: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize base crawler.

        Args:
            headless: Whether to run browser in headless mode
            page_timeout_ms: Per-page navigation timeout in milliseconds
            browser_factory: Returns an async context manager with an
                ``arun(url=..., config=...)`` method; defaults to AsyncWebCrawler
        """
        self.headless = headless
        self.page_timeout_ms = page_timeout_ms
        self._browser_factory = browser_factory

        # Browser configuration for Crawl4AI
        self.browser_config = BrowserConfig(
            browser_type="chromium",
            headless=headless,
            viewport_width=1280,
            viewport_height=800,
            user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            # Extra args for stability
            extra_args=[
                "--disable-gpu",
                "--disable-dev-shm-usage",
                "--no-sandbox",
                "--disable-setuid-sandbox",
            ],
        )

    def browser(self):
        """Open a browser session (use with ``async with``)."""
        if self._browser_factory:
            return self._browser_factory()
        return AsyncWebCrawler(config=self.browser_config)

    def run_config(self, **overrides) -> CrawlerRunConfig:
        """Build a run config; we handle caching ourselves."""
        options = {
            "cache_mode": CacheMode.BYPASS,
            "wait_until": "networkidle",
            "page_timeout": self.page_timeout_ms,
            "verbose": False,
        }
        options.update(overrides)
        return CrawlerRunConfig(**options)
