"""Page scraper: renders a page and extracts its main content as markdown."""

import logging
from typing import Any, Optional

from crawl4ai.content_filter_strategy import PruningContentFilter
from crawl4ai.markdown_generation_strategy import DefaultMarkdownGenerator

from site_reader.models.schemas import ScrapeResult, ScrapeStatus
from .base import BaseCrawler

logger = logging.getLogger(__name__)

# Page chrome dropped before markdown generation
EXCLUDED_TAGS = ["nav", "header", "footer", "aside", "form"]

# 4xx responses worth trying again
RETRYABLE_CLIENT_STATUSES = {408, 425, 429}


def classify_failure(status_code: Optional[int]) -> ScrapeStatus:
    """Permanent client errors are terminal; everything else may recover."""
    if status_code is not None and 400 <= status_code < 500 and status_code not in RETRYABLE_CLIENT_STATUSES:
        return ScrapeStatus.TERMINAL
    return ScrapeStatus.RETRYABLE


def markdown_text(markdown: Any) -> Optional[str]:
    """Prefer filtered (main content) markdown, fall back to raw."""
    if markdown is None:
        return None
    if isinstance(markdown, str) and not hasattr(markdown, "raw_markdown"):
        return markdown

    fit = getattr(markdown, "fit_markdown", None)
    if fit:
        return fit
    return getattr(markdown, "raw_markdown", None)


class PageScraper(BaseCrawler):
    """
    Scrape capability.

    Never raises for a page failure: every call returns a ScrapeResult whose
    status tells the retry policy what to do.
    """

    def __init__(self, wait_for_ms: int = 5000, **kwargs):
        """
        Args:
            wait_for_ms: Delay after load before capturing the page, in milliseconds
            **kwargs: Passed to BaseCrawler
        """
        super().__init__(**kwargs)
        self.wait_for_ms = wait_for_ms

    def scrape_config(self):
        return self.run_config(
            markdown_generator=DefaultMarkdownGenerator(
                content_filter=PruningContentFilter(),
            ),
            excluded_tags=EXCLUDED_TAGS,
            delay_before_return_html=self.wait_for_ms / 1000,
        )

    async def scrape(self, url: str) -> ScrapeResult:
        """Scrape one page into main-content markdown."""
        try:
            async with self.browser() as browser:
                result = await browser.arun(url=url, config=self.scrape_config())
        except Exception as e:
            return ScrapeResult(url=url, status=ScrapeStatus.RETRYABLE, error=f"{type(e).__name__}: {e}")

        if not result.success:
            status_code = getattr(result, "status_code", None)
            return ScrapeResult(
                url=url,
                status=classify_failure(status_code),
                error=getattr(result, "error_message", None) or f"HTTP {status_code}",
            )

        markdown = markdown_text(result.markdown)
        logger.debug(f"Scraped {url}: {len(markdown or '')} chars")
        return ScrapeResult(url=url, status=ScrapeStatus.SUCCESS, markdown=markdown)
