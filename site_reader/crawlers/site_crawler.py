"""Site crawler: discovers pages and their links from a seed URL."""

import asyncio
import logging
from collections import deque
from typing import Optional
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from site_reader.errors import UpstreamError
from site_reader.models.schemas import CrawledPage, CrawlResult
from .base import BaseCrawler

logger = logging.getLogger(__name__)

SKIPPED_LINK_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:")


def extract_links(html: str, base_url: str) -> list[str]:
    """
    Find every absolute http(s) link in a page.

    Relative links are resolved against base_url and fragments dropped.
    Links keep document order, repeats included.
    """
    links: list[str] = []

    soup = BeautifulSoup(html, "lxml")
    for anchor in soup.find_all("a", href=True):
        href = anchor.get("href", "").strip()

        if not href or href.lower().startswith(SKIPPED_LINK_PREFIXES):
            continue

        href, _ = urldefrag(urljoin(base_url, href))

        if urlparse(href).scheme not in ("http", "https"):
            continue

        links.append(href)

    return links


class SiteCrawler(BaseCrawler):
    """
    Crawl capability.

    Walks same-host pages breadth-first from the seed, up to a page limit,
    and reports each page's URL together with the links found on it.
    """

    def __init__(self, page_delay: float = 0.5, **kwargs):
        """
        Args:
            page_delay: Seconds to pause between page fetches
            **kwargs: Passed to BaseCrawler
        """
        super().__init__(**kwargs)
        self.page_delay = page_delay

    async def crawl(self, url: str, limit: int = 10) -> CrawlResult:
        """
        Crawl a site.

        Args:
            url: Seed URL
            limit: Maximum pages to crawl

        Returns:
            CrawlResult with discovered pages, or with ``error`` set when the
            seed page itself could not be crawled
        """
        base_host = urlparse(url).netloc
        pages: list[CrawledPage] = []
        queued = {url}
        to_visit = deque([url])

        try:
            async with self.browser() as browser:
                while to_visit and len(pages) < limit:
                    current_url = to_visit.popleft()
                    html = await self._fetch_html(browser, current_url)

                    if html is None:
                        if current_url == url:
                            return CrawlResult(error=f"Failed to crawl seed page {url}")
                        continue

                    links = extract_links(html, current_url)
                    pages.append(CrawledPage(source_url=current_url, links_on_page=links))

                    for link in links:
                        if link not in queued and urlparse(link).netloc == base_host:
                            queued.add(link)
                            to_visit.append(link)

                    if to_visit and len(pages) < limit and self.page_delay:
                        await asyncio.sleep(self.page_delay)

        except Exception as e:
            raise UpstreamError(f"Crawl of {url} failed: {e}") from e

        logger.info(f"Crawled {len(pages)} pages from {url}")
        return CrawlResult(pages=pages)

    async def _fetch_html(self, browser, url: str) -> Optional[str]:
        """Fetch a page's rendered HTML, or None if the page failed."""
        try:
            result = await browser.arun(url=url, config=self.run_config())
        except Exception as e:
            logger.warning(f"Crawl failed for {url}: {e}")
            return None

        if not result.success or not result.html:
            logger.warning(f"Crawl failed for {url}: {getattr(result, 'error_message', None)}")
            return None

        return result.html
