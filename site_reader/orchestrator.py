"""Crawl orchestration: cache lookup, crawl, fan-out scrape, cache write."""

import asyncio
import logging
from datetime import timedelta

from site_reader.crawlers import PageScraper, SiteCrawler
from site_reader.errors import UpstreamError
from site_reader.models.schemas import CrawledPage, CrawlRequest, ScrapedPage, ScrapeResult, is_public_url
from site_reader.utils.retry import scrape_with_retry

logger = logging.getLogger(__name__)


def derive_urls(pages: list[CrawledPage], dedupe: bool = True) -> list[str]:
    """
    Build the list of URLs to scrape from crawled pages.

    Each page contributes its own URL followed by every link found on it;
    a page without a source URL contributes only its links. Links to
    internal/private hosts or non-http(s) schemes are dropped.
    """
    urls: list[str] = []
    for page in pages:
        if page.source_url:
            urls.append(page.source_url)
        urls.extend(page.links_on_page)

    blocked = [url for url in urls if not is_public_url(url)]
    if blocked:
        logger.warning(f"Skipping {len(blocked)} links to internal or non-http(s) URLs: {blocked[:5]}")
        urls = [url for url in urls if is_public_url(url)]

    if dedupe:
        urls = list(dict.fromkeys(urls))

    return urls


class CrawlOrchestrator:
    """
    Serves one crawl request end to end.

    Collaborators are injected so any of them can be replaced:
    - cache: ``get(url)`` / ``put(url, content, ttl)``
    - crawler: ``crawl(url, limit) -> CrawlResult``
    - scraper: ``scrape(url) -> ScrapeResult``

    There is no single-flight between requests: two concurrent misses for
    the same URL both crawl and both write.
    """

    def __init__(
        self,
        cache,
        crawler,
        scraper,
        cache_ttl: timedelta = timedelta(days=7),
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        max_concurrent_scrapes: int = 5,
        dedupe_urls: bool = True,
        sleep=asyncio.sleep,
    ):
        self.cache = cache
        self.crawler = crawler
        self.scraper = scraper
        self.cache_ttl = cache_ttl
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_concurrent_scrapes = max_concurrent_scrapes
        self.dedupe_urls = dedupe_urls
        self._sleep = sleep

    async def run(self, request: CrawlRequest) -> tuple[list[ScrapedPage], bool]:
        """
        Return scraped content for a request and whether it came from cache.

        Raises:
            UpstreamError: crawl failed or a page could not be scraped
            CacheError: cache store unavailable
        """
        cached = await self.cache.get(request.url)
        if cached is not None:
            logger.info(f"Cache hit for {request.url}")
            return cached.content, True

        logger.info(f"Crawling {request.url} (limit={request.limit})")
        crawl_result = await self.crawler.crawl(request.url, request.limit)

        if crawl_result.error:
            raise UpstreamError(f"Crawl of {request.url} failed: {crawl_result.error}")

        urls = derive_urls(crawl_result.pages, dedupe=self.dedupe_urls)
        logger.info(f"Crawl of {request.url} found {len(crawl_result.pages)} pages, scraping {len(urls)} URLs")

        scraped = await self.scrape_all(urls)

        await self.cache.put(request.url, scraped, ttl=self.cache_ttl)
        return scraped, False

    async def scrape_all(self, urls: list[str]) -> list[ScrapedPage]:
        """
        Scrape every URL concurrently; all pages must succeed.

        Waits for every scrape to settle before reporting failures.
        """
        semaphore = asyncio.Semaphore(self.max_concurrent_scrapes) if self.max_concurrent_scrapes > 0 else None

        async def scrape_one(url: str) -> ScrapeResult:
            if semaphore is None:
                return await self._scrape_with_retry(url)
            async with semaphore:
                return await self._scrape_with_retry(url)

        results = await asyncio.gather(*(scrape_one(url) for url in urls))

        failed = [r for r in results if not r.ok]
        if failed:
            first = failed[0]
            raise UpstreamError(
                f"{len(failed)} of {len(results)} pages failed to scrape; "
                f"first: {first.url} ({first.status.value}): {first.error}"
            )

        return [ScrapedPage(url=r.url, markdown=r.markdown) for r in results]

    async def _scrape_with_retry(self, url: str) -> ScrapeResult:
        return await scrape_with_retry(
            self.scraper.scrape,
            url,
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            sleep=self._sleep,
        )


def build_orchestrator(settings, cache, crawler=None, scraper=None) -> CrawlOrchestrator:
    """Create an orchestrator with Crawl4AI capabilities configured from settings."""
    crawler = crawler or SiteCrawler(
        headless=settings.headless,
        page_timeout_ms=settings.page_timeout_ms,
    )
    scraper = scraper or PageScraper(
        wait_for_ms=settings.scrape_wait_for_ms,
        headless=settings.headless,
        page_timeout_ms=settings.page_timeout_ms,
    )

    return CrawlOrchestrator(
        cache=cache,
        crawler=crawler,
        scraper=scraper,
        cache_ttl=timedelta(days=settings.cache_ttl_days),
        max_attempts=settings.scrape_max_attempts,
        retry_delay=settings.scrape_retry_delay_seconds,
        max_concurrent_scrapes=settings.max_concurrent_scrapes,
        dedupe_urls=settings.dedupe_scrape_urls,
    )
