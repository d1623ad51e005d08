# File: tests/conftest.py
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from site_reader.models.schemas import CrawledPage, CrawlResult, ScrapeResult, ScrapeStatus
from site_reader.orchestrator import CrawlOrchestrator
from site_reader.utils.cache import CacheStore
from site_reader.utils.rate_limiter import MemoryCounterStore, RateLimiter


class FakeClock:
    """Manually advanced clock usable as both a monotonic and a datetime source."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def datetime(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.now.timestamp()


class FakeCrawler:
    """Crawl capability double returning a fixed result and recording calls."""

    def __init__(self, result: CrawlResult):
        self.result = result
        self.calls: list[tuple[str, int]] = []

    async def crawl(self, url: str, limit: int = 10) -> CrawlResult:
        self.calls.append((url, limit))
        return self.result


class FakeScraper:
    """
    Scrape capability double.

    ``script`` maps a URL to the statuses returned on successive attempts;
    URLs not in the script succeed on the first attempt.
    """

    def __init__(self, script: dict[str, list[ScrapeStatus]] = None):
        self.script = {url: list(statuses) for url, statuses in (script or {}).items()}
        self.calls: list[str] = []

    async def scrape(self, url: str) -> ScrapeResult:
        self.calls.append(url)
        statuses = self.script.get(url)
        status = statuses.pop(0) if statuses else ScrapeStatus.SUCCESS
        if status == ScrapeStatus.SUCCESS:
            return ScrapeResult(url=url, status=status, markdown=f"# {url}")
        return ScrapeResult(url=url, status=status, error="boom")


class FakeBrowser:
    """Stands in for AsyncWebCrawler: ``pages`` maps URL to HTML (None = failed)."""

    def __init__(self, pages: dict, status_codes: dict = None, markdown: dict = None):
        self.pages = pages
        self.status_codes = status_codes or {}
        self.markdown = markdown or {}
        self.visited: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def arun(self, url, config=None):
        self.visited.append(url)
        html = self.pages.get(url)
        return SimpleNamespace(
            success=html is not None,
            html=html or "",
            markdown=self.markdown.get(url),
            status_code=self.status_codes.get(url, 200 if html is not None else 500),
            error_message=None if html is not None else f"failed {url}",
        )


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def engine():
    """In-memory SQLite shared across threads (TestClient runs the app elsewhere)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    yield engine
    engine.dispose()


@pytest.fixture()
def cache(engine, clock) -> CacheStore:
    store = CacheStore(engine, clock=clock.datetime)
    store.ensure_schema()
    return store


@pytest.fixture()
def rate_limiter(clock) -> RateLimiter:
    return RateLimiter(MemoryCounterStore(clock=clock.monotonic), max_requests=5, window_seconds=60)


@pytest.fixture()
def crawl_result() -> CrawlResult:
    return CrawlResult(pages=[
        CrawledPage(
            source_url="https://example.com",
            links_on_page=["https://example.com/about", "https://example.com/pricing"],
        ),
        CrawledPage(
            source_url="https://example.com/about",
            links_on_page=["https://example.com"],
        ),
    ])


@pytest.fixture()
def crawler(crawl_result) -> FakeCrawler:
    return FakeCrawler(crawl_result)


@pytest.fixture()
def scraper() -> FakeScraper:
    return FakeScraper()


@pytest.fixture()
def orchestrator(cache, crawler, scraper) -> CrawlOrchestrator:
    return CrawlOrchestrator(cache=cache, crawler=crawler, scraper=scraper, sleep=no_sleep)
