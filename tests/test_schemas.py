# File: tests/test_schemas.py
import pytest
from pydantic import ValidationError

from site_reader.models.schemas import CrawlRequest, CrawlResponse, ScrapedPage, ScrapeResult, ScrapeStatus


def test_defaults_limit_to_ten():
    request = CrawlRequest(url="https://example.com")
    assert request.limit == 10


def test_url_is_kept_verbatim():
    url = "https://Example.com/docs/?q=1"
    assert CrawlRequest(url=url).url == url


@pytest.mark.parametrize("limit", [1, 50, 100])
def test_accepts_limits_in_range(limit):
    assert CrawlRequest(url="https://example.com", limit=limit).limit == limit


@pytest.mark.parametrize("limit", [0, -1, 101, 1000])
def test_rejects_limits_out_of_range(limit):
    with pytest.raises(ValidationError):
        CrawlRequest(url="https://example.com", limit=limit)


def test_accepts_integral_float_limit():
    assert CrawlRequest(url="https://example.com", limit=5.0).limit == 5


@pytest.mark.parametrize("limit", ["10", 2.5, True, None])
def test_rejects_non_integer_limits(limit):
    with pytest.raises(ValidationError):
        CrawlRequest(url="https://example.com", limit=limit)


@pytest.mark.parametrize("url", [
    "example.com",
    "/relative/path",
    "ftp://example.com/file",
    "https://",
    "not a url",
    "http://example.com:notaport/",
])
def test_rejects_malformed_urls(url):
    with pytest.raises(ValidationError):
        CrawlRequest(url=url)


@pytest.mark.parametrize("url", [
    "http://localhost:8000/",
    "http://127.0.0.1/",
    "http://10.0.0.5/admin",
    "http://192.168.1.1/",
    "http://169.254.169.254/latest/meta-data",
    "http://[::1]/",
])
def test_rejects_internal_hosts(url):
    with pytest.raises(ValidationError):
        CrawlRequest(url=url)


def test_crawl_response_serializes_with_camel_case_key():
    response = CrawlResponse(scraped_content=[ScrapedPage(url="https://example.com", markdown="# Hi")])
    assert response.model_dump(by_alias=True) == {
        "scrapedContent": [{"url": "https://example.com", "markdown": "# Hi"}],
    }


def test_scrape_result_ok_only_on_success():
    assert ScrapeResult(url="u", status=ScrapeStatus.SUCCESS).ok
    assert not ScrapeResult(url="u", status=ScrapeStatus.RETRYABLE).ok
    assert not ScrapeResult(url="u", status=ScrapeStatus.TERMINAL).ok
