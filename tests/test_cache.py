# File: tests/test_cache.py
import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, text

from site_reader.errors import CacheError
from site_reader.models.schemas import ScrapedPage
from site_reader.utils.cache import CacheStore, format_timestamp, parse_timestamp

PAGES = [
    ScrapedPage(url="https://example.com", markdown="# Home"),
    ScrapedPage(url="https://example.com/about", markdown=None),
]


def row_count(engine) -> int:
    with engine.connect() as conn:
        return conn.execute(text("SELECT COUNT(*) FROM crawled_results")).scalar_one()


async def test_round_trip_returns_exact_pages(cache):
    await cache.put("https://example.com", PAGES)
    entry = await cache.get("https://example.com")

    assert entry is not None
    assert entry.content == PAGES


async def test_miss_for_unknown_url(cache):
    assert await cache.get("https://example.com") is None


async def test_lookup_is_exact_match(cache):
    await cache.put("https://example.com", PAGES)

    assert await cache.get("https://example.com/") is None
    assert await cache.get("http://example.com") is None
    assert await cache.get("https://example.com?x=1") is None


async def test_entries_expire_after_default_ttl(cache, clock):
    entry = await cache.put("https://example.com", PAGES)
    assert entry.expires_at == clock.now + timedelta(days=7)

    clock.advance(days=6, hours=23)
    assert await cache.get("https://example.com") is not None

    clock.advance(hours=1)
    assert await cache.get("https://example.com") is None


async def test_put_replaces_existing_row(cache, engine, clock):
    await cache.put("https://example.com", PAGES, ttl=timedelta(seconds=1))
    clock.advance(seconds=5)
    newer = [ScrapedPage(url="https://example.com", markdown="# New")]
    await cache.put("https://example.com", newer)

    assert row_count(engine) == 1
    assert (await cache.get("https://example.com")).content == newer


async def test_invalidate(cache):
    await cache.put("https://example.com", PAGES)

    assert await cache.invalidate("https://example.com") is True
    assert await cache.get("https://example.com") is None
    assert await cache.invalidate("https://example.com") is False


async def test_cleanup_expired_only_removes_expired(cache, engine, clock):
    await cache.put("https://old.example.com", PAGES, ttl=timedelta(hours=1))
    await cache.put("https://new.example.com", PAGES)
    clock.advance(hours=2)

    assert await cache.cleanup_expired() == 1
    assert row_count(engine) == 1
    assert await cache.get("https://new.example.com") is not None


def test_timestamps_sort_lexically(clock):
    earlier = format_timestamp(clock.now)
    later = format_timestamp(clock.now + timedelta(microseconds=1))

    assert earlier < later
    assert parse_timestamp(earlier) == clock.now


async def test_database_errors_become_cache_errors(clock):
    store = CacheStore(create_engine("sqlite://", future=True), clock=clock.datetime)

    # Table never created
    with pytest.raises(CacheError):
        await store.get("https://example.com")


async def test_queries_run_off_the_event_loop_thread(cache, monkeypatch):
    threads = []
    select_live = cache._select_live

    def recording_select(url, now):
        threads.append(threading.get_ident())
        return select_live(url, now)

    monkeypatch.setattr(cache, "_select_live", recording_select)
    await cache.put("https://example.com", PAGES)

    assert (await cache.get("https://example.com")).content == PAGES
    assert threads and threads[0] != threading.get_ident()
