"""Cache store for scraped site content in a SQL table."""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from site_reader.errors import CacheError
from site_reader.models.schemas import CacheEntry, ScrapedPage

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC timestamp; lexical order matches time order."""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class CacheStore:
    """
    Cache store keyed by the request URL.

    Features:
    - TTL-based expiration filtered at read time
    - One row per URL (primary key + upsert)
    - JSON-serialized list of scraped pages
    """

    def __init__(
        self,
        engine: Engine,
        default_ttl_days: int = 7,
        table_name: str = "crawled_results",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize cache store.

        Args:
            engine: SQLAlchemy engine
            default_ttl_days: Default cache TTL in days
            table_name: Name of the cache table
            clock: Returns the current UTC time (injectable for tests)
        """
        self.engine = engine
        self.default_ttl = timedelta(days=default_ttl_days)
        self.table_name = table_name
        self._clock = clock or _utcnow

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "CacheStore":
        return cls(create_engine(database_url, future=True), **kwargs)

    def ensure_schema(self) -> None:
        """Create the cache table if missing."""
        try:
            with self.engine.begin() as conn:
                conn.execute(text(
                    f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
                    "url TEXT PRIMARY KEY, "
                    "content TEXT NOT NULL, "
                    "created_at TEXT NOT NULL, "
                    "expires_at TEXT NOT NULL)"
                ))
        except SQLAlchemyError as e:
            raise CacheError(f"Cache schema setup failed: {e}") from e

    async def get(self, url: str) -> Optional[CacheEntry]:
        """
        Get cached content for an exact URL.

        Returns:
            The cache entry, or None if not found/expired
        """
        now = format_timestamp(self._clock())

        try:
            row = await asyncio.to_thread(self._select_live, url, now)  # Non-blocking
        except SQLAlchemyError as e:
            raise CacheError(f"Cache get failed for {url}: {e}") from e

        if row is None:
            logger.debug(f"Cache miss: {url}")
            return None

        logger.debug(f"Cache hit: {url}")
        return CacheEntry(
            url=row.url,
            content=[ScrapedPage(**page) for page in json.loads(row.content)],
            expires_at=parse_timestamp(row.expires_at),
        )

    async def put(
        self,
        url: str,
        content: list[ScrapedPage],
        ttl: Optional[timedelta] = None,
    ) -> CacheEntry:
        """
        Store content for a URL, replacing any previous row.

        Args:
            url: Request URL (cache key)
            content: Scraped pages to cache
            ttl: Custom TTL (uses default if not provided)
        """
        ttl = ttl or self.default_ttl
        now = self._clock()
        expires_at = now + ttl
        params = {
            "url": url,
            "content": json.dumps([page.model_dump() for page in content]),
            "created_at": format_timestamp(now),
            "expires_at": format_timestamp(expires_at),
        }

        try:
            await asyncio.to_thread(self._upsert, params)  # Non-blocking
        except SQLAlchemyError as e:
            raise CacheError(f"Cache put failed for {url}: {e}") from e

        logger.debug(f"Cached: {url} ({len(content)} pages, TTL: {ttl})")
        return CacheEntry(url=url, content=content, expires_at=expires_at)

    async def invalidate(self, url: str) -> bool:
        """
        Invalidate the cache entry for a URL.

        Returns:
            True if an entry was found and deleted
        """
        try:
            deleted = await asyncio.to_thread(
                self._delete, f"DELETE FROM {self.table_name} WHERE url = :url", {"url": url}
            )
        except SQLAlchemyError as e:
            raise CacheError(f"Cache invalidate failed for {url}: {e}") from e

        return deleted > 0

    async def cleanup_expired(self) -> int:
        """
        Remove all expired cache entries.

        Returns:
            Number of entries removed
        """
        now = format_timestamp(self._clock())

        try:
            deleted = await asyncio.to_thread(
                self._delete, f"DELETE FROM {self.table_name} WHERE expires_at <= :now", {"now": now}
            )
        except SQLAlchemyError as e:
            raise CacheError(f"Cache cleanup failed: {e}") from e

        logger.info(f"Cleaned up {deleted} expired cache entries")
        return deleted

    def close(self) -> None:
        self.engine.dispose()

    # Blocking engine calls, run in a worker thread

    def _select_live(self, url: str, now: str):
        with self.engine.connect() as conn:
            return conn.execute(
                text(
                    f"SELECT url, content, expires_at FROM {self.table_name} "
                    "WHERE url = :url AND expires_at > :now"
                ),
                {"url": url, "now": now},
            ).first()

    def _upsert(self, params: dict) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"INSERT INTO {self.table_name} (url, content, created_at, expires_at) "
                    "VALUES (:url, :content, :created_at, :expires_at) "
                    "ON CONFLICT (url) DO UPDATE SET "
                    "content = excluded.content, "
                    "created_at = excluded.created_at, "
                    "expires_at = excluded.expires_at"
                ),
                params,
            )

    def _delete(self, statement: str, params: dict) -> int:
        with self.engine.begin() as conn:
            return conn.execute(text(statement), params).rowcount
