"""Application settings from environment variables."""

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Storage
    database_url: str = "sqlite:///crawl_cache.db"
    redis_url: str = ""  # Empty uses the in-process counter store

    # Rate limiting
    rate_limit_requests: int = 5
    rate_limit_window_seconds: int = 60

    # Caching
    cache_ttl_days: int = 7

    # Scraping
    scrape_max_attempts: int = 3
    scrape_retry_delay_seconds: float = 1.0
    scrape_wait_for_ms: int = 5000
    page_timeout_ms: int = 60000
    max_concurrent_scrapes: int = 5  # Browsers open at once; 0 = unbounded
    dedupe_scrape_urls: bool = True
    headless: bool = True

    # HTTP
    cors_allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


def get_settings() -> Settings:
    return Settings()
