"""
Site Reader - crawl a site, scrape its pages, cache the text

FastAPI service that:
- Crawls a submitted URL via Crawl4AI (up to a page limit)
- Scrapes every discovered page into main-content markdown, with retry
- Caches the aggregate result for 7 days in a SQL table
- Rate limits clients with a per-address counter (Redis or in-process)
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from site_reader import __version__
from site_reader.config import Settings, get_settings
from site_reader.errors import InputError, RateLimitError, SiteReaderError
from site_reader.models.schemas import CrawlRequest, CrawlResponse, ErrorResponse, HealthResponse
from site_reader.orchestrator import CrawlOrchestrator, build_orchestrator
from site_reader.utils.cache import CacheStore
from site_reader.utils.rate_limiter import MemoryCounterStore, RateLimiter, RedisCounterStore

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Service start time for uptime tracking
start_time = time.time()


def error_response(error: SiteReaderError, headers: Optional[dict] = None) -> JSONResponse:
    """Opaque JSON error body; the cause stays in the log."""
    return JSONResponse(
        status_code=error.status_code,
        content=ErrorResponse(error=error.public_message).model_dump(),
        headers=headers,
    )


def client_identifier(request: Request) -> str:
    """Client IP, or the first X-Forwarded-For address when behind a proxy."""
    client_ip = request.headers.get("X-Forwarded-For", request.client.host if request.client else "unknown")
    return client_ip.split(",")[0].strip() or "unknown"


# ============================================================================
# Rate Limiting
# ============================================================================

class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware applying the rate limiter to crawl requests."""

    def __init__(self, app, rate_limiter: RateLimiter, paths: tuple[str, ...] = ("/crawl",)):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.paths = paths

    async def dispatch(self, request: Request, call_next):
        # Health checks, service info and CORS preflights are never limited
        if request.url.path not in self.paths or request.method == "OPTIONS":
            return await call_next(request)

        client_id = client_identifier(request)

        try:
            decision = await self.rate_limiter.check(client_id)
        except Exception:
            logger.exception(f"Rate limit check failed for {client_id}")
            return error_response(SiteReaderError())

        if not decision.allowed:
            retry_after = self.rate_limiter.window_seconds
            return error_response(
                RateLimitError(retry_after=retry_after, remaining=decision.remaining),
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Remaining": str(decision.remaining),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response


# ============================================================================
# Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    logger.info("Starting Site Reader service...")
    cache = app.state.cache
    if isinstance(cache, CacheStore):
        cache.ensure_schema()
        await cache.cleanup_expired()
    logger.info("Site Reader service ready")
    yield
    logger.info("Shutting down Site Reader service...")
    await app.state.rate_limiter.close()
    if isinstance(cache, CacheStore):
        cache.close()


# ============================================================================
# FastAPI App
# ============================================================================

def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.redis_url:
        store = RedisCounterStore.from_url(settings.redis_url)
        logger.info("Rate limiting with Redis counter store")
    else:
        store = MemoryCounterStore()
        logger.info("Rate limiting with in-process counter store (REDIS_URL not set)")

    return RateLimiter(
        store,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[CrawlOrchestrator] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (read from the environment if omitted)
        orchestrator: Crawl orchestrator (built from settings if omitted)
        rate_limiter: Rate limiter (built from settings if omitted)
    """
    settings = settings or get_settings()

    if orchestrator is None:
        cache = CacheStore.from_url(settings.database_url, default_ttl_days=settings.cache_ttl_days)
        orchestrator = build_orchestrator(settings, cache)
    rate_limiter = rate_limiter or build_rate_limiter(settings)

    app = FastAPI(
        title="Site Reader",
        description="Crawl a site, scrape its pages to markdown and cache the result",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.cache = orchestrator.cache
    app.state.rate_limiter = rate_limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Rate limiting runs before body validation and the cache lookup
    app.add_middleware(RateLimitMiddleware, rate_limiter=rate_limiter)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected invalid input on {request.url.path}: {exc.errors()}")
        return error_response(InputError())

    # ========================================================================
    # Health Check
    # ========================================================================

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            uptime_seconds=time.time() - start_time,
            version=__version__,
        )

    # ========================================================================
    # Crawl Endpoint
    # ========================================================================

    @app.post(
        "/crawl",
        response_model=CrawlResponse,
        responses={
            400: {"model": ErrorResponse},
            429: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    async def crawl(body: CrawlRequest, request: Request, response: Response):
        """
        Crawl a site and return the main-content markdown of every page.

        Results are cached per URL for 7 days; cache hits skip crawling.
        """
        logger.info(f"Crawl requested: {body.url} (limit={body.limit})")

        try:
            scraped, cached = await request.app.state.orchestrator.run(body)
        except Exception:
            logger.exception(f"Error during crawl and scrape of {body.url}")
            return error_response(SiteReaderError())

        response.headers["X-Cache"] = "HIT" if cached else "MISS"
        return CrawlResponse(scraped_content=scraped)

    # ========================================================================
    # Root
    # ========================================================================

    @app.get("/")
    async def root():
        """Root endpoint with service info."""
        return {
            "service": "Site Reader",
            "version": __version__,
            "status": "running",
            "endpoints": [
                "/health",
                "/crawl",
            ],
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
