"""Retry policy for page scrapes.

The policy is a pure function of the last result and the attempt count, so
the loop never relies on exceptions to decide whether to try again.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable

from site_reader.models.schemas import ScrapeResult, ScrapeStatus

logger = logging.getLogger(__name__)


class RetryStep(str, Enum):
    DONE = "done"
    RETRY = "retry"
    FAIL = "fail"


def next_step(result: ScrapeResult, attempt: int, max_attempts: int) -> RetryStep:
    """Decide what to do after ``attempt`` (1-based) produced ``result``."""
    if result.status == ScrapeStatus.SUCCESS:
        return RetryStep.DONE
    if result.status == ScrapeStatus.TERMINAL:
        return RetryStep.FAIL
    if attempt >= max_attempts:
        return RetryStep.FAIL
    return RetryStep.RETRY


async def scrape_with_retry(
    scrape: Callable[[str], Awaitable[ScrapeResult]],
    url: str,
    max_attempts: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ScrapeResult:
    """
    Scrape a URL, retrying retryable failures with a fixed pause.

    Args:
        scrape: Async callable returning a ScrapeResult for a URL
        url: Page URL
        max_attempts: Total attempts including the first
        delay: Seconds to wait between attempts
        sleep: Awaitable sleep (injectable for tests)

    Returns:
        The last ScrapeResult; check ``.ok`` for success
    """
    attempt = 0
    while True:
        attempt += 1
        result = await scrape(url)
        step = next_step(result, attempt, max_attempts)

        if step == RetryStep.DONE:
            return result

        if step == RetryStep.FAIL:
            logger.error(f"Giving up on {url} after {attempt} attempt(s) ({result.status.value}): {result.error}")
            return result

        logger.warning(f"Error scraping {url}, retries left: {max_attempts - attempt}: {result.error}")

        await sleep(delay)
