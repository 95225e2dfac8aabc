"""Fetch catalog pages of a resolved category, one page per call."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx

from core.task_queue import RateLimitedTaskQueue
from core.types import ProgressNotifier, ResolvedCategory, ScrapePageResult, UserID
from network.catalog_client import CatalogClient
from utils.config_loader import Settings, get_settings
from utils.error_handling import RateLimitedError, ScrapeFatalError
from utils.logger import get_logger

logger = get_logger(__name__)

RATE_LIMIT_STATUS = 429

Sleeper = Callable[[float], Awaitable[Any]]


class PaginatedScraper:
    """Scrape one catalog page at a time with 429 retries and request pacing.

    Only HTTP 429 is retried: up to ``scrape_max_attempts`` attempts total,
    ``rate_limit_wait_seconds`` apart, and the user is told about every
    wait. Anything else fails the page at once with ``ScrapeFatalError``.
    After a successful page the call sleeps ``page_delay_seconds`` (or
    ``long_pause_seconds`` on every ``long_pause_every_pages``-th page)
    before returning, which paces the caller's next request.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        notifier: ProgressNotifier,
        queue: Optional[RateLimitedTaskQueue] = None,
        settings: Optional[Settings] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.catalog = catalog
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.queue = queue or RateLimitedTaskQueue(
            self.settings.queue_concurrency, self.settings.queue_interval_seconds
        )
        self._sleep = sleep

    async def scrape_page_queued(
        self, page_number: int, category: ResolvedCategory, user_id: UserID
    ) -> ScrapePageResult:
        """``scrape_page`` admitted through the shared page queue."""
        return await self.queue.submit(
            lambda: self.scrape_page(page_number, category, user_id)
        )

    async def scrape_page(
        self, page_number: int, category: ResolvedCategory, user_id: UserID
    ) -> ScrapePageResult:
        max_attempts = self.settings.scrape_max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                payload = await self._fetch(page_number, category, attempt)
            except RateLimitedError:
                if attempt >= max_attempts:
                    break
                await self._wait_out_rate_limit(page_number, attempt, user_id)
                continue

            names = self.catalog.extract_product_names(payload)
            logger.info(
                f"Page {page_number}: received {len(names)} products",
                extra={"stage": "scrape"},
            )
            await self._pace(page_number)
            return ScrapePageResult(page_number=page_number, product_names=names)

        message = f"Could not fetch data for page {page_number} after {max_attempts} attempts."
        logger.error(message, extra={"stage": "scrape"})
        raise ScrapeFatalError(
            message, page_number=page_number, status_code=RATE_LIMIT_STATUS
        )

    async def _fetch(self, page_number: int, category: ResolvedCategory, attempt: int) -> Any:
        try:
            response = await self.catalog.fetch_page(page_number, category)
        except httpx.HTTPError as exc:
            error = ScrapeFatalError.from_failure(page_number, exc)
            logger.error(error.message, extra={"stage": "scrape"})
            raise error from exc

        if response.status_code == RATE_LIMIT_STATUS:
            raise RateLimitedError(page_number, attempt)

        try:
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            error = ScrapeFatalError.from_failure(
                page_number,
                exc,
                status_code=response.status_code,
                body=_response_body(response),
            )
        except ValueError as exc:
            error = ScrapeFatalError.from_failure(
                page_number, exc, status_code=response.status_code
            )
        logger.error(error.message, extra={"stage": "scrape"})
        raise error

    async def _wait_out_rate_limit(self, page_number: int, attempt: int, user_id: UserID) -> None:
        wait = self.settings.rate_limit_wait_seconds
        await self.notifier.notify_user(
            user_id,
            f"ℹ️ The catalog rate limit was hit, retrying in {wait:g} seconds.",
        )
        await self._sleep(wait)
        await self.notifier.notify(
            user_id,
            f"Requesting data for page {page_number}, attempt: {attempt + 1}",
        )

    async def _pace(self, page_number: int) -> None:
        if page_number % self.settings.long_pause_every_pages == 0:
            logger.info(
                f"Waiting {self.settings.long_pause_seconds:g} seconds after "
                f"{self.settings.long_pause_every_pages} pages...",
                extra={"stage": "scrape"},
            )
            await self._sleep(self.settings.long_pause_seconds)
        else:
            await self._sleep(self.settings.page_delay_seconds)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None
