"""Parsing session orchestrator."""

from __future__ import annotations

import time
from typing import Callable, List, Optional

from core.category_resolver import CatalogCategoryResolver
from core.paginated_scraper import PaginatedScraper
from core.progress import ProgressHub
from core.session_registry import SessionRegistry
from core.types import (
    ReportExporter,
    ReportRow,
    ResolvedCategory,
    SessionOutcome,
    SessionPhase,
    UserID,
)
from network.enrichment_client import EnrichmentClient
from utils.config_loader import Settings, get_settings
from utils.error_handling import ScraperError, UpstreamFetchError
from utils.logger import get_logger

logger = get_logger(__name__)

ALREADY_RUNNING_MESSAGE = "⏳ Parsing is already running. Please wait for it to finish."

NO_FREQUENCY_MESSAGE = (
    "📊 Products were found, but all of them have a search frequency of 0.\n"
    "These products are probably rarely searched for or new to the catalog."
)


class ParsingSession:
    """Run category parsing for users, at most one run per user at a time.

    One instance serves every user of the process; per-user state lives in
    the ``SessionRegistry`` and the ``ProgressHub``.
    """

    def __init__(
        self,
        *,
        resolver_factory: Callable[[], CatalogCategoryResolver],
        scraper: PaginatedScraper,
        enrichment: EnrichmentClient,
        exporter: ReportExporter,
        hub: ProgressHub,
        registry: Optional[SessionRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.resolver_factory = resolver_factory
        self.scraper = scraper
        self.enrichment = enrichment
        self.exporter = exporter
        self.hub = hub
        self.registry = registry or SessionRegistry()
        self.settings = settings or get_settings()

    def is_active(self, user_id: UserID) -> bool:
        return self.registry.is_active(user_id)

    def reserve(self, user_id: UserID) -> bool:
        """Claim ``user_id`` for a new run and reset its event history.

        Returns False when the user already has a run. A transport that
        reserves before acknowledging the request passes ``reserved=True``
        to ``start``/``run`` afterwards.
        """
        if not self.registry.try_acquire(user_id):
            return False
        self.hub.begin(user_id)
        return True

    async def start(self, user_id: UserID, url: str, *, reserved: bool = False) -> bool:
        """Parse the category behind ``url`` for ``user_id``.

        Returns True when the run reached reporting (including the
        "no frequency" outcome), False when the user already has a run, the
        category was not found, or the run failed.
        """
        outcome = await self.run(user_id, url, reserved=reserved)
        return outcome.succeeded

    async def run(self, user_id: UserID, url: str, *, reserved: bool = False) -> SessionOutcome:
        if not reserved and not self.reserve(user_id):
            logger.info(f"Parsing already in progress for user {user_id}")
            await self.hub.notify_user(user_id, ALREADY_RUNNING_MESSAGE)
            return SessionOutcome.ALREADY_RUNNING

        started = time.monotonic()
        outcome = SessionOutcome.FAILED
        try:
            outcome = await self._run(user_id, url)
        except Exception as exc:
            logger.exception(f"Parsing error: {exc}")
            await self.hub.notify_user(user_id, f"❌ Parsing failed: {exc}", is_error=True)
            outcome = SessionOutcome.FAILED
        finally:
            self.registry.release(user_id)
            self.hub.clear(user_id)
            logger.info(f"Total parsing time: {time.monotonic() - started:.2f} seconds")

        await self.hub.finish(user_id, outcome)
        return outcome

    async def _run(self, user_id: UserID, url: str) -> SessionOutcome:
        self.registry.set_phase(user_id, SessionPhase.RESOLVING)
        resolver = self.resolver_factory()
        try:
            category = await resolver.resolve(url)
        except UpstreamFetchError as exc:
            self.registry.set_phase(user_id, SessionPhase.FAILED)
            await self.hub.notify_user(
                user_id, f"❌ Error while looking up the category: {exc}", is_error=True
            )
            return SessionOutcome.FAILED

        if category is None:
            logger.warning("Category not found. Check the URL.")
            self.registry.set_phase(user_id, SessionPhase.DONE)
            await self.hub.notify_user(user_id, "❌ Category not found.", is_error=True)
            return SessionOutcome.NOT_FOUND

        rows = await self._collect_rows(user_id, category)

        self.registry.set_phase(user_id, SessionPhase.REPORTING)
        if not rows:
            await self.hub.notify_user(user_id, NO_FREQUENCY_MESSAGE)
            self.registry.set_phase(user_id, SessionPhase.DONE)
            return SessionOutcome.NO_FREQUENCY_ROWS

        filename = f"{category.name}_analysis_{int(time.time() * 1000)}"
        try:
            location = await self.exporter.export(rows, filename)
            await self.exporter.deliver(location, user_id)
        except Exception as exc:
            logger.error(f"Failed to deliver report to user {user_id}: {exc}")
            self.registry.set_phase(user_id, SessionPhase.FAILED)
            await self.hub.notify_user(
                user_id, f"❌ Error while sending the file: {exc}", is_error=True
            )
            return SessionOutcome.FAILED

        self.registry.set_phase(user_id, SessionPhase.DONE)
        return SessionOutcome.REPORTED

    async def _collect_rows(self, user_id: UserID, category: ResolvedCategory) -> List[ReportRow]:
        """Walk pages in order until one is empty, unusable, or fails.

        A failing page ends the walk but keeps what earlier pages collected.
        """
        rows: List[ReportRow] = []

        for page in range(1, self.settings.max_pages + 1):
            try:
                self.registry.set_phase(user_id, SessionPhase.PAGING, page)
                result = await self.scraper.scrape_page_queued(page, category, user_id)
                await self.hub.notify(
                    user_id, f"Page {page}: received {len(result.product_names)} products"
                )
                if result.is_empty:
                    logger.info(f"Page {page}: no products found, stopping parsing.")
                    break

                self.registry.set_phase(user_id, SessionPhase.ENRICHING, page)
                page_rows = await self.enrichment.enrich(result.product_names)
                if page_rows is None:
                    # An unusable page ends the whole run, even if later pages
                    # might still have data.
                    logger.info(f"Page {page}: no keyword statistics, stopping parsing.")
                    break
                rows.extend(page_rows)
            except ScraperError as exc:
                await self.hub.notify_user(user_id, f"❌ {exc}", is_error=True)
                break
            except Exception as exc:
                # Rows of earlier pages still go to the report.
                logger.exception(f"Unexpected error on page {page}: {exc}")
                await self.hub.notify_user(
                    user_id, f"❌ Error processing page {page}: {exc}", is_error=True
                )
                break

        return rows
