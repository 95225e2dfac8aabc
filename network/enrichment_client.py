"""Client for the keyword clustering (search frequency) service."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import httpx

from core.types import JSONContent, ReportRow
from utils.config_loader import Settings, get_settings
from utils.error_handling import EnrichmentError
from utils.logger import get_logger

logger = get_logger(__name__)


def _positive_number(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return int(value)


def parse_keywords(payload: JSONContent) -> List[ReportRow]:
    """Turn a clustering response into report rows.

    Keywords without a cluster, or whose cluster lacks a positive
    ``product_count`` or positive ``freq_syn.monthly``, are dropped.
    Response order is preserved.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    keywords = data.get("keywords") if isinstance(data, dict) else None
    if not isinstance(keywords, dict):
        return []

    rows: List[ReportRow] = []
    for keyword, keyword_data in keywords.items():
        cluster = keyword_data.get("cluster") if isinstance(keyword_data, dict) else None
        if not isinstance(cluster, dict):
            continue
        freq_syn = cluster.get("freq_syn")
        product_count = _positive_number(cluster.get("product_count"))
        monthly = _positive_number(freq_syn.get("monthly") if isinstance(freq_syn, dict) else None)
        if product_count is None or monthly is None:
            continue
        rows.append(
            ReportRow(term=keyword, product_count=product_count, monthly_frequency=monthly)
        )
    return rows


class EnrichmentClient:
    """Batch product names to the clustering service, retrying failed calls."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.headers = self.settings.request_headers
        self._sleep = sleep

    async def enrich(self, product_names: Sequence[str]) -> Optional[List[ReportRow]]:
        """Cluster statistics for one page of product names.

        Returns:
            The usable rows, or None when no keyword has usable statistics;
            callers treat None as "stop paginating".

        Raises:
            EnrichmentError: after ``enrichment_max_attempts`` failed calls.
        """
        payload = await self.query(list(product_names))
        rows = parse_keywords(payload)
        if not rows:
            logger.info(
                f"No keyword of {len(product_names)} has usable statistics",
                extra={"stage": "enrich"},
            )
            return None
        return rows

    async def query(self, keywords: List[str]) -> JSONContent:
        """POST the keywords and return the decoded JSON body."""
        max_attempts = self.settings.enrichment_max_attempts
        timeout = self.settings.enrichment_timeout_seconds
        request_body = {"keywords": keywords, "an": False}

        for attempt in range(1, max_attempts + 1):
            try:
                response = await asyncio.wait_for(
                    self.client.post(
                        self.settings.enrichment_url,
                        json=request_body,
                        headers=self.headers,
                        timeout=timeout,
                    ),
                    timeout=timeout,
                )
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as exc:
                reason = str(exc) or type(exc).__name__
                if attempt >= max_attempts:
                    message = f"Error querying the keyword frequency API: {reason}"
                    logger.error(message, extra={"stage": "enrich"})
                    raise EnrichmentError(message, {"attempts": attempt}) from exc
                logger.warning(
                    f"Keyword frequency API attempt {attempt}/{max_attempts} failed: {reason}",
                    extra={"stage": "enrich"},
                )
                await self._sleep(self.settings.enrichment_retry_delay_seconds)

        raise EnrichmentError("Keyword frequency API was not called")
