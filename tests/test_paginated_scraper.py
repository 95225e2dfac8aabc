"""Tests for page scraping: 429 retries, fatal errors and pacing."""

from __future__ import annotations

import httpx
import pytest

from conftest import PRODUCTS_URL, json_response, make_settings, mock_client, products_payload
from core.paginated_scraper import PaginatedScraper
from core.task_queue import RateLimitedTaskQueue
from core.types import CategoryNode
from network.catalog_client import CatalogClient
from utils.error_handling import ScrapeFatalError


CATEGORY = CategoryNode(name="Vannaya", url="/catalog/dom/vannaya", shard="bl_shard", query="cat=9&sort=popular")


def _scraper(handler, notifier, sleep, **overrides) -> PaginatedScraper:
    settings = make_settings(
        rate_limit_wait_seconds=30, page_delay_seconds=2, long_pause_seconds=10, **overrides
    )
    catalog = CatalogClient(mock_client(handler), settings)
    return PaginatedScraper(
        catalog,
        notifier,
        RateLimitedTaskQueue(2, 0),
        settings,
        sleep=sleep,
    )


class _Sequence:
    """Serve a fixed list of responses, one per request."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


@pytest.mark.asyncio
async def test_page_url_carries_shard_page_and_merged_query(notifier, recording_sleep) -> None:
    upstream = _Sequence(json_response(products_payload("A")))
    scraper = _scraper(upstream, notifier, recording_sleep)

    await scraper.scrape_page(3, CATEGORY, user_id=1)

    url = upstream.requests[0].url
    assert str(url).startswith(f"{PRODUCTS_URL}/bl_shard/catalog?")
    assert url.params["page"] == "3"
    assert url.params["spp"] == "0"
    assert url.params["appType"] == "1"
    assert url.params["cat"] == "9"


@pytest.mark.asyncio
async def test_two_rate_limits_then_success(notifier, recording_sleep) -> None:
    upstream = _Sequence(
        httpx.Response(429),
        httpx.Response(429),
        json_response(products_payload("A")),
    )
    scraper = _scraper(upstream, notifier, recording_sleep)

    result = await scraper.scrape_page(1, CATEGORY, user_id=7)

    assert result.page_number == 1
    assert result.product_names == ["A"]
    assert len(upstream.requests) == 3
    # two 30s rate-limit waits, then the regular 2s pacing
    assert recording_sleep.calls == [30, 30, 2]
    assert len(notifier.messages) == 2
    assert all(user_id == 7 and not is_error for user_id, _, is_error in notifier.messages)
    assert [line for _, line in notifier.lines] == [
        "Requesting data for page 1, attempt: 2",
        "Requesting data for page 1, attempt: 3",
    ]


@pytest.mark.asyncio
async def test_sustained_rate_limit_fails_after_six_attempts(notifier, recording_sleep) -> None:
    upstream = _Sequence(*(httpx.Response(429) for _ in range(10)))
    scraper = _scraper(upstream, notifier, recording_sleep)

    with pytest.raises(ScrapeFatalError) as exc_info:
        await scraper.scrape_page(4, CATEGORY, user_id=1)

    assert len(upstream.requests) == 6
    assert recording_sleep.calls == [30] * 5
    assert exc_info.value.page_number == 4
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_server_error_fails_without_retry(notifier, recording_sleep) -> None:
    upstream = _Sequence(json_response({"error": "overloaded"}, status_code=500))
    scraper = _scraper(upstream, notifier, recording_sleep)

    with pytest.raises(ScrapeFatalError) as exc_info:
        await scraper.scrape_page(2, CATEGORY, user_id=1)

    error = exc_info.value
    assert len(upstream.requests) == 1
    assert recording_sleep.calls == []
    assert error.status_code == 500
    assert error.body == {"error": "overloaded"}
    assert "page 2" in str(error)
    assert "overloaded" in str(error)


@pytest.mark.asyncio
async def test_network_error_fails_without_retry(notifier, recording_sleep) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    scraper = _scraper(handler, notifier, recording_sleep)

    with pytest.raises(ScrapeFatalError) as exc_info:
        await scraper.scrape_page(1, CATEGORY, user_id=1)

    assert exc_info.value.status_code is None
    assert notifier.messages == []


@pytest.mark.asyncio
async def test_every_tenth_page_pauses_longer(notifier, recording_sleep) -> None:
    upstream = _Sequence(
        json_response(products_payload("A")),
        json_response(products_payload("B")),
    )
    scraper = _scraper(upstream, notifier, recording_sleep)

    await scraper.scrape_page(9, CATEGORY, user_id=1)
    await scraper.scrape_page(10, CATEGORY, user_id=1)

    assert recording_sleep.calls == [2, 10]


@pytest.mark.asyncio
async def test_empty_page_and_unnamed_products(notifier, recording_sleep) -> None:
    upstream = _Sequence(
        json_response({"data": {"products": [{"id": 1}, {"id": 2, "name": "Named"}]}}),
        json_response({"data": {}}),
    )
    scraper = _scraper(upstream, notifier, recording_sleep)

    first = await scraper.scrape_page(1, CATEGORY, user_id=1)
    second = await scraper.scrape_page(2, CATEGORY, user_id=1)

    assert first.product_names == ["Named"]
    assert second.is_empty


@pytest.mark.asyncio
async def test_queued_scrape_goes_through_queue(notifier, recording_sleep) -> None:
    upstream = _Sequence(json_response(products_payload("A", "B")))
    scraper = _scraper(upstream, notifier, recording_sleep)
    submitted = []
    original_submit = scraper.queue.submit

    async def spy_submit(task):
        submitted.append(task)
        return await original_submit(task)

    scraper.queue.submit = spy_submit

    result = await scraper.scrape_page_queued(1, CATEGORY, user_id=1)

    assert result.product_names == ["A", "B"]
    assert len(submitted) == 1


@pytest.mark.asyncio
async def test_malformed_page_payload_reads_as_empty(notifier, recording_sleep) -> None:
    upstream = _Sequence(
        json_response({"data": ["unexpected"]}),
        json_response({"data": {"products": {"name": "not a list"}}}),
    )
    scraper = _scraper(upstream, notifier, recording_sleep)

    first = await scraper.scrape_page(1, CATEGORY, user_id=1)
    second = await scraper.scrape_page(2, CATEGORY, user_id=1)

    assert first.is_empty
    assert second.is_empty
