"""Shared fixtures: fast settings, recording sleep and upstream HTTP fakes."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from core.progress import ProgressHub
from utils.config_loader import Settings


MENU_URL = "https://menu.test/main-menu.json"
PRODUCTS_URL = "https://catalog.test/catalog"
ENRICHMENT_URL = "https://enrichment.test/api/v1/keyword/list"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "catalog_menu_url": MENU_URL,
        "catalog_products_url": PRODUCTS_URL,
        "enrichment_url": ENRICHMENT_URL,
        "queue_interval_seconds": 0,
        "rate_limit_wait_seconds": 0,
        "page_delay_seconds": 0,
        "long_pause_seconds": 0,
        "enrichment_retry_delay_seconds": 0,
        "enrichment_timeout_seconds": 5,
        "report_retention_seconds": 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class RecordingNotifier:
    """Progress/message sink collecting everything it is told."""

    def __init__(self) -> None:
        self.lines: List[tuple[int, str]] = []
        self.messages: List[tuple[int, str, bool]] = []

    async def notify(self, user_id: int, line: str) -> None:
        self.lines.append((user_id, line))

    async def notify_user(self, user_id: int, text: str, is_error: bool = False) -> None:
        self.messages.append((user_id, text, is_error))


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
        headers={"content-type": "application/json"},
    )


def products_payload(*names: str) -> Dict[str, Any]:
    return {"data": {"products": [{"id": index, "name": name} for index, name in enumerate(names)]}}


def keywords_payload(stats: Dict[str, Optional[tuple[int, int]]]) -> Dict[str, Any]:
    keywords: Dict[str, Any] = {}
    for keyword, values in stats.items():
        if values is None:
            keywords[keyword] = {"cluster": None}
        else:
            product_count, monthly = values
            keywords[keyword] = {
                "cluster": {"product_count": product_count, "freq_syn": {"monthly": monthly}}
            }
    return {"data": {"keywords": keywords}}


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def hub() -> ProgressHub:
    return ProgressHub()
