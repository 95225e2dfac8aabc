"""
HTTP access to the marketplace catalog: category menu and product pages.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from core.types import CategoryNode, JSONContent
from utils.config_loader import Settings, get_settings
from utils.error_handling import UpstreamFetchError
from utils.logger import get_logger

logger = get_logger(__name__)


class CatalogClient:
    """Thin async wrapper over the catalog endpoints.

    Owns no retry policy: status handling is left to the caller so the
    scraper can decide what is retryable.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.settings = settings or get_settings()
        self.headers: Dict[str, str] = self.settings.request_headers

    async def fetch_category_tree(self) -> Any:
        """Download the full category menu.

        Raises:
            UpstreamFetchError: on transport errors, error statuses or
                a body that is not JSON.
        """
        url = self.settings.catalog_menu_url
        try:
            response = await self.client.get(url, headers=self.headers)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                f"Error fetching catalog menu: {exc}", extra={"stage": "resolve"}
            )
            raise UpstreamFetchError(
                f"Error fetching catalog: {exc}", {"url": url}
            ) from exc

    def build_page_url(self, page_number: int, category: CategoryNode) -> str:
        base = self.settings.catalog_products_url.rstrip("/")
        return (
            f"{base}/{category.shard}/catalog?{self.settings.catalog_fixed_params}"
            f"&page={page_number}&sort=popular&spp=0&{category.query or ''}"
        )

    async def fetch_page(self, page_number: int, category: CategoryNode) -> httpx.Response:
        """GET one product page. The response is returned whatever its status."""
        url = self.build_page_url(page_number, category)
        logger.debug(f"URL : {url}", extra={"stage": "scrape"})
        return await self.client.get(url, headers=self.headers)

    @staticmethod
    def extract_product_names(payload: JSONContent) -> list[str]:
        """Names of the products of a page payload, skipping unnamed ones."""
        data = payload.get("data") if isinstance(payload, dict) else None
        products = data.get("products") if isinstance(data, dict) else None
        if not isinstance(products, list):
            return []
        return [
            product["name"]
            for product in products
            if isinstance(product, dict) and "name" in product
        ]
