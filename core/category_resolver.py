"""Match a catalog URL typed by a user to a node of the category tree."""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import parse_qs, urlsplit

from core.types import CategoryNode, ResolvedCategory
from network.catalog_client import CatalogClient
from utils.logger import get_logger

logger = get_logger(__name__)

# Order matters: parameters are appended to the category query in this order.
FILTER_KEYS = ("priceU", "xsubject", "fbrand", "fsupplier", "sort")
DEFAULT_SORT = "popular"


def iter_category_nodes(tree: Any) -> Iterator[CategoryNode]:
    """Walk a category tree depth-first, parents before their children.

    ``tree`` may be a single node or a list of nodes; lists may nest.
    A mapping becomes a node only if it has both ``name`` and ``url``, but
    its ``childs`` are visited either way.
    """
    if isinstance(tree, list):
        for item in tree:
            yield from iter_category_nodes(item)
        return

    if not isinstance(tree, dict):
        return

    if "name" in tree and "url" in tree:
        yield CategoryNode(
            name=tree["name"],
            url=tree["url"],
            shard=tree.get("shard") or None,
            query=tree.get("query") or None,
        )

    childs = tree.get("childs")
    if isinstance(childs, list):
        yield from iter_category_nodes(childs)


def flatten_category_tree(tree: Any) -> List[CategoryNode]:
    return list(iter_category_nodes(tree))


def normalize_catalog_path(path: str) -> str:
    """Lowercase and drop trailing slashes, so ``/A/b/`` equals ``/a/b``."""
    return path.lower().rstrip("/")


def extract_filter_params(url: str) -> Dict[str, str]:
    """Recognized filter parameters of ``url``, in append order.

    Blank values count as absent; ``sort`` falls back to ``popular``.
    """
    query = parse_qs(urlsplit(url).query)
    params: Dict[str, str] = {}
    for key in FILTER_KEYS:
        values = query.get(key)
        if values and values[0]:
            params[key] = values[0]
    params.setdefault("sort", DEFAULT_SORT)
    return {key: params[key] for key in FILTER_KEYS if key in params}


def merge_query(base_query: Optional[str], filters: Dict[str, str]) -> str:
    parts = [base_query] if base_query else []
    parts.extend(f"{key}={value}" for key, value in filters.items())
    return "&".join(parts)


class CatalogCategoryResolver:
    """Resolve catalog URLs against a lazily fetched category tree.

    The tree is downloaded on the first ``resolve`` call and reused for the
    lifetime of the resolver; create one resolver per parsing session.
    """

    def __init__(self, catalog: CatalogClient):
        self.catalog = catalog
        self._categories: Optional[List[CategoryNode]] = None

    async def categories(self) -> List[CategoryNode]:
        if self._categories is None:
            tree = await self.catalog.fetch_category_tree()
            self._categories = flatten_category_tree(tree)
            logger.info(
                f"Extracted {len(self._categories)} categories",
                extra={"stage": "resolve"},
            )
        return self._categories

    async def resolve(self, url: str) -> Optional[ResolvedCategory]:
        """Find the category behind ``url`` and merge its filter parameters.

        Returns None when no category has this path.

        Raises:
            UpstreamFetchError: if the category tree cannot be fetched.
        """
        path = normalize_catalog_path(urlsplit(url).path)
        filters = extract_filter_params(url)
        logger.info(
            f"Searching for category with URL: {path}\nFilter params: {filters}",
            extra={"stage": "resolve"},
        )

        for category in await self.categories():
            if normalize_catalog_path(category.url) == path:
                logger.info(
                    f"Found category: {category.name}", extra={"stage": "resolve"}
                )
                return category.with_query(merge_query(category.query, filters))

        logger.warning("Category not found in catalog", extra={"stage": "resolve"})
        return None
