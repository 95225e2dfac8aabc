"""FastAPI transport for the catalog frequency parser."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import logging

import httpx

from .routes import health, parse, sse, exports
from core.category_resolver import CatalogCategoryResolver
from core.paginated_scraper import PaginatedScraper
from core.parsing_session import ParsingSession
from core.progress import ProgressHub
from core.session_registry import SessionRegistry
from core.task_queue import RateLimitedTaskQueue
from network.catalog_client import CatalogClient
from network.enrichment_client import EnrichmentClient
from utils.config_loader import Settings, get_settings
from utils.export_writers import XlsxReportExporter
from utils.logger import configure_logging


logger = logging.getLogger(__name__)


def build_state(app: FastAPI, settings: Settings, client: httpx.AsyncClient) -> None:
    """
    Wire the pipeline components into ``app.state``.

    One page queue, one registry and one hub are shared by every session of
    the process; each session gets its own category resolver.
    """
    hub = ProgressHub(settings.progress_history_size, settings.progress_retained_users)
    registry = SessionRegistry()
    page_queue = RateLimitedTaskQueue(
        settings.queue_concurrency, settings.queue_interval_seconds
    )
    catalog = CatalogClient(client, settings)
    exporter = XlsxReportExporter(hub, settings)

    app.state.settings = settings
    app.state.hub = hub
    app.state.exporter = exporter
    app.state.background_tasks = set()
    app.state.parser = ParsingSession(
        resolver_factory=lambda: CatalogCategoryResolver(catalog),
        scraper=PaginatedScraper(catalog, hub, page_queue, settings),
        enrichment=EnrichmentClient(client, settings),
        exporter=exporter,
        hub=hub,
        registry=registry,
        settings=settings,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Handles startup and shutdown events:
        - Startup: configure logging, open the shared HTTP client, build the pipeline
        - Shutdown: cancel running sessions and pending report cleanups, close the client

        Args:
            app: FastAPI application instance
        """
        configure_logging(settings.log_level, settings.log_file)
        logger.info("Starting up...")

        client = httpx.AsyncClient(follow_redirects=True)
        build_state(app, settings, client)

        yield

        logger.info("Shutting down...")
        tasks = list(app.state.background_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await app.state.exporter.aclose()
        await client.aclose()
        logger.info("HTTP client closed")

    app = FastAPI(
        title="Catalog Frequency Parser API",
        version="1.0.0",
        description="""
        Parse marketplace catalog categories and report keyword search frequencies.

        Features:
        - One parsing session per user at a time
        - Live progress via SSE
        - xlsx report download
        """,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(parse.router, prefix="/api/parse", tags=["parse"])
    app.include_router(sse.router, prefix="/api", tags=["sse"])
    app.include_router(exports.router, prefix="/api", tags=["exports"])
    app.include_router(health.router, prefix="/api", tags=["health"])

    @app.get("/")
    def root():
        """
        Root endpoint.

        Returns basic service information.
        """
        return {
            "status": "ok",
            "service": "catalog-frequency-parser",
            "version": "1.0.0",
            "docs": "/api/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
