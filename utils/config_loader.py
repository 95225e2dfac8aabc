"""Configuration using pydantic-settings.

Every retry/backoff constant of the pipeline lives here so tests (and
operators) can shorten intervals without touching code. Defaults match the
values the upstream catalog tolerates in production.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Set

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.error_handling import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Catalog source
    catalog_menu_url: str = (
        "https://static-basket-01.wbbasket.ru/vol0/data/main-menu-ru-ru-v3.json"
    )
    catalog_products_url: str = "https://catalog.wb.ru/catalog"
    catalog_fixed_params: str = "appType=1&curr=rub&dest=-1257786&locale=ru"
    catalog_url_prefix: str = "https://www.wildberries.ru/catalog/"
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"

    # Enrichment source
    enrichment_url: str = "https://evirma.ru/api/v1/keyword/list"
    enrichment_timeout_seconds: float = Field(default=30.0, gt=0)
    enrichment_max_attempts: int = Field(default=3, ge=1)
    enrichment_retry_delay_seconds: float = Field(default=2.0, ge=0)

    # Shared page queue
    queue_concurrency: int = Field(default=2, ge=1)
    queue_interval_seconds: float = Field(default=2.0, ge=0)

    # Page scraping
    max_pages: int = Field(default=50, ge=1)
    scrape_max_attempts: int = Field(default=6, ge=1)
    rate_limit_wait_seconds: float = Field(default=30.0, ge=0)
    page_delay_seconds: float = Field(default=2.0, ge=0)
    long_pause_seconds: float = Field(default=10.0, ge=0)
    long_pause_every_pages: int = Field(default=10, ge=1)

    # Reports
    output_dir: str = "/tmp/output"
    report_retention_seconds: float = Field(default=600.0, ge=0)

    # Progress events
    progress_history_size: int = Field(default=200, ge=1)
    progress_retained_users: int = Field(default=500, ge=0)

    # Access control: comma separated user ids, empty allows everyone
    allowed_user_ids: str = ""

    # API
    cors_origins: List[str] = ["http://localhost:3000"]

    # Logging
    log_level: str = "INFO"
    log_file: str = ""

    @property
    def allowed_users(self) -> Set[int]:
        """Parsed ``allowed_user_ids``; an empty set means no restriction."""
        users: Set[int] = set()
        for chunk in self.allowed_user_ids.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            try:
                users.add(int(chunk))
            except ValueError as exc:
                raise ConfigurationError(
                    f"Invalid user id in ALLOWED_USER_IDS: {chunk!r}",
                    {"allowed_user_ids": self.allowed_user_ids},
                ) from exc
        return users

    @property
    def request_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings
    """
    return Settings()
