"""Exception hierarchy shared by the catalog parsing pipeline."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional


# Custom Exception Classes
class ScraperError(Exception):
    """Base exception for all scraper errors"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(ScraperError):
    """Configuration-related errors"""

    pass


class UpstreamFetchError(ScraperError):
    """The catalog category tree could not be retrieved or decoded."""

    pass


class RateLimitedError(ScraperError):
    """Upstream answered 429. Only used as an internal retry signal."""

    def __init__(self, page_number: int, attempt: int):
        super().__init__(
            f"Rate limited on page {page_number} (attempt {attempt})",
            {"page_number": page_number, "attempt": attempt},
        )
        self.page_number = page_number
        self.attempt = attempt


class ScrapeFatalError(ScraperError):
    """A catalog page could not be fetched; pagination must stop."""

    def __init__(
        self,
        message: str,
        *,
        page_number: int,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(
            message,
            {"page_number": page_number, "status_code": status_code},
        )
        self.page_number = page_number
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_failure(
        cls,
        page_number: int,
        error: Exception,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
    ) -> "ScrapeFatalError":
        """Build the user-facing message the way it is shown in the progress chat."""
        message = f"Error fetching data for page {page_number}: {error}"
        if status_code is not None:
            message += f"\nStatus: {status_code}"
            if body:
                message += f"\nServer response: {describe_body(body)}"
        return cls(message, page_number=page_number, status_code=status_code, body=body)


class EnrichmentError(ScraperError):
    """The keyword clustering service failed on every attempt."""

    pass


def describe_body(body: Any, limit: int = 500) -> str:
    """Render a response body for error messages, truncated to ``limit`` chars."""
    if isinstance(body, (dict, list)):
        text = json.dumps(body, ensure_ascii=False)
    else:
        text = str(body)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
