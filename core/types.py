"""
Base data types for the catalog frequency parser.

Dataclasses and enums shared by the resolver, scraper, enrichment client and
the session orchestrator. Everything here is plain data; no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

# Identifiers
UserID = int
JSONContent = Dict[str, Any]
AsyncTask = Callable[[], Awaitable[T]]


# ============================================================================
# Catalog primitives
# ============================================================================


@dataclass(frozen=True)
class CategoryNode:
    """One flattened node of the catalog category tree."""

    name: str
    url: str
    shard: Optional[str] = None
    query: Optional[str] = None

    def with_query(self, query: str) -> "CategoryNode":
        return replace(self, query=query)


# A resolved category is a node whose query already carries the user's filters.
ResolvedCategory = CategoryNode


@dataclass(frozen=True)
class ScrapePageResult:
    """Product names of one catalog page, in upstream order."""

    page_number: int
    product_names: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.product_names


@dataclass(frozen=True)
class ReportRow:
    """A keyword with its cluster statistics, one line of the final report."""

    term: str
    product_count: int
    monthly_frequency: int


# ============================================================================
# Session state
# ============================================================================


class SessionPhase(str, Enum):
    """Where a parsing session currently is."""

    IDLE = "idle"
    RESOLVING = "resolving"
    PAGING = "paging"
    ENRICHING = "enriching"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class SessionOutcome(str, Enum):
    """Terminal result of ``ParsingSession.run``."""

    ALREADY_RUNNING = "already_running"
    NOT_FOUND = "not_found"
    NO_FREQUENCY_ROWS = "no_frequency_rows"
    REPORTED = "reported"
    FAILED = "failed"

    @property
    def succeeded(self) -> bool:
        return self in (SessionOutcome.NO_FREQUENCY_ROWS, SessionOutcome.REPORTED)


@dataclass
class SessionState:
    """Registry entry of a user's active run."""

    user_id: UserID
    active: bool = True
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    phase: SessionPhase = SessionPhase.IDLE
    page: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "active": self.active,
            "started_at": self.started_at.isoformat(),
            "phase": self.phase.value,
            "page": self.page,
        }


@dataclass
class ProgressLog:
    """Append-only progress lines plus the handle of the message showing them."""

    lines: List[str] = field(default_factory=list)
    handle: Optional[int] = None

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


# ============================================================================
# Progress reporting primitives
# ============================================================================


class EventKind(str, Enum):
    PROGRESS = "progress"
    MESSAGE = "message"
    ERROR = "error"
    REPORT = "report"
    FINISHED = "finished"


@dataclass
class ProgressEvent:
    """Represents an update emitted to a user during a parsing session."""

    sequence: int
    user_id: UserID
    kind: EventKind
    text: str = ""
    handle: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.kind is EventKind.FINISHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "user_id": self.user_id,
            "type": self.kind.value,
            "text": self.text,
            "handle": self.handle,
            "data": self.payload,
        }


# ============================================================================
# Collaborator protocols
# ============================================================================


@runtime_checkable
class ProgressNotifier(Protocol):
    """Progress sink plus message sink consumed by the pipeline."""

    async def notify(self, user_id: UserID, line: str) -> None:
        ...

    async def notify_user(self, user_id: UserID, text: str, is_error: bool = False) -> None:
        ...


@runtime_checkable
class ReportExporter(Protocol):
    """Turns final rows into a deliverable artifact."""

    async def export(self, rows: List[ReportRow], name: str) -> Any:
        ...

    async def deliver(self, location: Any, user_id: UserID) -> None:
        ...
