"""Per-user progress channel between the pipeline and whatever transport shows it.

The pipeline only produces ordered ``ProgressEvent`` objects; transports
(the HTTP API, a chat bot) subscribe per user and render them. Progress
lines accumulate in a ``ProgressLog`` so a transport can keep editing one
message in place instead of sending a new one per line.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import OrderedDict, defaultdict
from typing import Any, Dict, List, Optional

from core.types import EventKind, ProgressEvent, ProgressLog, SessionOutcome, UserID
from utils.logger import get_logger

logger = get_logger(__name__)


class ProgressHub:
    """Ordered event channel keyed by user id."""

    def __init__(self, history_size: int = 200, retained_users: int = 500):
        self.history_size = history_size
        self.retained_users = retained_users
        self._sequence = itertools.count(1)
        self._logs: Dict[UserID, ProgressLog] = {}
        self._history: Dict[UserID, List[ProgressEvent]] = defaultdict(list)
        self._subscribers: Dict[UserID, List[asyncio.Queue]] = defaultdict(list)
        # Users whose last run has finished, oldest first.
        self._finished: "OrderedDict[UserID, None]" = OrderedDict()

    # ------------------------------------------------------------------
    # Sinks used by the pipeline
    # ------------------------------------------------------------------

    async def notify(self, user_id: UserID, line: str) -> None:
        """Append a line to the user's progress display."""
        logger.info(line)
        log = self._logs.setdefault(user_id, ProgressLog())
        log.lines.append(line)
        event = self._publish(user_id, EventKind.PROGRESS, log.text, handle=log.handle)
        if log.handle is None:
            log.handle = event.sequence
            event.handle = log.handle

    async def notify_user(self, user_id: UserID, text: str, is_error: bool = False) -> None:
        """Send a standalone message, outside the progress display."""
        if is_error:
            logger.error(text)
        else:
            logger.warning(text)
        kind = EventKind.ERROR if is_error else EventKind.MESSAGE
        self._publish(user_id, kind, text)

    async def report_ready(self, user_id: UserID, filename: str, **payload: Any) -> None:
        self._publish(user_id, EventKind.REPORT, filename, payload={"filename": filename, **payload})

    async def finish(self, user_id: UserID, outcome: SessionOutcome) -> None:
        self._publish(
            user_id,
            EventKind.FINISHED,
            outcome.value,
            payload={"outcome": outcome.value, "succeeded": outcome.succeeded},
        )
        self._finished[user_id] = None
        self._finished.move_to_end(user_id)
        self._prune_finished()

    # ------------------------------------------------------------------
    # Log access
    # ------------------------------------------------------------------

    def progress_log(self, user_id: UserID) -> Optional[ProgressLog]:
        return self._logs.get(user_id)

    def lines(self, user_id: UserID) -> List[str]:
        log = self._logs.get(user_id)
        return list(log.lines) if log else []

    def begin(self, user_id: UserID) -> None:
        """Start a fresh run for ``user_id``: earlier events and display are dropped."""
        self._history.pop(user_id, None)
        self._logs.pop(user_id, None)
        self._finished.pop(user_id, None)

    def clear(self, user_id: UserID) -> None:
        """Forget the progress display of ``user_id``; the next line starts a new one."""
        self._logs.pop(user_id, None)

    def history(self, user_id: UserID) -> List[ProgressEvent]:
        return list(self._history.get(user_id, []))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, user_id: UserID) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[user_id].append(queue)
        return queue

    def unsubscribe(self, user_id: UserID, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(user_id)
        if not subscribers:
            return
        if queue in subscribers:
            subscribers.remove(queue)
        if not subscribers:
            del self._subscribers[user_id]
            self._prune_finished()

    def _publish(
        self,
        user_id: UserID,
        kind: EventKind,
        text: str,
        *,
        handle: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> ProgressEvent:
        event = ProgressEvent(
            sequence=next(self._sequence),
            user_id=user_id,
            kind=kind,
            text=text,
            handle=handle,
            payload=payload or {},
        )
        history = self._history[user_id]
        history.append(event)
        if len(history) > self.history_size:
            del history[: len(history) - self.history_size]
        for queue in self._subscribers.get(user_id, []):
            queue.put_nowait(event)
        return event

    def _prune_finished(self) -> None:
        """Drop histories of the oldest finished users beyond ``retained_users``.

        Users someone is still streaming are kept.
        """
        excess = len(self._finished) - self.retained_users
        if excess <= 0:
            return
        idle = [user_id for user_id in self._finished if not self._subscribers.get(user_id)]
        for user_id in idle[:excess]:
            del self._finished[user_id]
            self._history.pop(user_id, None)
            self._logs.pop(user_id, None)
