"""In-memory registry of active parsing sessions, one per user."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from core.types import SessionPhase, SessionState, UserID
from utils.logger import get_logger

logger = get_logger(__name__)


class SessionRegistry:
    """Tracks which users have a run in flight.

    ``try_acquire`` is an atomic check-and-insert, so two concurrent
    requests for the same user can never both start a session. Entries are
    deleted on release rather than flagged inactive.
    """

    def __init__(self):
        self._sessions: Dict[UserID, SessionState] = {}
        self._lock = threading.Lock()

    def try_acquire(self, user_id: UserID) -> bool:
        with self._lock:
            if user_id in self._sessions:
                return False
            self._sessions[user_id] = SessionState(user_id=user_id)
            return True

    def release(self, user_id: UserID) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)

    def is_active(self, user_id: UserID) -> bool:
        with self._lock:
            return user_id in self._sessions

    def get(self, user_id: UserID) -> Optional[SessionState]:
        with self._lock:
            return self._sessions.get(user_id)

    def set_phase(self, user_id: UserID, phase: SessionPhase, page: Optional[int] = None) -> None:
        with self._lock:
            state = self._sessions.get(user_id)
            if state is None:
                return
            state.phase = phase
            if page is not None:
                state.page = page
        logger.debug(f"User {user_id} -> {phase.value}")

    def active_users(self) -> List[UserID]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
