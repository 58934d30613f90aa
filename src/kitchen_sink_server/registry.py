"""Stream registry.

In-memory map from session id to the live Session. It is created by the
application and handed to both the session manager (insert/remove) and the
message router (lookup); there is no module-level instance.

Every operation holds the lock for its whole body and never suspends, so a
lookup can't observe a half-inserted or half-removed entry and removal is
safe from a cancelled task.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from .errors import DuplicateSessionError

if TYPE_CHECKING:
    from .session import Session


class StreamRegistry:
    """Concurrent-safe session id -> Session store."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def insert(self, session: Session) -> None:
        """Register a session.

        Raises:
            DuplicateSessionError: If the id is already live
        """
        with self._lock:
            if session.session_id in self._sessions:
                raise DuplicateSessionError(session.session_id)
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        """Remove a session.

        Returns:
            The removed session, or None if it was not registered
        """
        with self._lock:
            return self._sessions.pop(session_id, None)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def drain(self) -> list[Session]:
        """Remove and return every session (shutdown)."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            return sessions

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
