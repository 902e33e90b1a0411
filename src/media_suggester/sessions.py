"""
Per-session state for callers of the query service.

Each session gets a typed SessionRecord owned by a SessionManager. Records
do not expire on their own: sweep_expired() removes every session idle for
longer than the TTL. The query service sweeps before each session update.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from media_suggester.config import SuggesterConfig

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    """State kept for one caller session."""

    session_id: str
    created_at: float
    last_seen: float
    user_id: str | None = None
    access_token: str | None = None
    last_query: str | None = None
    last_result_ids: list[str] = field(default_factory=list)

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.last_seen > ttl_seconds


class SessionManager:
    """
    Owns SessionRecords keyed by session id.

    Args:
        ttl_seconds: Idle time after which a session is swept
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(self, ttl_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, SessionRecord] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def open(self, session_id: str) -> SessionRecord:
        """Return the session's record, creating it if needed, and mark it active."""
        now = self._clock()
        record = self._sessions.get(session_id)
        if record is None:
            record = SessionRecord(session_id=session_id, created_at=now, last_seen=now)
            self._sessions[session_id] = record
            logger.info(f"Session '{session_id}' started")
        else:
            record.last_seen = now
        return record

    def get(self, session_id: str) -> SessionRecord | None:
        """Look up a session without refreshing it."""
        return self._sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        """Remove a session. Returns False if it did not exist."""
        if self._sessions.pop(session_id, None) is None:
            return False
        logger.info(f"Session '{session_id}' ended")
        return True

    def sweep_expired(self) -> int:
        """Remove every session idle for longer than the TTL."""
        now = self._clock()
        expired = [
            session_id
            for session_id, record in self._sessions.items()
            if record.is_expired(now, self.ttl_seconds)
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)


def get_session_manager(config: SuggesterConfig | None = None) -> SessionManager:
    """Build a SessionManager using the configured idle TTL."""
    if config is None:
        return SessionManager()
    return SessionManager(ttl_seconds=config.session_ttl_seconds)
