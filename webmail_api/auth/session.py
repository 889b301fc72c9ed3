"""Server-side store of logged-in mail sessions.

Credentials never leave the process: the bearer token only carries the
session id.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from ..imap.account import Account

logger = structlog.get_logger()


@dataclass
class MailSession:
    session_id: str
    account: Account
    created_at: float
    last_seen: float
    draft_folder: str | None = None


class SessionStore:
    """In-memory sessions with an idle timeout."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, MailSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, account: Account) -> MailSession:
        now = self._clock()
        session = MailSession(
            session_id=uuid.uuid4().hex,
            account=account,
            created_at=now,
            last_seen=now,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("session_created", username=account.username, host=account.host)
        return session

    def get(self, session_id: str) -> MailSession | None:
        """Return a live session and refresh its idle timer, or ``None``."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if now - session.last_seen > self._ttl:
                del self._sessions[session_id]
                logger.info("session_expired", username=session.account.username)
                return None
            session.last_seen = now
            return session

    def update_draft_folder(self, session_id: str, folder: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.draft_folder = folder

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("session_destroyed", username=session.account.username)
        return session is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if now - s.last_seen > self._ttl]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("sessions_purged", count=len(stale))
        return len(stale)
