"""Server-side storage for the FTP credentials of logged-in UI sessions."""
from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, MutableMapping, Optional

from webftp.services.utils.types import Credentials

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "sid"


@dataclass
class _StoredSession:
    credentials: Credentials
    last_seen: float


class SessionCredentialStore:
    """Keeps credentials in process memory, keyed by a random session id.

    The signed session cookie only carries the id, so the FTP password never
    leaves the server. Entries expire after ``lifetime`` seconds without use.
    """

    def __init__(
        self,
        lifetime: int = 3600,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._lifetime = lifetime
        self._clock = clock
        self._sessions: dict[str, _StoredSession] = {}
        self._lock = threading.Lock()

    def login(self, session: MutableMapping, credentials: Credentials) -> str:
        self.logout(session)
        session_id = secrets.token_urlsafe(32)
        with self._lock:
            self._purge_expired()
            self._sessions[session_id] = _StoredSession(credentials, self._clock())
        session[SESSION_ID_KEY] = session_id
        return session_id

    def get(self, session: MutableMapping) -> Optional[Credentials]:
        session_id = session.get(SESSION_ID_KEY)
        if not session_id:
            return None
        now = self._clock()
        with self._lock:
            stored = self._sessions.get(session_id)
            if stored is None:
                return None
            if now - stored.last_seen > self._lifetime:
                del self._sessions[session_id]
                logger.info("Session expired for user '%s'", stored.credentials.username)
                return None
            stored.last_seen = now
            return stored.credentials

    def logout(self, session: MutableMapping) -> Optional[Credentials]:
        session_id = session.pop(SESSION_ID_KEY, None)
        if not session_id:
            return None
        with self._lock:
            stored = self._sessions.pop(session_id, None)
        return stored.credentials if stored else None

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired()

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [
            key for key, stored in self._sessions.items()
            if now - stored.last_seen > self._lifetime
        ]
        for key in expired:
            del self._sessions[key]
        return len(expired)
