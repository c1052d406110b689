"""In-memory bearer sessions issued by ``POST /auth/login``."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional


@dataclass
class _Session:
    user_id: int
    issued_at: datetime
    last_used: datetime


class SessionManager:
    """Issue and resolve opaque bearer tokens.

    A token expires after ``idle_timeout`` without use, and unconditionally
    once ``max_lifetime`` has passed since it was issued.
    """

    def __init__(
        self,
        *,
        idle_timeout: timedelta = timedelta(minutes=30),
        max_lifetime: timedelta = timedelta(hours=8),
    ) -> None:
        if idle_timeout <= timedelta(0) or max_lifetime <= timedelta(0):
            raise ValueError("Session timeouts must be positive")
        self._idle_timeout = idle_timeout
        self._max_lifetime = max_lifetime
        self._sessions: Dict[str, _Session] = {}
        self._lock = threading.Lock()

    @property
    def expires_in(self) -> int:
        return int(min(self._idle_timeout, self._max_lifetime).total_seconds())

    def issue(self, user_id: int) -> str:
        token = secrets.token_urlsafe(32)
        now = self._now()
        with self._lock:
            self._sessions[token] = _Session(user_id=user_id, issued_at=now, last_used=now)
        return token

    def resolve(self, token: str) -> Optional[int]:
        """Return the user id bound to ``token`` and refresh its idle timer."""

        now = self._now()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if self._expired(session, now):
                del self._sessions[token]
                return None
            session.last_used = now
            return session.user_id

    def revoke(self, token: str) -> bool:
        with self._lock:
            return self._sessions.pop(token, None) is not None

    def _expired(self, session: _Session, now: datetime) -> bool:
        if now - session.issued_at >= self._max_lifetime:
            return True
        return now - session.last_used >= self._idle_timeout

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["SessionManager"]
