"""Credential verification for the secure API surface."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBasic, HTTPBasicCredentials, HTTPBearer

from .database import Database
from .models import User
from .sessions import SessionManager

logger = logging.getLogger("accessdemo.security")

_basic_security = HTTPBasic(auto_error=False)
_bearer_security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, as derived from verified credentials."""

    user_id: int
    email: str
    roles: FrozenSet[str]

    def has_role(self, role: str) -> bool:
        return role in self.roles


class CredentialVerifier:
    """Resolve the caller from HTTP Basic credentials or a bearer session token.

    Returns ``None`` instead of raising when no valid credentials are
    presented so the authorization policy can decide how to reject. FastAPI
    runs this synchronous callable in its threadpool.
    """

    def __init__(self, database: Database, sessions: SessionManager) -> None:
        self._database = database
        self._sessions = sessions

    def __call__(
        self,
        basic: Optional[HTTPBasicCredentials] = Depends(_basic_security),
        bearer: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_security),
    ) -> Optional[Principal]:
        if bearer is not None:
            user_id = self._sessions.resolve(bearer.credentials)
            if user_id is None:
                return None
            user = self._database.get_user(user_id)
            if user is None or not user.is_active:
                return None
            return self.principal_for(user)

        if basic is not None:
            user = self._database.authenticate_user(basic.username, basic.password)
            if user is None:
                logger.warning("Failed login attempt for %s", basic.username)
                return None
            return self.principal_for(user)

        return None

    def principal_for(self, user: User) -> Principal:
        return Principal(
            user_id=user.id,
            email=user.email,
            roles=frozenset(self._database.list_user_roles(user.id)),
        )


__all__ = ["CredentialVerifier", "Principal"]
