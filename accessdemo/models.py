"""Domain records shared by the vulnerable and secure user APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

USER_ROLE = "ROLE_USER"
ADMIN_ROLE = "ROLE_ADMIN"


@dataclass(frozen=True)
class Role:
    """Named permission grant such as ``ROLE_USER`` or ``ROLE_ADMIN``."""

    id: int
    name: str
    description: Optional[str]


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the demo database.

    Role membership is not part of the record; it is loaded on demand with
    :meth:`accessdemo.database.Database.list_user_roles`.
    """

    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str]
    password_hash: str = field(repr=False)
    account_balance: float
    is_active: bool
    passport_number: Optional[str]
    social_security_number: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class AuditEvent:
    id: int
    action: str
    actor: str
    target_user_id: Optional[int]
    detail: str
    created_at: datetime


__all__ = ["ADMIN_ROLE", "AuditEvent", "Role", "USER_ROLE", "User"]
