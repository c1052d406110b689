"""Audit trail for privileged actions and authorization rejections."""
from __future__ import annotations

import logging
from typing import List, Optional

from .database import Database
from .models import AuditEvent

logger = logging.getLogger("accessdemo.audit")

ROLE_GRANTED = "role_granted"
ACCESS_DENIED = "access_denied"
AUTHORIZED = "authorized"


class AuditTrail:
    """Write audit events to the ``accessdemo.audit`` logger and the database."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def record(
        self,
        action: str,
        actor: str,
        *,
        target_user_id: Optional[int] = None,
        detail: str = "",
        level: int = logging.INFO,
    ) -> AuditEvent:
        logger.log(
            level,
            "AUDIT %s actor=%s target=%s %s",
            action,
            actor,
            target_user_id if target_user_id is not None else "-",
            detail,
        )
        return self._database.record_audit_event(
            action,
            actor,
            target_user_id=target_user_id,
            detail=detail,
        )

    def role_granted(self, actor: str, target_user_id: int, role_name: str) -> AuditEvent:
        return self.record(
            ROLE_GRANTED,
            actor,
            target_user_id=target_user_id,
            detail=f"granted {role_name}",
        )

    def authorized(self, actor: str, operation: str, target_user_id: Optional[int] = None) -> AuditEvent:
        return self.record(AUTHORIZED, actor, target_user_id=target_user_id, detail=operation)

    def access_denied(
        self,
        actor: str,
        operation: str,
        reason: str,
        target_user_id: Optional[int] = None,
    ) -> AuditEvent:
        return self.record(
            ACCESS_DENIED,
            actor,
            target_user_id=target_user_id,
            detail=f"{operation}: {reason}",
            level=logging.WARNING,
        )

    def recent(self, limit: int = 100) -> List[AuditEvent]:
        return self._database.list_audit_events(limit)


__all__ = ["ACCESS_DENIED", "AUTHORIZED", "AuditTrail", "ROLE_GRANTED"]
