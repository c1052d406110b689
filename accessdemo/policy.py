"""Authorization policy for the secure user API.

``POLICY`` is the single table deciding who may do what. Route handlers never
check roles or ownership themselves; they declare the operation they
implement through :meth:`PolicyGuard.require`, which evaluates the rule
before the handler body runs.

The acting principal always comes from verified credentials. The only
client-supplied identifier the policy looks at is the *target* id from the
request path, and it is compared against the principal, never trusted.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from fastapi import Depends, Request

from .audit import AuditTrail
from .errors import AuthenticationFailed
from .models import ADMIN_ROLE
from .security import CredentialVerifier, Principal

TARGET_PARAM = "user_id"


class Operation(str, enum.Enum):
    UPDATE_PROFILE = "update_profile"
    READ_PROFILE = "read_profile"
    READ_SELF = "read_self"
    LIST_USERS = "list_users"
    PROMOTE_USER = "promote_user"
    READ_AUDIT_LOG = "read_audit_log"


class Reason(str, enum.Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"


_REASON_STATUS = {
    Reason.NOT_AUTHENTICATED: 401,
    Reason.FORBIDDEN: 403,
    Reason.NOT_FOUND: 404,
}

_REASON_TITLE = {
    Reason.NOT_AUTHENTICATED: AuthenticationFailed.title,
    Reason.FORBIDDEN: "Access denied",
    Reason.NOT_FOUND: "Not found",
}


@dataclass(frozen=True)
class Rule:
    """Every rule requires an authenticated caller."""

    owner_only: bool = False
    required_role: Optional[str] = None
    audited: bool = False
    denial_message: str = "You are not allowed to perform this action"


POLICY: Mapping[Operation, Rule] = MappingProxyType(
    {
        Operation.UPDATE_PROFILE: Rule(
            owner_only=True,
            denial_message="You can only modify your own profile",
        ),
        Operation.READ_PROFILE: Rule(
            owner_only=True,
            denial_message="You can only access your own profile",
        ),
        Operation.READ_SELF: Rule(),
        Operation.LIST_USERS: Rule(
            required_role=ADMIN_ROLE,
            denial_message="Administrator role required",
        ),
        Operation.PROMOTE_USER: Rule(
            required_role=ADMIN_ROLE,
            audited=True,
            denial_message="Administrator role required",
        ),
        Operation.READ_AUDIT_LOG: Rule(
            required_role=ADMIN_ROLE,
            denial_message="Administrator role required",
        ),
    }
)


@dataclass(frozen=True)
class Decision:
    operation: Operation
    allowed: bool
    reason: Optional[Reason] = None
    message: str = ""

    @property
    def status_code(self) -> int:
        if self.reason is None:
            return 200
        return _REASON_STATUS[self.reason]

    @property
    def title(self) -> str:
        if self.reason is None:
            return "OK"
        return _REASON_TITLE[self.reason]


class AccessDenied(Exception):
    """Raised by the guard when the policy rejects a request."""

    def __init__(self, decision: Decision) -> None:
        super().__init__(decision.message)
        self.decision = decision


def evaluate(
    operation: Operation,
    principal: Optional[Principal],
    target_id: Optional[int] = None,
) -> Decision:
    """Decide whether ``principal`` may perform ``operation`` on ``target_id``."""

    rule = POLICY[operation]

    if principal is None:
        return Decision(operation, False, Reason.NOT_AUTHENTICATED, AuthenticationFailed.default_message)

    if rule.required_role is not None and not principal.has_role(rule.required_role):
        return Decision(operation, False, Reason.FORBIDDEN, rule.denial_message)

    if rule.owner_only:
        if target_id is None:
            return Decision(operation, False, Reason.NOT_FOUND, "Resource not found")
        if target_id != principal.user_id:
            return Decision(operation, False, Reason.FORBIDDEN, rule.denial_message)

    return Decision(operation, True)


def target_id_from(request: Request) -> Optional[int]:
    raw = request.path_params.get(TARGET_PARAM)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class PolicyGuard:
    """Build FastAPI dependencies that enforce :data:`POLICY`.

    The dependency returned by :meth:`require` yields the verified
    :class:`Principal` to the handler. Every rejection is written to the
    audit trail before :class:`AccessDenied` is raised.
    """

    def __init__(self, verifier: CredentialVerifier, audit: AuditTrail) -> None:
        self._verifier = verifier
        self._audit = audit

    def require(self, operation: Operation) -> Callable[..., Principal]:
        verifier = self._verifier
        audit = self._audit

        def dependency(
            request: Request,
            principal: Optional[Principal] = Depends(verifier),
        ) -> Principal:
            target_id = target_id_from(request)
            decision = evaluate(operation, principal, target_id)
            if principal is None or not decision.allowed:
                audit.access_denied(
                    principal.email if principal is not None else "anonymous",
                    operation.value,
                    decision.reason.value if decision.reason else "",
                    target_user_id=target_id,
                )
                raise AccessDenied(decision)
            if POLICY[operation].audited:
                audit.authorized(principal.email, operation.value, target_user_id=target_id)
            return principal

        dependency.__name__ = f"require_{operation.value}"
        return dependency


__all__ = [
    "AccessDenied",
    "Decision",
    "Operation",
    "POLICY",
    "PolicyGuard",
    "Reason",
    "Rule",
    "evaluate",
    "target_id_from",
]
