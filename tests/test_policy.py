from __future__ import annotations

import pytest

from accessdemo.models import ADMIN_ROLE, USER_ROLE
from accessdemo.policy import POLICY, Operation, Reason, evaluate
from accessdemo.security import Principal

USER = Principal(user_id=1, email="user@example.com", roles=frozenset({USER_ROLE}))
ADMIN = Principal(user_id=2, email="admin@example.com", roles=frozenset({USER_ROLE, ADMIN_ROLE}))


def test_every_operation_has_a_rule() -> None:
    assert set(POLICY) == set(Operation)


@pytest.mark.parametrize("operation", list(Operation))
def test_anonymous_callers_are_never_allowed(operation: Operation) -> None:
    decision = evaluate(operation, None, target_id=1)

    assert not decision.allowed
    assert decision.reason is Reason.NOT_AUTHENTICATED
    assert decision.status_code == 401


@pytest.mark.parametrize("operation", [Operation.UPDATE_PROFILE, Operation.READ_PROFILE])
def test_owner_only_operations(operation: Operation) -> None:
    assert evaluate(operation, USER, target_id=1).allowed

    other = evaluate(operation, USER, target_id=2)
    assert not other.allowed
    assert other.reason is Reason.FORBIDDEN
    assert other.status_code == 403
    assert other.message == POLICY[operation].denial_message

    # Holding ROLE_ADMIN does not widen ownership.
    assert not evaluate(operation, ADMIN, target_id=1).allowed


def test_owner_only_without_target_is_not_found() -> None:
    decision = evaluate(Operation.UPDATE_PROFILE, USER)

    assert decision.reason is Reason.NOT_FOUND
    assert decision.status_code == 404


@pytest.mark.parametrize(
    "operation",
    [Operation.LIST_USERS, Operation.PROMOTE_USER, Operation.READ_AUDIT_LOG],
)
def test_admin_operations(operation: Operation) -> None:
    denied = evaluate(operation, USER, target_id=3)
    assert not denied.allowed
    assert denied.message == "Administrator role required"
    assert denied.title == "Access denied"

    assert evaluate(operation, ADMIN, target_id=3).allowed


def test_read_self_only_needs_authentication() -> None:
    decision = evaluate(Operation.READ_SELF, USER)

    assert decision.allowed
    assert decision.status_code == 200


def test_only_promotion_is_audited_on_success() -> None:
    audited = {operation for operation, rule in POLICY.items() if rule.audited}

    assert audited == {Operation.PROMOTE_USER}
