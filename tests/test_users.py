from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from accessdemo.audit import ACCESS_DENIED, ROLE_GRANTED, AuditTrail
from accessdemo.database import Database
from accessdemo.errors import ConflictError, NotFoundError
from accessdemo.models import ADMIN_ROLE, USER_ROLE
from accessdemo.schemas import ProfileUpdateRequest
from accessdemo.seed import seed_database
from accessdemo.users import DEFAULT_ACCOUNT_BALANCE, UserService


@pytest.fixture()
def service(database: Database) -> UserService:
    seed_database(database)
    return UserService(database)


def test_create_user_uses_default_balance(service: UserService) -> None:
    user = service.create_user("new@example.com", "password1", "New", "Person", USER_ROLE)

    assert user.account_balance == DEFAULT_ACCOUNT_BALANCE
    assert service.roles_for(user.id) == [USER_ROLE]


def test_create_user_errors(service: UserService) -> None:
    with pytest.raises(ConflictError):
        service.create_user("user@example.com", "password1", "Dup", "Licate", USER_ROLE)
    with pytest.raises(NotFoundError):
        service.create_user("x@example.com", "password1", "No", "Role", "ROLE_ROOT")


def test_lookups_raise_not_found(service: UserService) -> None:
    assert service.get_user_by_email("alice@example.com").first_name == "Alice"
    with pytest.raises(NotFoundError):
        service.get_user(99)
    with pytest.raises(NotFoundError):
        service.get_user_by_email("missing@example.com")


def test_update_profile(service: UserService) -> None:
    update = ProfileUpdateRequest(firstName="Johnny", lastName="Doe", email="johnny@example.com")

    user = service.update_profile(1, update)

    assert user.first_name == "Johnny"
    assert user.phone_number is None
    assert user.account_balance == 1000.0
    with pytest.raises(NotFoundError):
        service.update_profile(99, update)
    with pytest.raises(ConflictError):
        service.update_profile(3, update)


def test_grant_role(service: UserService) -> None:
    service.add_admin_role(3)

    assert service.roles_for(3) == [ADMIN_ROLE, USER_ROLE]
    with pytest.raises(NotFoundError):
        service.grant_role(99, ADMIN_ROLE)
    with pytest.raises(NotFoundError):
        service.grant_role(3, "ROLE_ROOT")


def test_overwrite_user(service: UserService) -> None:
    user = service.overwrite_user(3, {"account_balance": 0.0, "passport_number": None}, roles=[ADMIN_ROLE])

    assert user.account_balance == 0.0
    assert user.passport_number is None
    assert service.roles_for(3) == [ADMIN_ROLE]
    with pytest.raises(ConflictError):
        service.overwrite_user(3, {"email": "admin@example.com"})
    with pytest.raises(NotFoundError):
        service.overwrite_user(99, {"first_name": "X"})


def test_profile_update_request_normalises_input() -> None:
    update = ProfileUpdateRequest.model_validate(
        {
            "firstName": "  Ann ",
            "lastName": "Lee",
            "email": " Ann@Example.COM ",
            "phoneNumber": "+33600000000",
            "accountBalance": 1,
            "roles": ["ROLE_ADMIN"],
        }
    )

    assert update.first_name == "Ann"
    assert update.email == "ann@example.com"
    assert update.model_dump() == {
        "first_name": "Ann",
        "last_name": "Lee",
        "email": "ann@example.com",
        "phone_number": "+33600000000",
    }


def test_audit_trail_logs_and_persists(database: Database, caplog: pytest.LogCaptureFixture) -> None:
    audit = AuditTrail(database)

    with caplog.at_level(logging.INFO, logger="accessdemo.audit"):
        audit.role_granted("admin@example.com", 3, ADMIN_ROLE)
        audit.access_denied("user@example.com", "list_users", "forbidden")

    denied, granted = audit.recent()
    assert granted.action == ROLE_GRANTED
    assert granted.detail == f"granted {ADMIN_ROLE}"
    assert denied.action == ACCESS_DENIED
    assert denied.detail == "list_users: forbidden"
    assert [record.levelno for record in caplog.records] == [logging.INFO, logging.WARNING]


@pytest.mark.parametrize("email", ["john@exa..mple.com", ".john@example.com", "john@-example.com", "john@example"])
def test_profile_update_request_rejects_malformed_email(email: str) -> None:
    with pytest.raises(ValidationError):
        ProfileUpdateRequest(firstName="J", lastName="D", email=email)
