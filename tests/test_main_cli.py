import pytest

import main
from accessdemo.database import Database
from accessdemo.models import ADMIN_ROLE, USER_ROLE
from main import _parse_args, _split_credentials


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "9000", "--secure-only"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 9000
    assert args.secure_only is True


def test_create_user_subcommand() -> None:
    args = _parse_args(["create-user", "bob@example.com", "Bob", "Martin", "--role", "ROLE_ADMIN"])
    assert args.command == "create-user"
    assert (args.email, args.first_name, args.last_name, args.role) == (
        "bob@example.com",
        "Bob",
        "Martin",
        "ROLE_ADMIN",
    )


def test_demo_subcommand_defaults() -> None:
    args = _parse_args(["demo"])
    assert args.command == "demo"
    assert args.service_url == "http://localhost:8080"
    assert args.victim_id == 3
    assert _split_credentials(args.admin) == ("admin@example.com", "admin123")


def test_split_credentials_requires_separator() -> None:
    assert _split_credentials("a@b.c:pa:ss") == ("a@b.c", "pa:ss")
    with pytest.raises(SystemExit):
        _split_credentials("no-password")


def test_create_user_on_fresh_database_creates_roles_only(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "fresh.sqlite3"
    monkeypatch.setenv("ACCESSDEMO_DB_PATH", str(db_path))
    monkeypatch.delenv("ACCESSDEMO_SEED_FILE", raising=False)
    monkeypatch.setattr(main, "_prompt_for_password", lambda: "ops-password")

    assert main.main(["init-db"]) == 0
    assert main.main(["create-user", "ops@example.com", "Ops", "Person"]) == 0

    database = Database(db_path)
    assert [user.email for user in database.list_users()] == ["ops@example.com"]
    assert [role.name for role in database.list_roles()] == [USER_ROLE, ADMIN_ROLE]
    assert database.authenticate_user("ops@example.com", "ops-password") is not None
