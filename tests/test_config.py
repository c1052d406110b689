from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from accessdemo.config import DEFAULT_SEED, SeedUser, Settings, load_seed_data, resolve_seed_data
from accessdemo.database import Database
from accessdemo.models import ADMIN_ROLE, USER_ROLE
from accessdemo.seed import seed_database


def test_settings_defaults() -> None:
    settings = Settings.from_env({})

    assert settings.database_path is None
    assert settings.seed_file is None
    assert settings.seed_on_start is True
    assert settings.include_vulnerable is True
    assert settings.cors_origins == ("*",)
    assert settings.session_idle_timeout == timedelta(minutes=30)
    assert settings.session_max_lifetime == timedelta(hours=8)


def test_settings_from_environment(tmp_path: Path) -> None:
    settings = Settings.from_env(
        {
            "ACCESSDEMO_DB_PATH": str(tmp_path / "db.sqlite3"),
            "ACCESSDEMO_SEED_FILE": str(tmp_path / "seed.yaml"),
            "ACCESSDEMO_SEED_ON_START": "no",
            "ACCESSDEMO_SESSION_TTL_MINUTES": "5",
            "ACCESSDEMO_SESSION_MAX_HOURS": "1",
            "ACCESSDEMO_CORS_ORIGINS": "http://localhost:3000, http://localhost:5173",
            "ACCESSDEMO_ENABLE_VULNERABLE": "false",
        }
    )

    assert settings.database_path == str(tmp_path / "db.sqlite3")
    assert settings.seed_file == tmp_path / "seed.yaml"
    assert settings.seed_on_start is False
    assert settings.session_idle_timeout == timedelta(minutes=5)
    assert settings.session_max_lifetime == timedelta(hours=1)
    assert settings.cors_origins == ("http://localhost:3000", "http://localhost:5173")
    assert settings.include_vulnerable is False


def test_load_seed_data_from_yaml(tmp_path: Path) -> None:
    seed_file = tmp_path / "seed.yaml"
    seed_file.write_text(
        """
users:
  - email: carol@example.com
    password: carol-pass
    first_name: Carol
    last_name: White
    account_balance: 42
    roles: ROLE_ADMIN
""",
        encoding="utf-8",
    )

    seed = load_seed_data(seed_file)

    assert seed.roles == DEFAULT_SEED.roles
    assert len(seed.users) == 1
    carol = seed.users[0]
    assert carol.roles == (ADMIN_ROLE,)
    assert carol.account_balance == 42.0
    assert carol.phone_number is None
    assert resolve_seed_data(Settings(seed_file=seed_file)) == seed
    assert resolve_seed_data(Settings()) is DEFAULT_SEED


def test_seed_user_validation() -> None:
    with pytest.raises(ValueError, match="last_name"):
        SeedUser.from_dict({"email": "a@b.c", "password": "x", "first_name": "A", "roles": [USER_ROLE]})
    with pytest.raises(ValueError, match="at least one role"):
        SeedUser.from_dict(
            {"email": "a@b.c", "password": "x", "first_name": "A", "last_name": "B", "roles": []}
        )


def test_seed_file_must_be_a_mapping(tmp_path: Path) -> None:
    seed_file = tmp_path / "seed.yaml"
    seed_file.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_seed_data(seed_file)


def test_seed_database_is_idempotent(database: Database) -> None:
    first = seed_database(database)
    second = seed_database(database)

    assert first.roles_created == [USER_ROLE, ADMIN_ROLE]
    assert first.users_created == ["user@example.com", "admin@example.com", "alice@example.com"]
    assert not second.changed
    assert database.count_users() == 3
    assert database.list_user_roles(2) == [ADMIN_ROLE, USER_ROLE]
    assert database.authenticate_user("alice@example.com", "alice123") is not None


def test_seed_skips_users_when_accounts_exist(database: Database) -> None:
    database.create_role(USER_ROLE)
    database.create_user("only@example.com", "secret", first_name="Only", last_name="One", roles=[USER_ROLE])

    report = seed_database(database)

    assert report.roles_created == []
    assert report.users_created == []
    assert database.count_users() == 1
