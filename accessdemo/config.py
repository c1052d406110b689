"""Configuration for the access-control demo service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .models import ADMIN_ROLE, USER_ROLE


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from ``ACCESSDEMO_*`` environment variables."""

    database_path: Optional[str] = None
    seed_file: Optional[Path] = None
    seed_on_start: bool = True
    session_idle_minutes: int = 30
    session_max_hours: int = 8
    cors_origins: Tuple[str, ...] = ("*",)
    include_vulnerable: bool = True

    @property
    def session_idle_timeout(self) -> timedelta:
        return timedelta(minutes=self.session_idle_minutes)

    @property
    def session_max_lifetime(self) -> timedelta:
        return timedelta(hours=self.session_max_hours)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        seed_file = env.get("ACCESSDEMO_SEED_FILE")
        return Settings(
            database_path=env.get("ACCESSDEMO_DB_PATH") or None,
            seed_file=Path(seed_file).expanduser() if seed_file else None,
            seed_on_start=_env_flag(env.get("ACCESSDEMO_SEED_ON_START"), True),
            session_idle_minutes=int(env.get("ACCESSDEMO_SESSION_TTL_MINUTES", "30")),
            session_max_hours=int(env.get("ACCESSDEMO_SESSION_MAX_HOURS", "8")),
            cors_origins=_env_list(env.get("ACCESSDEMO_CORS_ORIGINS"), ("*",)),
            include_vulnerable=_env_flag(env.get("ACCESSDEMO_ENABLE_VULNERABLE"), True),
        )


@dataclass(frozen=True)
class SeedRole:
    name: str
    description: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SeedRole":
        if "name" not in data:
            raise ValueError("Seed role entries must define a 'name'")
        description = data.get("description")
        return SeedRole(
            name=str(data["name"]),
            description=str(description) if description is not None else None,
        )


@dataclass(frozen=True)
class SeedUser:
    email: str
    password: str
    first_name: str
    last_name: str
    roles: Tuple[str, ...]
    phone_number: Optional[str] = None
    account_balance: float = 0.0
    passport_number: Optional[str] = None
    social_security_number: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "SeedUser":
        required_fields = {"email", "password", "first_name", "last_name", "roles"}
        missing = required_fields - data.keys()
        if missing:
            raise ValueError(f"Missing required seed user fields: {', '.join(sorted(missing))}")

        raw_roles = data["roles"]
        if isinstance(raw_roles, str):
            raw_roles = [raw_roles]
        if not isinstance(raw_roles, list) or not raw_roles:
            raise ValueError(f"Seed user {data['email']} must hold at least one role")

        def _optional(key: str) -> Optional[str]:
            value = data.get(key)
            return str(value) if value is not None else None

        return SeedUser(
            email=str(data["email"]),
            password=str(data["password"]),
            first_name=str(data["first_name"]),
            last_name=str(data["last_name"]),
            roles=tuple(str(role) for role in raw_roles),
            phone_number=_optional("phone_number"),
            account_balance=float(data.get("account_balance", 0.0)),  # type: ignore[arg-type]
            passport_number=_optional("passport_number"),
            social_security_number=_optional("social_security_number"),
        )


@dataclass(frozen=True)
class SeedData:
    roles: List[SeedRole] = field(default_factory=list)
    users: List[SeedUser] = field(default_factory=list)


DEFAULT_SEED = SeedData(
    roles=[
        SeedRole(USER_ROLE, "Standard user"),
        SeedRole(ADMIN_ROLE, "Administrator"),
    ],
    users=[
        SeedUser(
            email="user@example.com",
            password="password123",
            first_name="John",
            last_name="Doe",
            roles=(USER_ROLE,),
            phone_number="+33612345678",
            account_balance=1000.0,
            passport_number="FR123456789",
        ),
        SeedUser(
            email="admin@example.com",
            password="admin123",
            first_name="Jane",
            last_name="Smith",
            roles=(USER_ROLE, ADMIN_ROLE),
            phone_number="+33698765432",
            account_balance=5000.0,
            passport_number="FR987654321",
        ),
        SeedUser(
            email="alice@example.com",
            password="alice123",
            first_name="Alice",
            last_name="Johnson",
            roles=(USER_ROLE,),
            phone_number="+33656781234",
            account_balance=2500.0,
            passport_number="FR456789123",
            social_security_number="1234567890123",
        ),
    ],
)


def load_seed_data(path: Path) -> SeedData:
    """Load seed roles and users from a YAML file.

    Sections that are absent fall back to :data:`DEFAULT_SEED`.
    """

    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Seed file must contain a mapping with 'roles' and/or 'users'")

    roles_raw = raw.get("roles")
    users_raw = raw.get("users")

    roles = [SeedRole.from_dict(item) for item in roles_raw] if roles_raw else list(DEFAULT_SEED.roles)
    users = [SeedUser.from_dict(item) for item in users_raw] if users_raw else list(DEFAULT_SEED.users)
    return SeedData(roles=roles, users=users)


def resolve_seed_data(settings: Settings) -> SeedData:
    if settings.seed_file is None:
        return DEFAULT_SEED
    return load_seed_data(settings.seed_file)


__all__ = [
    "DEFAULT_SEED",
    "SeedData",
    "SeedRole",
    "SeedUser",
    "Settings",
    "load_seed_data",
    "resolve_seed_data",
]
