"""SQLite-backed persistence for users, roles and audit events."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from passlib.context import CryptContext

from .models import AuditEvent, Role, User


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "accessdemo.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def _hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


class Database:
    """Simple wrapper around SQLite for persisting users and their roles."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a read-check-write sequence under a write lock.

        ``BEGIN IMMEDIATE`` takes the reserved lock up front so two requests
        touching the same row cannot interleave between the read and the
        write.
        """

        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS roles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT
                );

                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    phone_number TEXT,
                    password_hash TEXT NOT NULL,
                    account_balance REAL NOT NULL DEFAULT 0.0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    passport_number TEXT,
                    social_security_number TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS user_roles (
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
                    PRIMARY KEY (user_id, role_id)
                );

                CREATE TABLE IF NOT EXISTS audit_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    action TEXT NOT NULL,
                    actor TEXT NOT NULL,
                    target_user_id INTEGER,
                    detail TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_user_roles_role_id ON user_roles(role_id);
                CREATE INDEX IF NOT EXISTS idx_audit_events_target ON audit_events(target_user_id);
                """
            )

    # ------------------------------------------------------------------
    # Role management
    # ------------------------------------------------------------------
    def create_role(self, name: str, description: Optional[str] = None) -> Role:
        normalized = name.strip()
        if not normalized:
            raise ValueError("Role name must not be empty")

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO roles (name, description) VALUES (?, ?)",
                    (normalized, description),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(f"Role '{normalized}' already exists") from exc
            role_id = cursor.lastrowid

        return Role(id=int(role_id), name=normalized, description=description)

    def get_role_by_name(self, name: str) -> Optional[Role]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM roles WHERE name = ?", (name.strip(),)).fetchone()
        if row is None:
            return None
        return self._row_to_role(row)

    def list_roles(self) -> List[Role]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM roles ORDER BY id").fetchall()
        return [self._row_to_role(row) for row in rows]

    def count_roles(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM roles").fetchone()
        return int(row["total"])

    def list_user_roles(self, user_id: int) -> List[str]:
        """Return the role names granted to ``user_id`` using the join table."""

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT r.name
                  FROM roles r
                  JOIN user_roles ur ON ur.role_id = r.id
                 WHERE ur.user_id = ?
                 ORDER BY r.name
                """,
                (user_id,),
            ).fetchall()
        return [str(row["name"]) for row in rows]

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def create_user(
        self,
        email: str,
        password: str,
        *,
        first_name: str,
        last_name: str,
        phone_number: Optional[str] = None,
        account_balance: float = 0.0,
        is_active: bool = True,
        passport_number: Optional[str] = None,
        social_security_number: Optional[str] = None,
        roles: Iterable[str] = (),
    ) -> User:
        """Create a new user and attach the named roles in one transaction."""

        if not password:
            raise ValueError("Password must not be empty")

        normalized_email = _normalize_email(email)
        if not normalized_email:
            raise ValueError("Email must not be empty")

        password_hash = _hash_password(password)
        created_at = _current_timestamp()

        with self.transaction() as conn:
            role_ids = self._resolve_role_ids(conn, roles)
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO users (
                        email,
                        first_name,
                        last_name,
                        phone_number,
                        password_hash,
                        account_balance,
                        is_active,
                        passport_number,
                        social_security_number,
                        created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        normalized_email,
                        first_name,
                        last_name,
                        phone_number,
                        password_hash,
                        float(account_balance),
                        int(bool(is_active)),
                        passport_number,
                        social_security_number,
                        _serialize_datetime(created_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("A user with that email already exists") from exc

            user_id = int(cursor.lastrowid)
            conn.executemany(
                "INSERT OR IGNORE INTO user_roles (user_id, role_id) VALUES (?, ?)",
                [(user_id, role_id) for role_id in role_ids],
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (_normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def list_users(self) -> List[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    def count_users(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM users").fetchone()
        return int(row["total"])

    def user_exists(self, user_id: int) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
        return row is not None

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        user = self.get_user_by_email(email)
        if user is None or not user.is_active:
            return None
        if not _verify_password(password, user.password_hash):
            return None
        return user

    def update_user_profile(
        self,
        user_id: int,
        *,
        first_name: str,
        last_name: str,
        email: str,
        phone_number: Optional[str],
    ) -> Optional[User]:
        """Update the self-service profile columns and nothing else.

        Returns ``None`` when the user does not exist.
        """

        normalized_email = _normalize_email(email)
        with self.transaction() as conn:
            if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
                return None
            try:
                conn.execute(
                    """
                    UPDATE users
                       SET first_name = ?, last_name = ?, email = ?, phone_number = ?
                     WHERE id = ?
                    """,
                    (first_name, last_name, normalized_email, phone_number, user_id),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError("A user with that email already exists") from exc
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row)

    def overwrite_user(
        self,
        user_id: int,
        *,
        roles: Optional[Sequence[str]] = None,
        **fields: object,
    ) -> Optional[User]:
        """Write any stored column supplied by the caller.

        ``roles`` replaces the stored role set when it is non-empty.
        Returns ``None`` when the user does not exist.
        """

        allowed = {
            "email": "email",
            "first_name": "first_name",
            "last_name": "last_name",
            "phone_number": "phone_number",
            "account_balance": "account_balance",
            "is_active": "is_active",
            "passport_number": "passport_number",
            "social_security_number": "social_security_number",
        }

        updates: List[str] = []
        values: List[object] = []
        nullable_columns = {"phone_number", "passport_number", "social_security_number"}
        for key, column in allowed.items():
            if key not in fields:
                continue
            value = fields[key]
            if value is None and column not in nullable_columns:
                continue
            if column == "email":
                value = _normalize_email(str(value))
            if column == "is_active":
                value = int(bool(value))
            updates.append(f"{column} = ?")
            values.append(value)

        with self.transaction() as conn:
            if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
                return None

            if updates:
                query = f"UPDATE users SET {', '.join(updates)} WHERE id = ?"
                try:
                    conn.execute(query, [*values, user_id])
                except sqlite3.IntegrityError as exc:
                    raise ValueError("A user with that email already exists") from exc

            if roles:
                role_ids = self._resolve_role_ids(conn, roles)
                conn.execute("DELETE FROM user_roles WHERE user_id = ?", (user_id,))
                conn.executemany(
                    "INSERT OR IGNORE INTO user_roles (user_id, role_id) VALUES (?, ?)",
                    [(user_id, role_id) for role_id in role_ids],
                )

            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row)

    def add_role_to_user(self, user_id: int, role_name: str) -> Optional[User]:
        """Append ``role_name`` to the user's role set; a no-op if already held."""

        with self.transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                return None
            (role_id,) = self._resolve_role_ids(conn, [role_name])
            conn.execute(
                "INSERT OR IGNORE INTO user_roles (user_id, role_id) VALUES (?, ?)",
                (user_id, role_id),
            )

        return self._row_to_user(row)

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------
    def record_audit_event(
        self,
        action: str,
        actor: str,
        *,
        target_user_id: Optional[int] = None,
        detail: str = "",
    ) -> AuditEvent:
        created_at = _current_timestamp()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO audit_events (action, actor, target_user_id, detail, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (action, actor, target_user_id, detail, _serialize_datetime(created_at)),
            )
            event_id = cursor.lastrowid

        return AuditEvent(
            id=int(event_id),
            action=action,
            actor=actor,
            target_user_id=target_user_id,
            detail=detail,
            created_at=created_at,
        )

    def list_audit_events(self, limit: int = 100) -> List[AuditEvent]:
        """Return the most recent audit events, newest first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_events ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_audit_event(row) for row in rows]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _resolve_role_ids(self, conn: sqlite3.Connection, names: Iterable[str]) -> List[int]:
        role_ids: List[int] = []
        for name in names:
            row = conn.execute("SELECT id FROM roles WHERE name = ?", (name.strip(),)).fetchone()
            if row is None:
                raise KeyError(f"Unknown role '{name}'")
            role_ids.append(int(row["id"]))
        return role_ids

    def _row_to_role(self, row: sqlite3.Row) -> Role:
        return Role(
            id=int(row["id"]),
            name=str(row["name"]),
            description=row["description"],
        )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            email=str(row["email"]),
            first_name=str(row["first_name"]),
            last_name=str(row["last_name"]),
            phone_number=row["phone_number"],
            password_hash=str(row["password_hash"]),
            account_balance=float(row["account_balance"]),
            is_active=bool(row["is_active"]),
            passport_number=row["passport_number"],
            social_security_number=row["social_security_number"],
            created_at=_parse_datetime(str(row["created_at"])),
        )

    def _row_to_audit_event(self, row: sqlite3.Row) -> AuditEvent:
        target = row["target_user_id"]
        return AuditEvent(
            id=int(row["id"]),
            action=str(row["action"]),
            actor=str(row["actor"]),
            target_user_id=int(target) if target is not None else None,
            detail=str(row["detail"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
