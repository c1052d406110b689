"""User management operations shared by both API surfaces."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from .database import Database
from .errors import ConflictError, NotFoundError
from .models import ADMIN_ROLE, User
from .schemas import ProfileUpdateRequest

logger = logging.getLogger("accessdemo.users")

DEFAULT_ACCOUNT_BALANCE = 1000.0


class UserService:
    """Business rules on top of :class:`Database`.

    Lookups raise :class:`NotFoundError` instead of returning ``None`` and
    duplicate emails surface as :class:`ConflictError`. The service performs
    no authorization; callers on the secure surface run the policy guard
    first.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    @property
    def database(self) -> Database:
        return self._database

    def get_user(self, user_id: int) -> User:
        user = self._database.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def get_user_by_email(self, email: str) -> User:
        user = self._database.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def list_users(self) -> List[User]:
        return self._database.list_users()

    def user_exists(self, user_id: int) -> bool:
        return self._database.user_exists(user_id)

    def roles_for(self, user_id: int) -> List[str]:
        return self._database.list_user_roles(user_id)

    def create_user(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role_name: str,
        **extras: object,
    ) -> User:
        """Create an account holding ``role_name`` with the default balance."""

        extras.setdefault("account_balance", DEFAULT_ACCOUNT_BALANCE)
        if self._database.get_user_by_email(email) is not None:
            raise ConflictError("Email already in use")
        try:
            user = self._database.create_user(
                email,
                password,
                first_name=first_name,
                last_name=last_name,
                roles=[role_name],
                **extras,  # type: ignore[arg-type]
            )
        except KeyError as exc:
            raise NotFoundError("Role not found") from exc
        except ValueError as exc:
            raise ConflictError(str(exc)) from exc

        logger.info("Created user %s with role %s", user.id, role_name)
        return user

    def update_profile(self, user_id: int, update: ProfileUpdateRequest) -> User:
        """Apply a self-service profile update.

        Only the allow-listed fields of ``update`` are written; roles,
        balance, password, active flag and identity documents are untouched.
        """

        try:
            user = self._database.update_user_profile(
                user_id,
                first_name=update.first_name,
                last_name=update.last_name,
                email=update.email,
                phone_number=update.phone_number,
            )
        except ValueError as exc:
            raise ConflictError(str(exc)) from exc
        if user is None:
            raise NotFoundError("User not found")
        return user

    def grant_role(self, user_id: int, role_name: str) -> User:
        try:
            user = self._database.add_role_to_user(user_id, role_name)
        except KeyError as exc:
            raise NotFoundError("Role not found") from exc
        if user is None:
            raise NotFoundError("User not found")
        return user

    def add_admin_role(self, user_id: int) -> User:
        return self.grant_role(user_id, ADMIN_ROLE)

    def overwrite_user(
        self,
        user_id: int,
        fields: Dict[str, object],
        roles: Optional[Sequence[str]] = None,
    ) -> User:
        """Bind every supplied field onto the stored record.

        This is the mass-assignment path exposed by the vulnerable surface.
        """

        try:
            user = self._database.overwrite_user(user_id, roles=roles, **fields)
        except KeyError as exc:
            raise NotFoundError("Role not found") from exc
        except ValueError as exc:
            raise ConflictError(str(exc)) from exc
        if user is None:
            raise NotFoundError("User not found")
        return user


__all__ = ["DEFAULT_ACCOUNT_BALANCE", "UserService"]
