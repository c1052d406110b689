"""Deliberately vulnerable user API used to demonstrate Broken Access Control.

None of these routes authenticate the caller, check ownership or check
roles, and all of them bind or return every stored field but the password
hash:

* ``PUT /users/{id}`` binds the whole payload onto the record (mass assignment)
* ``GET /users/{id}`` returns any record to anyone (IDOR)
* ``GET /users/all`` and ``POST /users/{id}/promote`` skip the role check
  (missing function-level access control)
* every response carries the balance and identity documents
  (sensitive data exposure)
* ``GET /users/exists/{id}`` allows sequential id enumeration

Never mount this router outside a lab environment.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Union

from fastapi import APIRouter

from .models import ADMIN_ROLE, User
from .schemas import ExistsResponse, FullUserPayload, FullUserView, RolePayload
from .users import UserService

logger = logging.getLogger("accessdemo.vulnerable")


def _full_view(service: UserService, user: User) -> FullUserView:
    roles = {role.name: role for role in service.database.list_roles()}
    return FullUserView(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        account_balance=user.account_balance,
        roles=[
            RolePayload(id=roles[name].id, name=name, description=roles[name].description)
            for name in service.roles_for(user.id)
            if name in roles
        ],
        active=user.is_active,
        passport_number=user.passport_number,
        social_security_number=user.social_security_number,
    )


def build_vulnerable_router(service: UserService) -> APIRouter:
    """Return the router mounted under ``/vulnerable``."""

    router = APIRouter(prefix="/vulnerable", tags=["vulnerable"])

    @router.get("/users/all", response_model=List[FullUserView])
    async def list_users() -> List[FullUserView]:
        return [_full_view(service, user) for user in service.list_users()]

    @router.get("/users/exists/{user_id}", response_model=ExistsResponse)
    async def user_exists(user_id: int) -> ExistsResponse:
        return ExistsResponse(id=user_id, exists=service.user_exists(user_id))

    @router.get("/users/{user_id}", response_model=FullUserView)
    async def read_user(user_id: int) -> FullUserView:
        return _full_view(service, service.get_user(user_id))

    @router.put("/users/{user_id}", response_model=FullUserView)
    async def update_user(user_id: int, payload: FullUserPayload) -> FullUserView:
        submitted = payload.model_dump(exclude_unset=True, exclude={"id", "roles"})
        if "active" in submitted:
            submitted["is_active"] = submitted.pop("active")
        if submitted.get("account_balance") is None:
            submitted.pop("account_balance", None)
        else:
            logger.warning(
                "SECURITY BREACH: account balance of user %s set to %s",
                user_id,
                submitted["account_balance"],
            )

        role_names = [role.name for role in payload.roles or []]
        if role_names:
            logger.warning("SECURITY BREACH: roles of user %s replaced with %s", user_id, role_names)

        updated = service.overwrite_user(user_id, submitted, roles=role_names)
        return _full_view(service, updated)

    @router.post("/users/{user_id}/promote")
    async def promote_user(user_id: int) -> Dict[str, str]:
        service.add_admin_role(user_id)
        logger.warning("SECURITY BREACH: user %s promoted to %s", user_id, ADMIN_ROLE)
        return {"message": "User promoted to administrator", "userId": str(user_id)}

    @router.post("/users/{user_id}/add-role/{role_name}")
    async def add_role(user_id: int, role_name: str) -> Dict[str, Union[str, int]]:
        service.grant_role(user_id, role_name)
        logger.warning("SECURITY BREACH: role %s added to user %s", role_name, user_id)
        return {"message": "Role added", "userId": user_id, "role": role_name}

    return router


__all__ = ["build_vulnerable_router"]
