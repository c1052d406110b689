"""Secure user API: allow-listed payloads behind the authorization policy."""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from .audit import AuditTrail
from .models import ADMIN_ROLE
from .policy import Operation, PolicyGuard
from .schemas import (
    AuditEventResponse,
    ErrorResponse,
    PromoteResponse,
    ProfileUpdateRequest,
    UserResponse,
    UserWithRolesResponse,
)
from .security import Principal
from .users import UserService

logger = logging.getLogger("accessdemo.secure")

_DENIALS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def build_secure_router(service: UserService, guard: PolicyGuard, audit: AuditTrail) -> APIRouter:
    """Return the router mounted under ``/secure``."""

    router = APIRouter(prefix="/secure", tags=["secure"], responses=_DENIALS)

    @router.get("/users/me", response_model=UserWithRolesResponse)
    async def read_current_user(
        principal: Principal = Depends(guard.require(Operation.READ_SELF)),
    ) -> UserWithRolesResponse:
        user = service.get_user(principal.user_id)
        return UserWithRolesResponse.from_user_and_roles(user, service.roles_for(user.id))

    @router.get("/users/all", response_model=List[UserResponse])
    async def list_users(
        principal: Principal = Depends(guard.require(Operation.LIST_USERS)),
    ) -> List[UserResponse]:
        return [UserResponse.from_user(user) for user in service.list_users()]

    @router.get("/users/{user_id}", response_model=UserWithRolesResponse)
    async def read_user(
        user_id: int,
        principal: Principal = Depends(guard.require(Operation.READ_PROFILE)),
    ) -> UserWithRolesResponse:
        user = service.get_user(user_id)
        return UserWithRolesResponse.from_user_and_roles(user, service.roles_for(user.id))

    @router.put("/users/{user_id}", response_model=UserResponse)
    async def update_user(
        user_id: int,
        payload: ProfileUpdateRequest,
        principal: Principal = Depends(guard.require(Operation.UPDATE_PROFILE)),
    ) -> UserResponse:
        updated = service.update_profile(user_id, payload)
        logger.info("User %s updated their profile", principal.user_id)
        return UserResponse.from_user(updated)

    @router.post("/users/{user_id}/promote", response_model=PromoteResponse)
    async def promote_user(
        user_id: int,
        principal: Principal = Depends(guard.require(Operation.PROMOTE_USER)),
    ) -> PromoteResponse:
        service.add_admin_role(user_id)
        audit.role_granted(principal.email, user_id, ADMIN_ROLE)
        return PromoteResponse(message="User promoted to administrator", user_id=user_id)

    @router.get("/audit", response_model=List[AuditEventResponse])
    async def read_audit_log(
        limit: int = Query(default=100, ge=1, le=1000),
        principal: Principal = Depends(guard.require(Operation.READ_AUDIT_LOG)),
    ) -> List[AuditEventResponse]:
        return [AuditEventResponse.from_event(event) for event in audit.recent(limit)]

    return router


__all__ = ["build_secure_router"]
