"""Request and response shapes for the user APIs.

The secure surface only ever binds :class:`ProfileUpdateRequest` and only
ever emits :class:`UserResponse` / :class:`UserWithRolesResponse`. Fields
that are not declared on those models cannot cross the boundary in either
direction. The ``Full*`` models mirror the storage record and are used by
the vulnerable surface alone.
"""
from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

if TYPE_CHECKING:
    from .models import AuditEvent, User

_PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ProfileUpdateRequest(_CamelModel):
    """Self-service profile update: names, email and phone number only."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: str = Field(..., alias="firstName", max_length=100)
    last_name: str = Field(..., alias="lastName", max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")

    @field_validator("first_name", "last_name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("phone_number")
    @classmethod
    def _validate_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        stripped = value.strip()
        if not _PHONE_PATTERN.match(stripped):
            raise ValueError("invalid phone number")
        return stripped


class UserResponse(_CamelModel):
    id: int
    email: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    active: bool

    @classmethod
    def from_user(cls, user: "User") -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            phone_number=user.phone_number,
            active=user.is_active,
        )


class UserWithRolesResponse(UserResponse):
    roles: List[str] = Field(default_factory=list)

    @classmethod
    def from_user_and_roles(cls, user: "User", roles: List[str]) -> "UserWithRolesResponse":
        base = UserResponse.from_user(user)
        return cls(**base.model_dump(), roles=sorted(roles))


class RolePayload(_CamelModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = None


class FullUserPayload(_CamelModel):
    """Every column of the stored user record, all optional."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[int] = None
    email: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    account_balance: Optional[float] = Field(default=None, alias="accountBalance")
    active: Optional[bool] = None
    passport_number: Optional[str] = Field(default=None, alias="passportNumber")
    social_security_number: Optional[str] = Field(default=None, alias="socialSecurityNumber")
    roles: Optional[List[RolePayload]] = None


class FullUserView(_CamelModel):
    id: int
    email: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    account_balance: float = Field(..., alias="accountBalance")
    roles: List[RolePayload] = Field(default_factory=list)
    active: bool
    passport_number: Optional[str] = Field(default=None, alias="passportNumber")
    social_security_number: Optional[str] = Field(default=None, alias="socialSecurityNumber")


class ErrorResponse(BaseModel):
    error: str
    message: str


class PromoteResponse(_CamelModel):
    message: str
    user_id: int = Field(..., alias="userId")


class ExistsResponse(BaseModel):
    id: int
    exists: bool


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=1024)


class LoginResponse(_CamelModel):
    token: str
    token_type: str = Field(default="bearer", alias="tokenType")
    expires_in: int = Field(..., alias="expiresIn")


class AuditEventResponse(_CamelModel):
    id: int
    action: str
    actor: str
    target_user_id: Optional[int] = Field(default=None, alias="targetUserId")
    detail: str
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_event(cls, event: "AuditEvent") -> "AuditEventResponse":
        return cls(
            id=event.id,
            action=event.action,
            actor=event.actor,
            target_user_id=event.target_user_id,
            detail=event.detail,
            created_at=event.created_at,
        )


__all__ = [
    "AuditEventResponse",
    "ErrorResponse",
    "ExistsResponse",
    "FullUserPayload",
    "FullUserView",
    "LoginRequest",
    "LoginResponse",
    "PromoteResponse",
    "ProfileUpdateRequest",
    "RolePayload",
    "UserResponse",
    "UserWithRolesResponse",
]
