"""Pydantic schemas for the authentication envelope returned by ``/auth``."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """Public profile of an authenticated account."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    object_id: str | None = Field(None, alias="_id")
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str
    phone: str | None = None
    role: Literal["user", "admin"] = "user"
    is_verified: bool = Field(False, alias="isVerified")
    favorites: list[Any] = Field(
        default_factory=list,
        description=(
            "Favorited properties. Populated documents when served by /auth/me,"
            " bare identifiers in older payloads."
        ),
    )


class AuthData(BaseModel):
    token: str
    user: User


class AuthResponse(BaseModel):
    """Outcome of a login or registration attempt.

    Failures are reported through ``success=False`` and a user-facing
    ``message`` rather than exceptions, as the login form expects.
    """

    success: bool
    message: str
    data: AuthData | None = None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    phone: str = Field("", max_length=32)
    password: str = Field(..., min_length=6)


__all__ = ["AuthData", "AuthResponse", "LoginRequest", "RegisterRequest", "User"]
