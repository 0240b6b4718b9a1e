"""Pydantic schemas for sign-up and account management endpoints."""
from typing import Any

from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    """Schema for creating a new account."""

    email: str = Field(min_length=3, max_length=254)
    password: str = Field(min_length=6, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: str = Field(description="Directory role: 'patients' or 'doctors'")


class SignedUpUser(BaseModel):
    """Account data returned after sign-up."""

    uid: str
    first_name: str
    last_name: str
    role: str
    admin: bool
    profile: dict[str, Any] | None = None


class SignUpResponse(BaseModel):
    """Response for a successful sign-up."""

    message: str
    user: SignedUpUser
    token: str = Field(description="Custom token the client exchanges for an ID token")


class AccountActionRequest(BaseModel):
    """Schema for applying an action to a set of accounts."""

    ids: list[str] = Field(min_length=1)
    action: str = Field(description="One of: delete, enable, disable, verify, falsify")


class AccountActionResponse(BaseModel):
    """Response for an applied account action."""

    message: str
    updated_user_ids: list[str]
