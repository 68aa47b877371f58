"""Pydantic schemas for the authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    """Username/password pair submitted to login and registration."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=64,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Account name; compared case-insensitively.",
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=256,
        description="Plain-text password, never logged.",
    )


class AuthResponse(BaseModel):
    username: str = Field(..., description="Username as submitted.")
    status: str = Field(..., description="'authenticated' or 'registered'.")
    remaining_attempts: int | None = Field(
        default=None,
        description="Requests left for this IP in the tightest window.",
    )


class CleanupResponse(BaseModel):
    deleted: int = Field(..., ge=0, description="Number of rate limit records removed.")
