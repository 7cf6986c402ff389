"""Schemas returned by the email counting and credential endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmailCountResponse(BaseModel):
    """Count of messages received from one sender."""

    sender_email: str = Field(..., description="Email address of the sender.")
    email_count: int = Field(..., ge=0, description="Number of messages from the sender.")
    cached_result: bool = Field(False, description="True when served from the count cache.")
    timestamp: datetime = Field(default_factory=_utcnow)


class CredentialsUploadResponse(BaseModel):
    status: str = "success"
    message: str = "Credentials stored successfully"
    filename: str
    size: int
    timestamp: datetime = Field(default_factory=_utcnow)


class CredentialsClearedResponse(BaseModel):
    status: str = "success"
    message: str = "Credentials cleared, tokens deleted, and cache invalidated successfully"
    uploaded_secret_cleared: bool
    stored_token_cleared: bool
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorResponse(BaseModel):
    status: int
    message: str
    path: str
    timestamp: datetime = Field(default_factory=_utcnow)


__all__ = [
    "CredentialsClearedResponse",
    "CredentialsUploadResponse",
    "EmailCountResponse",
    "ErrorResponse",
]
