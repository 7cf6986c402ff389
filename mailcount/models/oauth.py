"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mailcount.core.exceptions import InvalidCredentialsFormatError

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialRecord(BaseModel):
    """Access/refresh token pair persisted by the encrypted token store."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = Field(
        None, description="UTC instant after which the access token is rejected."
    )
    scopes: tuple[str, ...] = ()
    token_type: str = "Bearer"
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("expires_at", "updated_at")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def remaining(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        """Return the validity left before expiry, or ``None`` when unknown."""
        if self.expires_at is None:
            return None
        return self.expires_at - (now or _utcnow())

    @classmethod
    def from_token_response(
        cls,
        payload: Dict[str, Any],
        *,
        now: Optional[datetime] = None,
        fallback_scopes: Iterable[str] = (),
    ) -> "CredentialRecord":
        """Build a record from a token endpoint JSON payload."""
        issued_at = now or _utcnow()
        expires_in = payload.get("expires_in")
        scope = payload.get("scope")
        scopes = tuple(scope.split()) if scope else tuple(fallback_scopes)
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=issued_at + timedelta(seconds=int(expires_in)) if expires_in else None,
            scopes=scopes,
            token_type=payload.get("token_type", "Bearer"),
            updated_at=issued_at,
        )


class ClientSecretDocument(BaseModel):
    """OAuth client registration as downloaded from the Google Cloud console."""

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI
    redirect_uris: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def parse(cls, raw: str | bytes) -> "ClientSecretDocument":
        """Parse a ``{"installed": {...}}`` or ``{"web": {...}}`` document."""
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidCredentialsFormatError("Credentials must be UTF-8 JSON.") from exc
        if not raw or not raw.strip():
            raise InvalidCredentialsFormatError("Credentials JSON cannot be empty.")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidCredentialsFormatError("Credentials are not valid JSON.") from exc

        if not isinstance(data, dict):
            raise InvalidCredentialsFormatError("Credentials JSON must be an object.")
        section = data.get("installed") or data.get("web")
        if not isinstance(section, dict):
            raise InvalidCredentialsFormatError(
                "Credentials JSON must contain an 'installed' or 'web' section."
            )

        try:
            return cls.model_validate(section)
        except ValidationError as exc:
            fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
            raise InvalidCredentialsFormatError(
                f"Credentials JSON has missing or invalid fields: {fields}."
            ) from exc


__all__ = [
    "ClientSecretDocument",
    "CredentialRecord",
    "GOOGLE_AUTH_URI",
    "GOOGLE_TOKEN_URI",
]
