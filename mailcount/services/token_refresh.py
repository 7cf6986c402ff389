"""
Decide whether a stored credential can be reused, refreshed, or must be replaced.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Protocol, Tuple

import httpx

from mailcount.clients.google_auth import OAuthTokenExchangeError
from mailcount.models.oauth import CredentialRecord

logger = logging.getLogger(__name__)


class TokenAction(str, Enum):
    REUSE = "reuse"
    REFRESH = "refresh"
    NEED_AUTH = "need_auth"


class SupportsTokenRefresh(Protocol):
    async def refresh_token(self, refresh_token: str) -> Tuple[str, int, Optional[str]]:
        ...


class TokenRefreshPolicy:
    """Manages the reuse/refresh decision for one credential record."""

    DEFAULT_MARGIN = timedelta(minutes=5)

    def __init__(self, margin: timedelta = DEFAULT_MARGIN) -> None:
        self._margin = margin

    @property
    def margin(self) -> timedelta:
        return self._margin

    def decide(
        self, record: Optional[CredentialRecord], *, now: Optional[datetime] = None
    ) -> TokenAction:
        if record is None:
            return TokenAction.NEED_AUTH
        remaining = record.remaining(now)
        if remaining is not None and remaining > self._margin:
            return TokenAction.REUSE
        if record.refresh_token:
            return TokenAction.REFRESH
        return TokenAction.NEED_AUTH

    async def refresh(
        self,
        record: CredentialRecord,
        oauth_client: SupportsTokenRefresh,
        *,
        now: Optional[datetime] = None,
    ) -> Optional[CredentialRecord]:
        """Attempt one refresh; returns ``None`` when the caller must re-authorize."""
        if not record.refresh_token:
            return None

        refreshed_at = now or datetime.now(timezone.utc)
        try:
            access_token, expires_in, rotated = await oauth_client.refresh_token(
                record.refresh_token
            )
        except (OAuthTokenExchangeError, httpx.HTTPError) as exc:
            logger.warning("Token refresh failed: %s", type(exc).__name__)
            logger.debug("Token refresh failure detail: %s", exc)
            return None

        return record.model_copy(
            update={
                "access_token": access_token,
                "refresh_token": rotated or record.refresh_token,
                "expires_at": refreshed_at + timedelta(seconds=expires_in),
                "updated_at": refreshed_at,
            }
        )


__all__ = ["SupportsTokenRefresh", "TokenAction", "TokenRefreshPolicy"]
