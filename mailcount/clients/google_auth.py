"""
Google OAuth utilities.

These helpers build the consent URL and talk to the token endpoint for the
installed-app authorization-code flow.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlencode

import httpx

from mailcount.models.oauth import ClientSecretDocument, CredentialRecord


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


def _token_payload(response: httpx.Response) -> Dict[str, Any]:
    """Decode a token endpoint response, rejecting anything but a JSON object."""
    if response.status_code != HTTPStatus.OK:
        raise OAuthTokenExchangeError(response.text)
    try:
        payload = response.json()
    except ValueError as exc:
        raise OAuthTokenExchangeError("Token endpoint returned a non-JSON body.") from exc
    if not isinstance(payload, dict):
        raise OAuthTokenExchangeError("Token endpoint returned an unexpected payload.")
    return payload


class GoogleOAuthClient:
    """Build Google authorization URLs and exchange authorization codes."""

    def __init__(
        self,
        client_secret: ClientSecretDocument,
        scopes: Sequence[str],
        *,
        timeout: float = 10.0,
    ) -> None:
        self._secret = client_secret
        self._scopes = tuple(scopes)
        self._timeout = timeout

    def build_authorization_url(self, state: str, *, redirect_uri: str) -> str:
        """Construct the Google OAuth consent URL."""
        params = {
            "client_id": self._secret.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._scopes),
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }
        return f"{self._secret.auth_uri}?{urlencode(params)}"

    async def exchange_authorization_code(
        self, code: str, *, redirect_uri: str
    ) -> CredentialRecord:
        """Exchange an authorization code for a credential record."""
        payload = {
            "code": code,
            "client_id": self._secret.client_id,
            "client_secret": self._secret.client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        }

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._secret.token_uri, data=payload)

        token_payload = _token_payload(response)
        if not token_payload.get("access_token") or not token_payload.get("expires_in"):
            raise OAuthTokenExchangeError("Incomplete token payload returned from Google.")

        try:
            return CredentialRecord.from_token_response(
                token_payload, fallback_scopes=self._scopes
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise OAuthTokenExchangeError("Malformed token payload returned from Google.") from exc

    async def refresh_token(self, refresh_token: str) -> Tuple[str, int, Optional[str]]:
        """
        Refresh the access token using a stored refresh token.

        Returns a tuple of (access_token, expires_in_seconds, rotated_refresh_token).
        """
        payload = {
            "client_id": self._secret.client_id,
            "client_secret": self._secret.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._secret.token_uri, data=payload)

        token_payload = _token_payload(response)
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        rotated = token_payload.get("refresh_token")

        if not isinstance(access_token, str) or not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Google.")
        if rotated is not None and not isinstance(rotated, str):
            raise OAuthTokenExchangeError("Malformed refresh payload returned from Google.")
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError) as exc:
            raise OAuthTokenExchangeError(
                "Malformed refresh payload returned from Google."
            ) from exc

        return access_token, expires_in, rotated


__all__ = [
    "GoogleOAuthClient",
    "OAuthTokenExchangeError",
]
