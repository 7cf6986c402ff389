"""Gmail API client wrapper scoped to a single request."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from mailcount.models.oauth import ClientSecretDocument, CredentialRecord

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from mailcount.services.authorization_flow import AuthorizationFlowController

logger = logging.getLogger(__name__)

USER_ID = "me"
_LIST_FIELDS = "messages(id),nextPageToken"


def build_google_credentials(
    record: CredentialRecord,
    client_secret: ClientSecretDocument,
    scopes: Sequence[str],
) -> Credentials:
    """Translate a stored record into a google-auth credentials object."""
    expiry = record.expires_at
    if expiry is not None:
        # google-auth compares against naive UTC datetimes.
        expiry = expiry.replace(tzinfo=None)
    return Credentials(
        token=record.access_token,
        refresh_token=record.refresh_token,
        token_uri=client_secret.token_uri,
        client_id=client_secret.client_id,
        client_secret=client_secret.client_secret,
        scopes=list(record.scopes or scopes),
        expiry=expiry,
    )


class GmailClientSession:
    """Authorized Gmail resource used for the duration of one call."""

    def __init__(self, credentials: Credentials) -> None:
        self._service = build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def list_messages(
        self, *, query: str, page_token: Optional[str], max_results: int
    ) -> Dict[str, Any]:
        """Fetch one page of message ids matching ``query``."""
        request = self._service.users().messages().list(
            userId=USER_ID,
            q=query,
            maxResults=max_results,
            pageToken=page_token,
            fields=_LIST_FIELDS,
        )
        return request.execute()

    def close(self) -> None:
        self._service.close()

    def __enter__(self) -> "GmailClientSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class GmailSessionFactory:
    """Open Gmail sessions backed by the authorization flow's credentials."""

    def __init__(
        self,
        controller: "AuthorizationFlowController",
        *,
        scopes: Sequence[str],
    ) -> None:
        self._controller = controller
        self._scopes = tuple(scopes)

    async def open(self) -> GmailClientSession:
        record, client_secret = await self._controller.get_authorized_credentials()
        credentials = build_google_credentials(record, client_secret, self._scopes)
        session = await asyncio.to_thread(GmailClientSession, credentials)
        logger.debug("Opened Gmail session")
        return session


__all__ = [
    "GmailClientSession",
    "GmailSessionFactory",
    "USER_ID",
    "build_google_credentials",
]
