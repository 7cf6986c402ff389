"""
Installed-app OAuth flow orchestration.

``get_credentials`` walks the credential lifecycle for the single configured
identity::

    load secret -> load stored credential -> reuse | refresh | authorize -> persist

Authorization binds a loopback listener (retrying on the next port when one is
taken), opens the consent URL and blocks until the browser is redirected back.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import secrets
import threading
import webbrowser
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple

import httpx

from mailcount.clients.callback_listener import CallbackResponse, LocalCallbackListener
from mailcount.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from mailcount.core.audit import AuditEvent, audit
from mailcount.core.exceptions import (
    AuthorizationExchangeError,
    CallbackPortExhaustedError,
    CorruptedRecordError,
)
from mailcount.models.oauth import ClientSecretDocument, CredentialRecord
from mailcount.services.credential_source import CredentialSourceResolver
from mailcount.services.token_refresh import TokenAction, TokenRefreshPolicy
from mailcount.services.token_store import EncryptedTokenStore

logger = logging.getLogger(__name__)


class CallbackListener(Protocol):
    redirect_uri: str

    def wait_for_response(self) -> Optional[CallbackResponse]:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "CallbackListener":
        ...

    def __exit__(self, *exc_info) -> None:
        ...


ListenerFactory = Callable[[str, int], CallbackListener]
OAuthClientFactory = Callable[[ClientSecretDocument, Sequence[str]], GoogleOAuthClient]


def open_in_browser(url: str) -> None:
    """Default URL opener: log the consent URL and try the desktop browser."""
    logger.info("Open the following URL to authorize Gmail access: %s", url)
    try:
        webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.warning("Could not launch a browser: %s", exc)


def log_only(url: str) -> None:
    logger.info("Open the following URL to authorize Gmail access: %s", url)


def bind_callback_listener(
    host: str,
    port: int,
    attempts: int,
    factory: ListenerFactory = LocalCallbackListener,
) -> CallbackListener:
    """Bind the first free port in ``port .. port + attempts - 1``."""
    last_port = port + max(attempts, 1) - 1
    for candidate in range(port, last_port + 1):
        try:
            listener = factory(host, candidate)
        except OSError as exc:
            if exc.errno != errno.EADDRINUSE:
                raise
            logger.warning("OAuth callback port %s is in use, trying the next one", candidate)
            continue
        logger.info("OAuth callback listener bound on %s:%s", host, candidate)
        return listener
    raise CallbackPortExhaustedError(port, last_port)


class AuthorizationFlowController:
    """Provides a valid credential record for the configured identity."""

    def __init__(
        self,
        resolver: CredentialSourceResolver,
        token_store: EncryptedTokenStore,
        *,
        scopes: Sequence[str],
        identity: str = "user",
        callback_host: str = "localhost",
        callback_port: int = 8888,
        callback_port_attempts: int = 3,
        policy: Optional[TokenRefreshPolicy] = None,
        oauth_client_factory: Optional[OAuthClientFactory] = None,
        listener_factory: ListenerFactory = LocalCallbackListener,
        url_opener: Callable[[str], None] = open_in_browser,
    ) -> None:
        self._resolver = resolver
        self._store = token_store
        self._scopes = tuple(scopes)
        self._identity = identity
        self._callback_host = callback_host
        self._callback_port = callback_port
        self._callback_port_attempts = callback_port_attempts
        self._policy = policy or TokenRefreshPolicy()
        self._oauth_client_factory = oauth_client_factory or (
            lambda secret, scopes: GoogleOAuthClient(secret, scopes)
        )
        self._listener_factory = listener_factory
        self._url_opener = url_opener
        self._locks: Dict[str, asyncio.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def identity(self) -> str:
        return self._identity

    def _lock_for(self, identity: str) -> asyncio.Lock:
        with self._locks_guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = self._locks[identity] = asyncio.Lock()
            return lock

    def _load_existing(self) -> Optional[CredentialRecord]:
        try:
            return self._store.get(self._identity)
        except CorruptedRecordError:
            logger.warning("Stored credential failed integrity check; re-authorization required")
            self._store.delete(self._identity)
            audit(AuditEvent.TOKEN_CORRUPTED, identity=self._identity, outcome="deleted")
            return None

    def _persist(self, record: CredentialRecord) -> None:
        self._store.set(self._identity, record)
        audit(AuditEvent.TOKEN_STORED, identity=self._identity)

    async def get_credentials(self) -> CredentialRecord:
        """Return a usable credential, refreshing or authorizing as required."""
        record, _ = await self.get_authorized_credentials()
        return record

    async def get_authorized_credentials(
        self,
    ) -> Tuple[CredentialRecord, ClientSecretDocument]:
        """Return a usable credential together with the client secret it belongs to."""
        async with self._lock_for(self._identity):
            client_secret = self._resolver.resolve()
            oauth_client = self._oauth_client_factory(client_secret, self._scopes)

            record = self._load_existing()
            action = self._policy.decide(record)
            logger.debug("Credential decision for stored identity: %s", action.value)

            if action is TokenAction.REUSE:
                return record, client_secret

            if action is TokenAction.REFRESH:
                audit(AuditEvent.REFRESH_ATTEMPTED, identity=self._identity)
                refreshed = await self._policy.refresh(record, oauth_client)
                if refreshed is not None:
                    self._persist(refreshed)
                    logger.info("Refreshed Gmail access token")
                    return refreshed, client_secret
                audit(AuditEvent.REFRESH_FAILED, identity=self._identity, outcome="need_auth")

            record = await self._authorize(oauth_client)
            self._persist(record)
            return record, client_secret

    async def authorize(
        self, client_secret: Optional[ClientSecretDocument] = None
    ) -> CredentialRecord:
        """Run the consent flow unconditionally and persist the result."""
        async with self._lock_for(self._identity):
            secret = client_secret or self._resolver.resolve()
            record = await self._authorize(self._oauth_client_factory(secret, self._scopes))
            self._persist(record)
            return record

    async def _authorize(self, oauth_client: GoogleOAuthClient) -> CredentialRecord:
        audit(AuditEvent.AUTHORIZATION_STARTED, identity=self._identity, outcome="pending")
        listener = bind_callback_listener(
            self._callback_host,
            self._callback_port,
            self._callback_port_attempts,
            self._listener_factory,
        )
        with listener:
            state = secrets.token_urlsafe(24)
            redirect_uri = listener.redirect_uri
            self._url_opener(
                oauth_client.build_authorization_url(state, redirect_uri=redirect_uri)
            )
            response = await asyncio.to_thread(listener.wait_for_response)

            if response is None:
                raise self._failed("listener closed before the redirect arrived")
            if response.error:
                raise self._failed(f"authorization server returned '{response.error}'")
            if not response.code:
                raise self._failed("redirect did not include an authorization code")
            if not response.state or not secrets.compare_digest(response.state, state):
                raise self._failed("state parameter mismatch")

            try:
                record = await oauth_client.exchange_authorization_code(
                    response.code, redirect_uri=redirect_uri
                )
            except OAuthTokenExchangeError as exc:
                logger.debug("Token endpoint rejected the code: %s", exc)
                raise self._failed("token endpoint rejected the authorization code") from exc
            except httpx.HTTPError as exc:
                logger.debug("Token endpoint unreachable: %s", exc)
                raise self._failed("token endpoint could not be reached") from exc

        audit(AuditEvent.AUTHORIZATION_COMPLETED, identity=self._identity)
        logger.info("Gmail authorization completed")
        return record

    def _failed(self, reason: str) -> AuthorizationExchangeError:
        audit(
            AuditEvent.AUTHORIZATION_FAILED,
            identity=self._identity,
            outcome="failed",
            reason=reason,
        )
        return AuthorizationExchangeError(f"Authorization failed: {reason}.")

    def forget(self) -> bool:
        """Delete the stored credential so the next call re-authorizes."""
        removed = self._store.delete(self._identity)
        if removed:
            audit(AuditEvent.TOKEN_CLEARED, identity=self._identity)
        return removed


__all__ = [
    "AuthorizationFlowController",
    "CallbackListener",
    "bind_callback_listener",
    "log_only",
    "open_in_browser",
]
