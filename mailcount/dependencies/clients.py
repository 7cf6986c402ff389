"""
Factory functions to provide shared clients and services as FastAPI dependencies.

The token store, resolver and controller are process-wide singletons; the CLI
uses the same factories so both surfaces share one storage directory.
"""

from datetime import timedelta
from functools import lru_cache

from mailcount.clients import GmailSessionFactory, GoogleOAuthClient
from mailcount.core.config import get_settings
from mailcount.services import (
    AuthorizationFlowController,
    CredentialAdminService,
    CredentialSourceResolver,
    EncryptedTokenStore,
    MessageCountAggregator,
    SenderCountCache,
    SenderCountService,
    TokenRefreshPolicy,
)
from mailcount.services.authorization_flow import log_only, open_in_browser


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_store() -> EncryptedTokenStore:
    """Provide the encrypted credential store."""
    return EncryptedTokenStore(_settings().gmail.tokens_directory)


@lru_cache()
def get_credential_resolver() -> CredentialSourceResolver:
    """Provide the client secret resolver that owns uploaded documents."""
    return CredentialSourceResolver(_settings().gmail.client_secret_file)


@lru_cache()
def get_authorization_controller() -> AuthorizationFlowController:
    """Provide the OAuth flow controller for the configured identity."""
    settings = _settings()
    timeout = settings.oauth.http_timeout_seconds
    return AuthorizationFlowController(
        get_credential_resolver(),
        get_token_store(),
        scopes=settings.gmail.scopes,
        identity=settings.gmail.identity,
        callback_host=settings.oauth.callback_host,
        callback_port=settings.oauth.callback_port,
        callback_port_attempts=settings.oauth.callback_port_attempts,
        policy=TokenRefreshPolicy(
            margin=timedelta(seconds=settings.oauth.refresh_margin_seconds)
        ),
        oauth_client_factory=lambda secret, scopes: GoogleOAuthClient(
            secret, scopes, timeout=timeout
        ),
        url_opener=open_in_browser if settings.oauth.open_browser else log_only,
    )


@lru_cache()
def get_gmail_session_factory() -> GmailSessionFactory:
    """Provide the factory that opens authorized Gmail sessions."""
    return GmailSessionFactory(
        get_authorization_controller(),
        scopes=_settings().gmail.scopes,
    )


@lru_cache()
def get_sender_count_service() -> SenderCountService:
    """Provide the sender counting service with its in-process cache."""
    settings = _settings()
    return SenderCountService(
        session_factory=get_gmail_session_factory(),
        aggregator=MessageCountAggregator(page_size=settings.gmail.page_size),
        cache=SenderCountCache(settings.count_cache_ttl_seconds),
    )


@lru_cache()
def get_credential_admin_service() -> CredentialAdminService:
    """Provide credential upload/clear operations."""
    return CredentialAdminService(
        resolver=get_credential_resolver(),
        controller=get_authorization_controller(),
        counter=get_sender_count_service(),
    )


__all__ = [
    "get_authorization_controller",
    "get_credential_admin_service",
    "get_credential_resolver",
    "get_gmail_session_factory",
    "get_sender_count_service",
    "get_token_store",
]
