"""Expose constructed client wrappers."""

from .callback_listener import CallbackResponse, LocalCallbackListener
from .gmail import GmailClientSession, GmailSessionFactory
from .google_auth import GoogleOAuthClient, OAuthTokenExchangeError

__all__ = [
    "CallbackResponse",
    "GmailClientSession",
    "GmailSessionFactory",
    "GoogleOAuthClient",
    "LocalCallbackListener",
    "OAuthTokenExchangeError",
]
