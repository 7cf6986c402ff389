"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_controller,
    get_credential_admin_service,
    get_credential_resolver,
    get_gmail_session_factory,
    get_sender_count_service,
    get_token_store,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_authorization_controller",
    "get_credential_admin_service",
    "get_credential_resolver",
    "get_gmail_session_factory",
    "get_sender_count_service",
    "get_token_store",
]
