"""
Error taxonomy shared by the token store, the authorization flow and the counter.

Every error carries a stable, user-safe message. Raw provider text is kept on the
instance for logging only.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class MailCountError(Exception):
    """Base class for every error raised by the service core."""

    public_message = "The request could not be completed."


class CredentialsNotConfiguredError(MailCountError):
    """Raised when neither an uploaded nor a file-based client secret exists."""

    public_message = "Gmail client credentials are not configured."


class InvalidCredentialsFormatError(MailCountError, ValueError):
    """Raised when a client secret document does not parse."""

    public_message = "Invalid credentials file or format."


class IntegrityError(MailCountError, ValueError):
    """Raised when ciphertext fails authentication or is malformed."""


class CorruptedRecordError(IntegrityError):
    """Raised when a stored credential cannot be decrypted or deserialized."""

    def __init__(self, key: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Stored record '{key}' failed integrity verification.")
        self.key = key


class KeyFileError(MailCountError):
    """Raised when the encryption key file exists but cannot be used."""


class CallbackPortExhaustedError(MailCountError):
    """Raised when no local port in the retry range could be bound."""

    public_message = "Could not start the local OAuth callback listener."

    def __init__(self, first_port: int, last_port: int) -> None:
        super().__init__(
            f"Could not bind the OAuth callback listener on ports {first_port}-{last_port}."
        )
        self.first_port = first_port
        self.last_port = last_port


class AuthorizationExchangeError(MailCountError):
    """Raised when the authorization code cannot be exchanged for tokens."""

    public_message = "Gmail authentication failed. Please check your credentials."


class OperationCancelledError(MailCountError):
    """Raised when the caller cancelled or disconnected mid-operation."""

    public_message = "The request was cancelled."


class ProviderErrorKind(str, Enum):
    """Classification of provider faults used to choose a response status."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    OTHER = "other"


_PROVIDER_MESSAGES = {
    ProviderErrorKind.AUTH: "Gmail authentication failed. Please check your credentials.",
    ProviderErrorKind.RATE_LIMIT: "Gmail API rate limit exceeded. Please try again later.",
    ProviderErrorKind.OTHER: "Failed to communicate with the Gmail API.",
}


class ProviderApiError(MailCountError):
    """Classified fault returned by the mail provider."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(_PROVIDER_MESSAGES[kind])
        self.kind = kind
        self.status_code = status_code
        self.detail = detail

    @property
    def public_message(self) -> str:  # type: ignore[override]
        return _PROVIDER_MESSAGES[self.kind]


__all__ = [
    "AuthorizationExchangeError",
    "CallbackPortExhaustedError",
    "CorruptedRecordError",
    "CredentialsNotConfiguredError",
    "IntegrityError",
    "InvalidCredentialsFormatError",
    "KeyFileError",
    "MailCountError",
    "OperationCancelledError",
    "ProviderApiError",
    "ProviderErrorKind",
]
