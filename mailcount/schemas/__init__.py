"""Public schema exports."""

from .emails import (
    CredentialsClearedResponse,
    CredentialsUploadResponse,
    EmailCountResponse,
    ErrorResponse,
)

__all__ = [
    "CredentialsClearedResponse",
    "CredentialsUploadResponse",
    "EmailCountResponse",
    "ErrorResponse",
]
