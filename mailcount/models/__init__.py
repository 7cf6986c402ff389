"""Domain model exports."""

from .oauth import ClientSecretDocument, CredentialRecord

__all__ = ["ClientSecretDocument", "CredentialRecord"]
