"""
Administrative operations on the configured client secret and stored token.
"""

from __future__ import annotations

from mailcount.core.audit import AuditEvent, audit
from mailcount.models.oauth import ClientSecretDocument
from mailcount.services.authorization_flow import AuthorizationFlowController
from mailcount.services.credential_source import CredentialSourceResolver
from mailcount.services.sender_count import SenderCountService


class CredentialAdminService:
    """Upload or clear credentials and keep cached counts consistent with them."""

    def __init__(
        self,
        resolver: CredentialSourceResolver,
        controller: AuthorizationFlowController,
        counter: SenderCountService,
    ) -> None:
        self._resolver = resolver
        self._controller = controller
        self._counter = counter

    def upload_client_secret(self, raw: str | bytes) -> ClientSecretDocument:
        """Validate and activate an uploaded client secret document."""
        try:
            document = self._resolver.upload(raw)
        except ValueError:
            audit(AuditEvent.CREDENTIALS_UPLOADED, outcome="rejected")
            raise
        self._counter.invalidate_cache()
        audit(AuditEvent.CREDENTIALS_UPLOADED)
        return document

    def clear(self) -> dict:
        """Drop the uploaded secret and the stored token, then invalidate the cache."""
        secret_cleared = self._resolver.clear()
        token_cleared = self._controller.forget()
        self._counter.invalidate_cache()
        audit(
            AuditEvent.CREDENTIALS_CLEARED,
            uploaded_secret=secret_cleared,
            stored_token=token_cleared,
        )
        return {"uploaded_secret_cleared": secret_cleared, "stored_token_cleared": token_cleared}


__all__ = ["CredentialAdminService"]
