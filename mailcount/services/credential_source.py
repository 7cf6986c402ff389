"""
Resolve the OAuth client secret from an uploaded document or a fallback file.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from mailcount.core.exceptions import CredentialsNotConfiguredError
from mailcount.models.oauth import ClientSecretDocument

logger = logging.getLogger(__name__)

UPLOAD_ENDPOINT = "POST /api/credentials"


class CredentialSourceResolver:
    """Owns the uploaded client secret and falls back to a well-known file."""

    def __init__(self, fallback_path: Path | str) -> None:
        self._fallback_path = Path(fallback_path)
        self._lock = threading.Lock()
        self._uploaded: Optional[ClientSecretDocument] = None

    @property
    def fallback_path(self) -> Path:
        return self._fallback_path

    @property
    def has_upload(self) -> bool:
        with self._lock:
            return self._uploaded is not None

    def upload(self, raw: str | bytes) -> ClientSecretDocument:
        """Validate and keep an uploaded client secret document."""
        document = ClientSecretDocument.parse(raw)
        with self._lock:
            self._uploaded = document
        logger.info("Stored uploaded client secret for client %s****", document.client_id[:4])
        return document

    def clear(self) -> bool:
        """Forget the uploaded document; returns whether one was present."""
        with self._lock:
            had_upload = self._uploaded is not None
            self._uploaded = None
        if had_upload:
            logger.info("Cleared uploaded client secret")
        return had_upload

    def resolve(self) -> ClientSecretDocument:
        """Return the uploaded document, else the parsed fallback file."""
        with self._lock:
            uploaded = self._uploaded
        if uploaded is not None:
            return uploaded

        try:
            raw = self._fallback_path.read_bytes()
        except FileNotFoundError:
            raise CredentialsNotConfiguredError(
                "No Gmail client credentials configured. Upload a client secret via "
                f"{UPLOAD_ENDPOINT} or place one at {self._fallback_path}."
            ) from None
        except OSError as exc:
            raise CredentialsNotConfiguredError(
                f"Gmail client secret file {self._fallback_path} could not be read "
                f"({exc.strerror}). Upload a client secret via {UPLOAD_ENDPOINT} or fix the file."
            ) from exc
        return ClientSecretDocument.parse(raw)


__all__ = ["CredentialSourceResolver", "UPLOAD_ENDPOINT"]
