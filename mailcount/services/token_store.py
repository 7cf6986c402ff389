"""
File-backed credential store that never writes a record unencrypted.

Layout of the storage directory::

    <dir>/.keystore    Base64 AES-256 key, mode 0600
    <dir>/<identity>   IV || ciphertext || tag, one file per identity
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from mailcount.core.exceptions import CorruptedRecordError, IntegrityError
from mailcount.models.oauth import CredentialRecord
from mailcount.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

KEY_FILE_NAME = ".keystore"
_TEMP_PREFIX = ".tmp-"


class EncryptedTokenStore:
    """Keyed map from identity string to one encrypted :class:`CredentialRecord`."""

    def __init__(self, directory: Path | str, *, regenerate_corrupt_key: bool = True) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        self._lock = threading.RLock()
        # Replacing an unreadable key logs the user out: old records then raise
        # CorruptedRecordError.
        self._cipher = TokenCipherService.from_key_file(
            self.key_path, regenerate_on_corrupt=regenerate_corrupt_key
        )
        logger.info("Initialized encrypted token store at %s", self._directory.resolve())

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def key_path(self) -> Path:
        return self._directory / KEY_FILE_NAME

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith(".") or any(sep in key for sep in ("/", "\\", os.sep)):
            raise ValueError(f"Invalid token store key: {key!r}")
        return self._directory / key

    def get(self, key: str) -> Optional[CredentialRecord]:
        """Return the decrypted record for ``key`` or ``None`` when absent."""
        path = self._path_for(key)
        try:
            blob = path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            plaintext = self._cipher.decrypt(blob)
            record = CredentialRecord.model_validate_json(plaintext)
        except (IntegrityError, ValidationError) as exc:
            raise CorruptedRecordError(key) from exc

        logger.debug("Retrieved and decrypted value for key: %s", key)
        return record

    def set(self, key: str, record: CredentialRecord) -> None:
        """Encrypt and atomically write ``record`` under ``key``."""
        path = self._path_for(key)
        blob = self._cipher.encrypt(record.model_dump_json().encode("utf-8"))

        with self._lock:
            fd, tmp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, dir=self._directory)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(blob)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        logger.debug("Stored encrypted value for key: %s", key)

    def delete(self, key: str) -> bool:
        """Remove the record for ``key``; returns whether a file was deleted."""
        path = self._path_for(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        logger.debug("Deleted data for key: %s", key)
        return True

    def clear(self) -> int:
        """Remove every stored record, leaving the key file in place."""
        removed = 0
        with self._lock:
            for path in self._directory.iterdir():
                if path.name == KEY_FILE_NAME or not path.is_file():
                    continue
                try:
                    path.unlink()
                except FileNotFoundError:
                    continue
                if not path.name.startswith(_TEMP_PREFIX):
                    removed += 1
        logger.info("Cleared %d stored credential(s)", removed)
        return removed

    def keys(self) -> List[str]:
        """Enumerate stored identities."""
        return sorted(
            path.name
            for path in self._directory.iterdir()
            if path.is_file() and not path.name.startswith(".")
        )

    def contains(self, key: str) -> bool:
        return self._path_for(key).is_file()


__all__ = ["EncryptedTokenStore", "KEY_FILE_NAME"]
