"""
AES-256-GCM primitives for protecting stored credentials.

Blobs are laid out as ``IV (12 bytes) || ciphertext || tag (16 bytes)``. A fresh
IV is drawn for every call to :func:`encrypt`.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mailcount.core.exceptions import IntegrityError, KeyFileError

logger = logging.getLogger(__name__)

KEY_SIZE_BYTES = 32
IV_SIZE_BYTES = 12
TAG_SIZE_BYTES = 16


def generate_key() -> bytes:
    """Return a new random 256-bit key."""
    return AESGCM.generate_key(bit_length=KEY_SIZE_BYTES * 8)


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt ``plaintext`` and return ``IV || ciphertext || tag``."""
    iv = os.urandom(IV_SIZE_BYTES)
    return iv + AESGCM(key).encrypt(iv, plaintext, None)


def decrypt(blob: bytes, key: bytes) -> bytes:
    """Decrypt a blob produced by :func:`encrypt`.

    Raises :class:`IntegrityError` when the blob is truncated, the key is wrong or
    the authentication tag does not verify.
    """
    if len(blob) < IV_SIZE_BYTES + TAG_SIZE_BYTES:
        raise IntegrityError("Ciphertext is truncated.")
    try:
        aead = AESGCM(key)
    except ValueError as exc:
        raise IntegrityError("Encryption key has an invalid length.") from exc
    iv, payload = blob[:IV_SIZE_BYTES], blob[IV_SIZE_BYTES:]
    try:
        return aead.decrypt(iv, payload, None)
    except InvalidTag as exc:
        raise IntegrityError("Ciphertext failed authentication.") from exc


def _write_key(path: Path, key: bytes) -> None:
    # Owner-only from creation; chmod again in case the file already existed.
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as handle:
        handle.write(base64.b64encode(key))
    os.chmod(path, 0o600)


def _read_key(path: Path) -> bytes:
    try:
        key = base64.b64decode(path.read_bytes().strip(), validate=True)
    except (OSError, binascii.Error) as exc:
        raise KeyFileError(f"Encryption key file {path} is unreadable.") from exc
    if len(key) != KEY_SIZE_BYTES:
        raise KeyFileError(f"Encryption key file {path} has an invalid key length.")
    return key


def load_or_create_key(path: Path | str, *, regenerate_on_corrupt: bool = False) -> bytes:
    """Load the Base64 key stored at ``path``, creating it on first use.

    A corrupt key file raises :class:`KeyFileError` unless ``regenerate_on_corrupt``
    is set, in which case a new key replaces it.
    """
    key_path = Path(path)
    if key_path.exists():
        try:
            key = _read_key(key_path)
            logger.debug("Loaded existing encryption key from %s", key_path)
            return key
        except KeyFileError:
            if not regenerate_on_corrupt:
                raise
            logger.warning("Encryption key at %s is corrupt, generating a new one", key_path)

    key = generate_key()
    _write_key(key_path, key)
    logger.info("Generated new encryption key at %s", key_path)
    return key


class TokenCipherService:
    """Encrypt and decrypt byte strings with a single bound key."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE_BYTES:
            raise ValueError("Token encryption key must be 32 bytes.")
        self._key = key

    @classmethod
    def from_key_file(
        cls, path: Path | str, *, regenerate_on_corrupt: bool = False
    ) -> "TokenCipherService":
        return cls(load_or_create_key(path, regenerate_on_corrupt=regenerate_on_corrupt))

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt plaintext bytes and return the blob."""
        return encrypt(plaintext, self._key)

    def decrypt(self, blob: bytes) -> bytes:
        """Decrypt a blob and return the plaintext bytes."""
        return decrypt(blob, self._key)


__all__ = [
    "IV_SIZE_BYTES",
    "KEY_SIZE_BYTES",
    "TAG_SIZE_BYTES",
    "TokenCipherService",
    "decrypt",
    "encrypt",
    "generate_key",
    "load_or_create_key",
]
