try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import base64
import os
import stat

import pytest

from mailcount.core.exceptions import IntegrityError, KeyFileError
from mailcount.services import token_cipher
from mailcount.services.token_cipher import TokenCipherService


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(token_cipher.generate_key())
    plaintext = b"sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert plaintext not in encrypted
    overhead = token_cipher.IV_SIZE_BYTES + token_cipher.TAG_SIZE_BYTES
    assert len(encrypted) == len(plaintext) + overhead

    assert cipher.decrypt(encrypted) == plaintext


def test_encrypt_uses_fresh_iv_per_call() -> None:
    key = token_cipher.generate_key()
    first = token_cipher.encrypt(b"same", key)
    second = token_cipher.encrypt(b"same", key)

    assert first[: token_cipher.IV_SIZE_BYTES] != second[: token_cipher.IV_SIZE_BYTES]
    assert first != second


def test_every_single_bit_flip_is_rejected() -> None:
    key = token_cipher.generate_key()
    blob = token_cipher.encrypt(b'{"access_token": "abc"}', key)

    for index in range(len(blob)):
        for bit in range(8):
            tampered = bytearray(blob)
            tampered[index] ^= 1 << bit
            with pytest.raises(IntegrityError):
                token_cipher.decrypt(bytes(tampered), key)


@pytest.mark.parametrize("length", [0, 1, 12, 27])
def test_truncated_blob_is_rejected(length: int) -> None:
    key = token_cipher.generate_key()
    blob = token_cipher.encrypt(b"payload", key)

    with pytest.raises(IntegrityError):
        token_cipher.decrypt(blob[:length], key)


def test_wrong_key_is_rejected() -> None:
    blob = token_cipher.encrypt(b"payload", token_cipher.generate_key())

    with pytest.raises(IntegrityError):
        token_cipher.decrypt(blob, token_cipher.generate_key())


def test_invalid_key_length_is_an_integrity_error() -> None:
    blob = token_cipher.encrypt(b"payload", token_cipher.generate_key())

    with pytest.raises(IntegrityError):
        token_cipher.decrypt(blob, b"short")


def test_cipher_service_requires_256_bit_key() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(b"0" * 16)


def test_key_file_is_created_owner_only(tmp_path) -> None:
    key_path = tmp_path / ".keystore"

    key = token_cipher.load_or_create_key(key_path)

    assert len(key) == token_cipher.KEY_SIZE_BYTES
    assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
    assert base64.b64decode(key_path.read_bytes()) == key
    assert token_cipher.load_or_create_key(key_path) == key


def test_corrupt_key_file_raises_by_default(tmp_path) -> None:
    key_path = tmp_path / ".keystore"
    key_path.write_text("not base64 at all!!")

    with pytest.raises(KeyFileError):
        token_cipher.load_or_create_key(key_path)


def test_corrupt_key_file_is_regenerated_when_allowed(tmp_path) -> None:
    key_path = tmp_path / ".keystore"
    key_path.write_bytes(base64.b64encode(b"too-short"))

    key = token_cipher.load_or_create_key(key_path, regenerate_on_corrupt=True)

    assert len(key) == token_cipher.KEY_SIZE_BYTES
    assert base64.b64decode(key_path.read_bytes()) == key
    assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
