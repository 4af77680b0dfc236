from __future__ import annotations

from typing import Union

from .errors import AuthenticationFailed, CryptoUnavailable, InvalidParameters
from .format_config import KEY_SIZE, NONCE_SIZE
from .kdf import DerivedKey

KeyLike = Union[DerivedKey, bytes, bytearray]


def _key_bytes(key: KeyLike) -> Union[bytes, bytearray]:
    material = key.material if isinstance(key, DerivedKey) else key
    if not isinstance(material, (bytes, bytearray)) or len(material) != KEY_SIZE:
        raise InvalidParameters(f"key must be exactly {KEY_SIZE} bytes")
    return material


def _check_nonce(nonce: bytes) -> None:
    if not isinstance(nonce, (bytes, bytearray)) or len(nonce) != NONCE_SIZE:
        raise InvalidParameters(f"nonce must be exactly {NONCE_SIZE} bytes")


def _aesgcm(key: KeyLike):
    material = _key_bytes(key)
    try:
        from cryptography.hazmat.primitives.ciphers.aead import AESGCM
    except ImportError as exc:
        raise CryptoUnavailable("cryptography backend could not be loaded") from exc
    return AESGCM(material)


class AesGcmTransform:
    """AES-256-GCM without associated data. The 16-byte tag is appended to the ciphertext."""

    name = "AES-256-GCM"

    def seal(self, key: KeyLike, nonce: bytes, plaintext: bytes) -> bytes:
        _check_nonce(nonce)
        return _aesgcm(key).encrypt(bytes(nonce), bytes(plaintext), None)

    def open(self, key: KeyLike, nonce: bytes, ciphertext_with_tag: bytes) -> bytes:
        _check_nonce(nonce)
        cipher = _aesgcm(key)
        from cryptography.exceptions import InvalidTag

        # Do not try to tell a wrong passphrase apart from a damaged file.
        try:
            return cipher.decrypt(bytes(nonce), bytes(ciphertext_with_tag), None)
        except InvalidTag as exc:
            raise AuthenticationFailed() from exc


def seal(key: KeyLike, nonce: bytes, plaintext: bytes) -> bytes:
    return AesGcmTransform().seal(key, nonce, plaintext)


def open_sealed(key: KeyLike, nonce: bytes, ciphertext_with_tag: bytes) -> bytes:
    return AesGcmTransform().open(key, nonce, ciphertext_with_tag)
