from __future__ import annotations

from typing import Callable, Optional, Protocol, TYPE_CHECKING, Union

from .errors import CryptoUnavailable

if TYPE_CHECKING:
    from .kdf import DerivedKey


class KeyDeriver(Protocol):
    def derive(
        self,
        passphrase: Union[str, bytes, bytearray],
        salt: bytes,
        iterations: int,
    ) -> "DerivedKey": ...


class AeadTransform(Protocol):
    def seal(self, key, nonce: bytes, plaintext: bytes) -> bytes: ...

    def open(self, key, nonce: bytes, ciphertext_with_tag: bytes) -> bytes: ...


RandomBytesFn = Callable[[int], bytes]


def _nacl_random_bytes(size: int) -> bytes:
    try:
        from nacl.utils import random as nacl_random
    except (ImportError, OSError) as exc:
        raise CryptoUnavailable("libsodium random source could not be loaded") from exc
    return nacl_random(size)


class CryptoProvider:
    """
    The KDF, AEAD and random source a pipeline runs against.

    Pieces that are not injected are loaded on first use. The provider holds no
    per-operation state, so one instance can serve concurrent operations.
    """

    def __init__(
        self,
        kdf: Optional[KeyDeriver] = None,
        aead: Optional[AeadTransform] = None,
        random_bytes: Optional[RandomBytesFn] = None,
    ):
        self._kdf = kdf
        self._aead = aead
        self._random_bytes = random_bytes

    def _ensure_crypto_api(self) -> None:
        if self._kdf is not None and self._aead is not None:
            return
        from .aead import AesGcmTransform
        from .kdf import Pbkdf2Sha256

        if self._kdf is None:
            self._kdf = Pbkdf2Sha256()
        if self._aead is None:
            self._aead = AesGcmTransform()

    @property
    def kdf(self) -> KeyDeriver:
        self._ensure_crypto_api()
        assert self._kdf is not None
        return self._kdf

    @property
    def aead(self) -> AeadTransform:
        self._ensure_crypto_api()
        assert self._aead is not None
        return self._aead

    def random_bytes(self, size: int) -> bytes:
        source = self._random_bytes or _nacl_random_bytes
        value = source(size)
        if len(value) != size:
            raise CryptoUnavailable(f"random source returned {len(value)} bytes, expected {size}")
        return bytes(value)

    def derive(self, passphrase, salt: bytes, iterations: int) -> "DerivedKey":
        return self.kdf.derive(passphrase, salt, iterations)

    def seal(self, key, nonce: bytes, plaintext: bytes) -> bytes:
        return self.aead.seal(key, nonce, plaintext)

    def open(self, key, nonce: bytes, ciphertext_with_tag: bytes) -> bytes:
        return self.aead.open(key, nonce, ciphertext_with_tag)


default_provider = CryptoProvider()
