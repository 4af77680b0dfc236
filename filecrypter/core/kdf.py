from __future__ import annotations

import logging
import re
from typing import Optional, Union

from .errors import CryptoUnavailable, InvalidParameters
from .format_config import DEFAULT_ITERATIONS, KEY_SIZE, SALT_SIZE

logger = logging.getLogger(__name__)

Passphrase = Union[str, bytes, bytearray]

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class DerivedKey:
    """
    A 256-bit key owned by a single encrypt/decrypt operation.

    The bytes live in a bytearray so they can be zeroed with wipe(); use the
    key as a context manager to wipe it when the operation ends.
    """

    __slots__ = ("_material",)

    def __init__(self, material: Union[bytes, bytearray]):
        if len(material) != KEY_SIZE:
            raise InvalidParameters(f"key must be exactly {KEY_SIZE} bytes")
        self._material = bytearray(material)

    @property
    def material(self) -> bytearray:
        if self.wiped:
            raise InvalidParameters("key has already been wiped")
        return self._material

    @property
    def wiped(self) -> bool:
        return len(self._material) == 0

    def wipe(self) -> None:
        for i in range(len(self._material)):
            self._material[i] = 0
        self._material = bytearray()

    def __len__(self) -> int:
        return len(self._material)

    def __enter__(self) -> "DerivedKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return "DerivedKey(<wiped>)" if self.wiped else "DerivedKey(<redacted>)"


def normalize_iterations(value: Optional[Union[int, str]]) -> int:
    """
    Parse a caller-supplied iteration count leniently.

    Accepts ints and strings with a leading integer ("250000", " 5000 iters").
    Missing, unparseable or non-positive values fall back to DEFAULT_ITERATIONS.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_ITERATIONS
    if isinstance(value, int):
        parsed = value
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return DEFAULT_ITERATIONS
        parsed = int(match.group(1))
    return parsed if parsed > 0 else DEFAULT_ITERATIONS


def _passphrase_bytes(passphrase: Passphrase) -> bytes:
    # No Unicode normalisation: containers must stay compatible with ones made
    # by encoders that hash the raw UTF-8 of the passphrase.
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    if isinstance(passphrase, (bytes, bytearray)):
        return bytes(passphrase)
    raise TypeError("passphrase must be str, bytes, or bytearray")


class Pbkdf2Sha256:
    """PBKDF2-HMAC-SHA256 producing a 256-bit key."""

    name = "PBKDF2-HMAC-SHA256"

    def derive(self, passphrase: Passphrase, salt: bytes, iterations: int) -> DerivedKey:
        if not isinstance(salt, (bytes, bytearray)) or len(salt) != SALT_SIZE:
            raise InvalidParameters(f"salt must be {SALT_SIZE} bytes")
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations <= 0:
            raise InvalidParameters("iterations must be a positive integer")

        try:
            from cryptography.hazmat.primitives import hashes
            from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
        except ImportError as exc:
            raise CryptoUnavailable("cryptography backend could not be loaded") from exc

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE,
            salt=bytes(salt),
            iterations=iterations,
        )
        logger.debug("Deriving key with %s (%d iterations)", self.name, iterations)
        return DerivedKey(kdf.derive(_passphrase_bytes(passphrase)))


def derive_key(passphrase: Passphrase, salt: bytes, iterations: int) -> DerivedKey:
    return Pbkdf2Sha256().derive(passphrase, salt, iterations)
