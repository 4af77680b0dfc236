"""
Encrypt/decrypt orchestration.

Each operation walks a fixed sequence of stages and reports a ProgressEvent
whenever it advances:

    encrypt: READING 0-30, DERIVING_KEY 30-55, TRANSFORMING 55-85,
             FRAMING 85-100, EMITTING, DONE
    decrypt: READING 0-30, UNFRAMING 30-35, DERIVING_KEY 35-60,
             TRANSFORMING 60-95, EMITTING 95-100, DONE

Any failure moves the pipeline to FAILED and is re-raised to the caller. The
derived key is wiped on every exit path.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from time import monotonic
from typing import Callable, Optional, Union

from . import container as container_codec
from .errors import (
    AuthenticationFailed,
    EmptyPassphrase,
    FileCrypterError,
    NoInputSelected,
    OperationCancelled,
)
from .format_config import ENCRYPTED_SUFFIX, FALLBACK_NAME, NONCE_SIZE, SALT_SIZE
from .kdf import Passphrase, normalize_iterations
from .provider import CryptoProvider, default_provider

logger = logging.getLogger(__name__)


class Stage(Enum):
    IDLE = "idle"
    READING = "reading"
    DERIVING_KEY = "deriving_key"
    TRANSFORMING = "transforming"
    FRAMING = "framing"
    UNFRAMING = "unframing"
    EMITTING = "emitting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    stage: Stage
    percent: float
    message: str = ""


@dataclass(frozen=True)
class EncryptResult:
    container: bytes
    suggested_name: str


@dataclass(frozen=True)
class DecryptResult:
    plaintext: bytes
    suggested_name: str
    original_name: str


ProgressFn = Callable[[ProgressEvent], None]
FractionFn = Callable[[float], None]
# Either the bytes themselves or a reader that loads them, reporting the
# fraction read so far through the callback it is given.
Source = Union[bytes, bytearray, memoryview, Callable[[FractionFn], bytes]]


def suggested_encrypt_name(filename: str) -> str:
    return f"{filename}{ENCRYPTED_SUFFIX}"


def suggested_decrypt_name(original_name: str, fallback: str = FALLBACK_NAME) -> str:
    name = original_name
    if name.endswith(ENCRYPTED_SUFFIX):
        name = name[: -len(ENCRYPTED_SUFFIX)]
    return name or fallback


@dataclass
class Pipeline:
    """One encrypt or decrypt operation. Create a new instance per operation."""

    provider: CryptoProvider = field(default_factory=lambda: default_provider)
    progress: Optional[ProgressFn] = None
    cancel: Optional[threading.Event] = None
    stage: Stage = Stage.IDLE
    events: list[ProgressEvent] = field(default_factory=list)
    stage_timings_ms: list[tuple[str, float]] = field(default_factory=list)

    def __post_init__(self):
        self._last_tick = monotonic()

    def _report(self, percent: float, message: str = "") -> None:
        event = ProgressEvent(self.stage, max(0.0, min(100.0, float(percent))), message)
        self.events.append(event)
        if self.progress is not None:
            self.progress(event)

    def _enter(self, stage: Stage, percent: float, message: str = "") -> None:
        if self.stage in (Stage.DONE, Stage.FAILED):
            raise RuntimeError(f"Pipeline already finished in state {self.stage.name}")
        self._check_cancel()
        now = monotonic()
        if self.stage is not Stage.IDLE:
            self.stage_timings_ms.append((self.stage.value, (now - self._last_tick) * 1000.0))
        self._last_tick = now
        self.stage = stage
        logger.debug("Pipeline stage -> %s", stage.name)
        self._report(percent, message)

    def _check_cancel(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelled()

    def _fail(self, exc: BaseException, operation: str) -> None:
        failed_at = self.stage
        self.stage = Stage.FAILED
        if isinstance(exc, AuthenticationFailed):
            logger.warning("%s failed at %s: authentication failed", operation, failed_at.name)
        elif isinstance(exc, OperationCancelled):
            logger.info("%s cancelled at %s", operation, failed_at.name)
        else:
            logger.error("%s failed at %s: %s", operation, failed_at.name, type(exc).__name__)
        self._report(0, "")

    def _finish(self, operation: str) -> None:
        self._enter(Stage.DONE, 100)
        total_ms = sum(ms for _name, ms in self.stage_timings_ms)
        breakdown = ", ".join(f"{name}={ms:.1f}ms" for name, ms in self.stage_timings_ms)
        logger.info("%s timing: total=%.1fms | %s", operation, total_ms, breakdown)

    def _read(self, source: Source, start: float, end: float) -> bytes:
        self._enter(Stage.READING, start)
        if source is None:
            raise NoInputSelected()
        if callable(source):
            data = source(lambda fraction: self._report(start + (end - start) * min(max(fraction, 0.0), 1.0)))
        else:
            data = bytes(source)
        self._report(end, f"Read {len(data)} bytes")
        return data

    def encrypt(
        self,
        source: Source,
        filename: str,
        passphrase: Passphrase,
        iterations: Optional[Union[int, str]] = None,
    ) -> EncryptResult:
        try:
            if not passphrase:
                raise EmptyPassphrase()
            rounds = normalize_iterations(iterations)
            # Fail on an oversized name before spending time on the KDF.
            container_codec.encode_filename(filename)

            plaintext = self._read(source, 0, 30)

            self._enter(Stage.DERIVING_KEY, 30, f"Deriving key ({rounds} iterations)")
            salt = self.provider.random_bytes(SALT_SIZE)
            nonce = self.provider.random_bytes(NONCE_SIZE)
            with self.provider.derive(passphrase, salt, rounds) as key:
                self._enter(Stage.TRANSFORMING, 55, "Encrypting")
                ciphertext = self.provider.seal(key, nonce, plaintext)

            self._enter(Stage.FRAMING, 85, "Building container")
            output = container_codec.serialize(salt, nonce, filename, ciphertext)
            self._report(100)

            self._enter(Stage.EMITTING, 100)
            result = EncryptResult(container=output, suggested_name=suggested_encrypt_name(filename))
            self._finish("Encrypt")
            return result
        except (FileCrypterError, OSError, ValueError, TypeError) as exc:
            self._fail(exc, "Encrypt")
            raise

    def decrypt(
        self,
        source: Source,
        passphrase: Passphrase,
        iterations: Optional[Union[int, str]] = None,
        fallback_name: str = FALLBACK_NAME,
    ) -> DecryptResult:
        try:
            if not passphrase:
                raise EmptyPassphrase()
            rounds = normalize_iterations(iterations)

            data = self._read(source, 0, 30)

            self._enter(Stage.UNFRAMING, 30, "Reading header")
            parsed = container_codec.parse(data)

            self._enter(Stage.DERIVING_KEY, 35, f"Deriving key ({rounds} iterations)")
            with self.provider.derive(passphrase, parsed.salt, rounds) as key:
                self._enter(Stage.TRANSFORMING, 60, "Decrypting")
                plaintext = self.provider.open(key, parsed.nonce, parsed.ciphertext)

            self._enter(Stage.EMITTING, 95)
            result = DecryptResult(
                plaintext=plaintext,
                suggested_name=suggested_decrypt_name(parsed.filename, fallback_name),
                original_name=parsed.filename,
            )
            self._report(100)
            self._finish("Decrypt")
            return result
        except (FileCrypterError, OSError, ValueError, TypeError) as exc:
            self._fail(exc, "Decrypt")
            raise


def encrypt(
    plaintext: Source,
    filename: str,
    passphrase: Passphrase,
    iterations: Optional[Union[int, str]] = None,
    *,
    provider: Optional[CryptoProvider] = None,
    progress: Optional[ProgressFn] = None,
    cancel: Optional[threading.Event] = None,
) -> EncryptResult:
    pipeline = Pipeline(provider=provider or default_provider, progress=progress, cancel=cancel)
    return pipeline.encrypt(plaintext, filename, passphrase, iterations)


def decrypt(
    container: Source,
    passphrase: Passphrase,
    iterations: Optional[Union[int, str]] = None,
    *,
    provider: Optional[CryptoProvider] = None,
    progress: Optional[ProgressFn] = None,
    cancel: Optional[threading.Event] = None,
    fallback_name: str = FALLBACK_NAME,
) -> DecryptResult:
    pipeline = Pipeline(provider=provider or default_provider, progress=progress, cancel=cancel)
    return pipeline.decrypt(container, passphrase, iterations, fallback_name=fallback_name)
