from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from . import container as container_codec
from . import pipeline
from .errors import ContainerFormatError, InputNotReadable, NoInputSelected, OutputExists
from .format_config import FALLBACK_NAME, FILENAME_LEN_OFFSET, HEADER_SIZE, decode_filename_length
from .kdf import Passphrase
from .provider import CryptoProvider

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024

PathLike = Union[str, os.PathLike]


def validate_input_path(path: Optional[PathLike]) -> Path:
    if path is None or not str(path).strip():
        raise NoInputSelected()
    normalized = Path(os.path.abspath(os.fspath(path)))
    if normalized.is_dir():
        raise InputNotReadable(f"{normalized} is a directory, expected a file")
    if not normalized.exists():
        raise InputNotReadable(f"{normalized} does not exist")
    if not os.access(normalized, os.R_OK):
        raise InputNotReadable(f"Cannot read {normalized}. Check permissions.")
    return normalized


def read_input(
    path: PathLike,
    on_progress: Optional[Callable[[float], None]] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bytes:
    """Read a whole file, reporting the fraction read after every chunk."""
    source = validate_input_path(path)
    total = source.stat().st_size
    chunks = []
    loaded = 0
    with open(source, "rb") as f:
        while True:
            chunk = f.read(max(1, chunk_size))
            if not chunk:
                break
            chunks.append(chunk)
            loaded += len(chunk)
            if on_progress is not None and total:
                on_progress(loaded / total)
    if on_progress is not None:
        on_progress(1.0)
    return b"".join(chunks)


def safe_output_name(name: str, fallback: str = FALLBACK_NAME) -> str:
    """
    Reduce a filename recovered from a container to a bare basename.

    The stored name comes from the file itself and must not be able to point
    outside the output directory.
    """
    candidate = name.replace("\\", "/").split("/")[-1]
    candidate = candidate.replace("\x00", "").strip()
    if candidate in ("", ".", ".."):
        return fallback
    return candidate


def write_output(target: Path, data: bytes, overwrite: bool = False) -> Path:
    """
    Write data to target atomically; a failed write leaves nothing behind.

    Without overwrite the target name is claimed with O_EXCL before the data is
    renamed over it, so a file created by someone else in the meantime is never
    replaced.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    reserved = False
    if not overwrite:
        try:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            raise OutputExists(f"{target} already exists") from None
        os.close(fd)
        reserved = True

    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=".filecrypter_", suffix=".part")
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, target)
    except OSError:
        leftovers = [tmp_path] if tmp_path else []
        if reserved:
            leftovers.append(target)
        for leftover in leftovers:
            try:
                os.remove(leftover)
            except FileNotFoundError:
                pass
        raise
    logger.info("Wrote %d bytes to %s", len(data), target)
    return target


def _output_dir(source: Path, output_dir: Optional[PathLike]) -> Path:
    return Path(output_dir) if output_dir else source.parent


def _reader(path: Path, chunk_size: int) -> Callable[[Callable[[float], None]], bytes]:
    return lambda on_progress: read_input(path, on_progress=on_progress, chunk_size=chunk_size)


def encrypt_file(
    path: PathLike,
    passphrase: Passphrase,
    iterations: Optional[Union[int, str]] = None,
    output_dir: Optional[PathLike] = None,
    overwrite: bool = False,
    *,
    provider: Optional[CryptoProvider] = None,
    progress: Optional[pipeline.ProgressFn] = None,
    cancel: Optional[threading.Event] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Path:
    source = validate_input_path(path)
    target = _output_dir(source, output_dir) / pipeline.suggested_encrypt_name(source.name)
    if target.exists() and not overwrite:
        raise OutputExists(f"{target} already exists")

    result = pipeline.encrypt(
        _reader(source, chunk_size),
        source.name,
        passphrase,
        iterations,
        provider=provider,
        progress=progress,
        cancel=cancel,
    )
    return write_output(target, result.container, overwrite=overwrite)


def decrypt_file(
    path: PathLike,
    passphrase: Passphrase,
    iterations: Optional[Union[int, str]] = None,
    output_dir: Optional[PathLike] = None,
    overwrite: bool = False,
    *,
    provider: Optional[CryptoProvider] = None,
    progress: Optional[pipeline.ProgressFn] = None,
    cancel: Optional[threading.Event] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    fallback_name: str = FALLBACK_NAME,
) -> Path:
    source = validate_input_path(path)
    out_dir = _output_dir(source, output_dir)
    if not overwrite:
        # Refuse before the key derivation when the header already names an
        # existing output. A malformed header is left for the pipeline to report.
        try:
            stored = stored_filename(source)
        except ContainerFormatError:
            stored = None
        if stored is not None:
            planned = out_dir / safe_output_name(pipeline.suggested_decrypt_name(stored, fallback_name), fallback_name)
            if planned.exists():
                raise OutputExists(f"{planned} already exists")

    result = pipeline.decrypt(
        _reader(source, chunk_size),
        passphrase,
        iterations,
        provider=provider,
        progress=progress,
        cancel=cancel,
        fallback_name=fallback_name,
    )
    name = safe_output_name(result.suggested_name, fallback_name)
    if name != result.suggested_name:
        logger.warning("Stored filename was not a plain basename; writing %r instead", name)
    target = out_dir / name
    return write_output(target, result.plaintext, overwrite=overwrite)


def stored_filename(path: PathLike) -> str:
    """Return the original filename recorded in an encrypted file's header."""
    source = validate_input_path(path)
    with open(source, "rb") as f:
        head = f.read(HEADER_SIZE)
        if len(head) == HEADER_SIZE:
            name_len = decode_filename_length(head[FILENAME_LEN_OFFSET:])
            head += f.read(name_len)
    return container_codec.peek_filename(head)
