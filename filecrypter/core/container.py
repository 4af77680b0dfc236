from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import FilenameTooLong, InvalidParameters, TruncatedFilename, TruncatedHeader
from .format_config import (
    FILENAME_LEN_OFFSET,
    FILENAME_OFFSET,
    HEADER_SIZE,
    MAX_FILENAME_BYTES,
    NONCE_OFFSET,
    NONCE_SIZE,
    SALT_OFFSET,
    SALT_SIZE,
    decode_filename_length,
    encode_filename_length,
)


@dataclass(frozen=True)
class Container:
    salt: bytes
    nonce: bytes
    filename: str
    ciphertext: bytes

    def serialize(self) -> bytes:
        return serialize(self.salt, self.nonce, self.filename, self.ciphertext)


_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def encode_filename(filename: str) -> bytes:
    # Names that came through os.fsdecode may carry surrogate escapes for
    # undecodable bytes; each one is stored as U+FFFD.
    name_bytes = _LONE_SURROGATE.sub("\ufffd", filename).encode("utf-8")
    if len(name_bytes) > MAX_FILENAME_BYTES:
        raise FilenameTooLong(
            f"Filename is {len(name_bytes)} bytes in UTF-8, limit is {MAX_FILENAME_BYTES}"
        )
    return name_bytes


def serialize(salt: bytes, nonce: bytes, filename: str, ciphertext: bytes) -> bytes:
    """
    Frame salt, nonce and filename in front of the ciphertext.
    """
    if len(salt) != SALT_SIZE:
        raise InvalidParameters(f"salt must be {SALT_SIZE} bytes")
    if len(nonce) != NONCE_SIZE:
        raise InvalidParameters(f"nonce must be {NONCE_SIZE} bytes")

    name_bytes = encode_filename(filename)
    return b"".join((
        bytes(salt),
        bytes(nonce),
        encode_filename_length(len(name_bytes)),
        name_bytes,
        bytes(ciphertext),
    ))


def _read_header(data: bytes) -> tuple[int, str]:
    if len(data) < HEADER_SIZE:
        raise TruncatedHeader(f"Container is {len(data)} bytes, header needs {HEADER_SIZE}")

    name_len = decode_filename_length(bytes(data[FILENAME_LEN_OFFSET:FILENAME_OFFSET]))
    name_end = FILENAME_OFFSET + name_len
    if name_end > len(data):
        raise TruncatedFilename(
            f"Filename length {name_len} runs past the end of a {len(data)}-byte container"
        )

    # The stored name is advisory metadata, so undecodable bytes are replaced.
    filename = bytes(data[FILENAME_OFFSET:name_end]).decode("utf-8", errors="replace")
    return name_end, filename


def parse(data: bytes) -> Container:
    """Split container bytes into their fields. No cryptography happens here."""
    name_end, filename = _read_header(data)
    return Container(
        salt=bytes(data[SALT_OFFSET:NONCE_OFFSET]),
        nonce=bytes(data[NONCE_OFFSET:FILENAME_LEN_OFFSET]),
        filename=filename,
        ciphertext=bytes(data[name_end:]),
    )


def peek_filename(data: bytes) -> str:
    _name_end, filename = _read_header(data)
    return filename
