"""
File format configuration for FileCrypter encrypted files.

Header layout (big-endian multi-byte fields):
  - salt (16 bytes)
  - nonce (12 bytes, AES-GCM IV)
  - filename length L (uint16)
  - filename (L bytes, UTF-8, no terminator)
  - ciphertext (variable, GCM tag appended)

The PBKDF2 iteration count is not part of the header; the decrypting party
must supply the same count that was used to encrypt.
"""

SALT_SIZE = 16
NONCE_SIZE = 12
FILENAME_LEN_SIZE = 2

SALT_OFFSET = 0
NONCE_OFFSET = SALT_OFFSET + SALT_SIZE
FILENAME_LEN_OFFSET = NONCE_OFFSET + NONCE_SIZE
FILENAME_OFFSET = FILENAME_LEN_OFFSET + FILENAME_LEN_SIZE

HEADER_SIZE = FILENAME_OFFSET
MAX_FILENAME_BYTES = 0xFFFF

KEY_SIZE = 32
TAG_SIZE = 16

DEFAULT_ITERATIONS = 100000

ENCRYPTED_SUFFIX = ".enc"
FALLBACK_NAME = "decrypted.bin"


def encode_filename_length(length: int) -> bytes:
    return int(length).to_bytes(FILENAME_LEN_SIZE, "big")


def decode_filename_length(length_bytes: bytes) -> int:
    if len(length_bytes) != FILENAME_LEN_SIZE:
        raise ValueError("Invalid filename length bytes")
    return int.from_bytes(length_bytes, "big")
