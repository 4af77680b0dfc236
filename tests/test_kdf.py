import hashlib
import os
import sys

import pytest

from filecrypter.core.errors import CryptoUnavailable, InvalidParameters
from filecrypter.core.format_config import DEFAULT_ITERATIONS, KEY_SIZE, SALT_SIZE
from filecrypter.core.kdf import DerivedKey, Pbkdf2Sha256, derive_key, normalize_iterations


def test_derive_key_matches_pbkdf2_hmac_sha256():
    salt = os.urandom(SALT_SIZE)
    key = derive_key("correct horse", salt, 1000)

    expected = hashlib.pbkdf2_hmac("sha256", "correct horse".encode("utf-8"), salt, 1000, dklen=KEY_SIZE)
    assert bytes(key.material) == expected
    assert len(key) == KEY_SIZE


def test_derive_key_is_deterministic_and_input_sensitive():
    salt = os.urandom(SALT_SIZE)
    key1 = bytes(derive_key("TestPassword123!", salt, 1000).material)
    key2 = bytes(derive_key("TestPassword123!", salt, 1000).material)
    assert key1 == key2

    assert bytes(derive_key("TestPassword123!", os.urandom(SALT_SIZE), 1000).material) != key1
    assert bytes(derive_key("DifferentPassword", salt, 1000).material) != key1
    assert bytes(derive_key("TestPassword123!", salt, 1001).material) != key1


def test_str_and_utf8_bytes_passphrases_derive_the_same_key():
    salt = b"s" * SALT_SIZE
    as_text = derive_key("pässwörd", salt, 1000)
    as_bytes = derive_key("pässwörd".encode("utf-8"), salt, 1000)
    as_bytearray = derive_key(bytearray("pässwörd".encode("utf-8")), salt, 1000)
    assert bytes(as_text.material) == bytes(as_bytes.material) == bytes(as_bytearray.material)


def test_passphrase_is_not_unicode_normalized():
    salt = b"s" * SALT_SIZE
    composed = derive_key("\u00e9", salt, 1000)
    decomposed = derive_key("e\u0301", salt, 1000)
    assert bytes(composed.material) != bytes(decomposed.material)


def test_derive_rejects_bad_salt_and_iterations():
    with pytest.raises(InvalidParameters):
        derive_key("pw", b"short", 1000)
    with pytest.raises(InvalidParameters):
        derive_key("pw", b"s" * SALT_SIZE, 0)
    with pytest.raises(InvalidParameters):
        derive_key("pw", b"s" * SALT_SIZE, -10)


def test_derive_rejects_unsupported_passphrase_type():
    with pytest.raises(TypeError):
        derive_key(12345, b"s" * SALT_SIZE, 1000)


def test_missing_backend_is_reported_as_crypto_unavailable(monkeypatch):
    monkeypatch.setitem(sys.modules, "cryptography.hazmat.primitives.kdf.pbkdf2", None)
    with pytest.raises(CryptoUnavailable):
        Pbkdf2Sha256().derive("pw", b"s" * SALT_SIZE, 1000)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, DEFAULT_ITERATIONS),
        (0, DEFAULT_ITERATIONS),
        (-5, DEFAULT_ITERATIONS),
        (5000, 5000),
        ("250000", 250000),
        ("  42", 42),
        ("12abc", 12),
        ("abc", DEFAULT_ITERATIONS),
        ("", DEFAULT_ITERATIONS),
        ("-3", DEFAULT_ITERATIONS),
        (True, DEFAULT_ITERATIONS),
    ],
)
def test_normalize_iterations(value, expected):
    assert normalize_iterations(value) == expected


def test_wipe_zeroes_key_material_in_place():
    key = DerivedKey(b"\xaa" * KEY_SIZE)
    buffer = key.material

    key.wipe()

    assert buffer == bytearray(KEY_SIZE)
    assert key.wiped
    with pytest.raises(InvalidParameters):
        _ = key.material


def test_context_manager_wipes_on_exit_even_after_error():
    key = DerivedKey(b"\x01" * KEY_SIZE)
    with pytest.raises(RuntimeError):
        with key:
            raise RuntimeError("boom")
    assert key.wiped


def test_repr_never_shows_key_material():
    key = DerivedKey(b"\x41" * KEY_SIZE)
    assert "AAAA" not in repr(key)
    assert "41" not in repr(key)
    assert repr(key) == "DerivedKey(<redacted>)"


def test_derived_key_requires_256_bits():
    with pytest.raises(InvalidParameters):
        DerivedKey(b"\x00" * 16)
