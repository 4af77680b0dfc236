#!/usr/bin/env python3
"""Integration test for FileCrypter - encrypts and decrypts real files on disk."""

import os
import tempfile

import pytest

from filecrypter.core.errors import AuthenticationFailed, TruncatedHeader
from filecrypter.core.file_workflow import decrypt_file, encrypt_file

ITERATIONS = 2000


def _mktemp_dir() -> str:
    return tempfile.mkdtemp(prefix="filecrypter_it_")


def _cleanup(path: str) -> None:
    for root, dirs, files in os.walk(path, topdown=False):
        for name in files:
            os.remove(os.path.join(root, name))
        for name in dirs:
            os.rmdir(os.path.join(root, name))
    os.rmdir(path)


def test_file_round_trip_restores_name_and_content():
    """Encrypt a file, decrypt it into another folder, compare."""
    test_data = b"This is a test of FileCrypter file encryption!" * 1000
    work_dir = _mktemp_dir()
    try:
        source = os.path.join(work_dir, "secret report.txt")
        with open(source, "wb") as f:
            f.write(test_data)

        encrypted = encrypt_file(source, "TestPassword123!", ITERATIONS, chunk_size=4096)
        assert encrypted.name == "secret report.txt.enc"

        out_dir = os.path.join(work_dir, "restored")
        decrypted = decrypt_file(encrypted, "TestPassword123!", ITERATIONS, output_dir=out_dir)
        assert decrypted.name == "secret report.txt"
        with open(decrypted, "rb") as f:
            assert f.read() == test_data
    finally:
        _cleanup(work_dir)


def test_error_conditions():
    """Wrong passphrase, wrong iteration count and corrupted files."""
    test_data = b"Test data for error conditions"
    work_dir = _mktemp_dir()
    try:
        source = os.path.join(work_dir, "data.bin")
        with open(source, "wb") as f:
            f.write(test_data)
        encrypted = encrypt_file(source, "CorrectPassword123!", ITERATIONS)
        out_dir = os.path.join(work_dir, "out")

        with pytest.raises(AuthenticationFailed):
            decrypt_file(encrypted, "WrongPassword456!", ITERATIONS, output_dir=out_dir)

        with pytest.raises(AuthenticationFailed):
            decrypt_file(encrypted, "CorrectPassword123!", ITERATIONS + 1, output_dir=out_dir)

        # Nothing is written when decryption fails
        assert not os.path.exists(out_dir) or not os.listdir(out_dir)

        corrupt_path = os.path.join(work_dir, "corrupt.enc")
        with open(corrupt_path, "wb") as f:
            f.write(b"x")
        with pytest.raises(TruncatedHeader):
            decrypt_file(corrupt_path, "AnyPassword", ITERATIONS)
        with pytest.raises(ValueError):
            decrypt_file(corrupt_path, "AnyPassword", ITERATIONS)
    finally:
        _cleanup(work_dir)


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__]))
