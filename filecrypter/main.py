"""Command-line front end for FileCrypter.

    filecrypter encrypt report.pdf            -> report.pdf.enc
    filecrypter decrypt report.pdf.enc        -> report.pdf
    filecrypter info report.pdf.enc           -> prints the stored filename
    filecrypter config --iterations 250000 --save

The iteration count is not stored in the encrypted file; pass the same
--iterations value to decrypt that was used to encrypt.
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Sequence

from .core import file_workflow
from .core.errors import CryptoUnavailable, EmptyPassphrase, FileCrypterError, PassphraseMismatch, user_message
from .core.pipeline import ProgressEvent, Stage
from .utils.logger import configure_logging
from .utils.preferences import Preferences, default_preferences_path, load_preferences

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_FATAL = 3
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filecrypter",
        description="Encrypt and decrypt files with a passphrase (PBKDF2-SHA256 + AES-256-GCM).",
    )
    parser.add_argument("--config", type=Path, default=None, help="Preferences JSON file")
    parser.add_argument("--debug", action="store_true", help="Log to the console and a debug log file")
    parser.add_argument("--quiet", action="store_true", help="Do not print progress")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (("encrypt", "Encrypt a file"), ("decrypt", "Decrypt a .enc file")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("file")
        sub.add_argument("--iterations", default=None, help="PBKDF2 iteration count (default 100000)")
        sub.add_argument("--output-dir", default=None)
        sub.add_argument("--force", action="store_true", help="Overwrite an existing output file")
        sub.add_argument(
            "--passphrase-env",
            default=None,
            metavar="VAR",
            help="Read the passphrase from this environment variable instead of prompting",
        )

    info = subparsers.add_parser("info", help="Show the original filename stored in a .enc file")
    info.add_argument("file")

    config = subparsers.add_parser("config", help="Show or change the saved preferences")
    config.add_argument("--iterations", default=None, help="Default PBKDF2 iteration count")
    config.add_argument("--output-dir", default=None)
    config.add_argument("--log-dir", default=None)
    config.add_argument("--save", action="store_true", help="Write the preferences back to the config file")
    return parser


def _read_passphrase(args: argparse.Namespace, confirm: bool) -> str:
    if args.passphrase_env:
        value = os.environ.get(args.passphrase_env, "")
        if not value:
            raise EmptyPassphrase(f"Environment variable {args.passphrase_env} is empty or unset")
        return value

    passphrase = getpass.getpass("Passphrase: ")
    if not passphrase:
        raise EmptyPassphrase()
    if confirm and getpass.getpass("Confirm passphrase: ") != passphrase:
        raise PassphraseMismatch()
    return passphrase


class ProgressPrinter:
    def __init__(self, stream=None):
        self.stream = stream or sys.stderr
        self._last = None

    def __call__(self, event: ProgressEvent) -> None:
        if event.stage is Stage.FAILED:
            self.stream.write("\n")
            self.stream.flush()
            return
        line = f"\r[{event.stage.value:<12}] {event.percent:5.1f}%"
        if line == self._last:
            return
        self._last = line
        self.stream.write(line)
        if event.stage is Stage.DONE:
            self.stream.write("\n")
        self.stream.flush()


def _configure(args: argparse.Namespace, prefs: Preferences) -> int:
    if args.iterations is not None:
        prefs.default_iterations = args.iterations
    if args.output_dir is not None:
        prefs.output_dir = args.output_dir
    if args.log_dir is not None:
        prefs.log_dir = args.log_dir
    prefs.normalize()

    print(json.dumps(asdict(prefs), indent=4))
    if args.save:
        target = args.config or default_preferences_path()
        prefs.save_preferences(target)
        print(f"Saved preferences to '{target}'")
    return EXIT_OK


def _run(args: argparse.Namespace, prefs: Preferences) -> int:
    if args.command == "info":
        name = file_workflow.stored_filename(args.file)
        print(name)
        return EXIT_OK
    if args.command == "config":
        return _configure(args, prefs)

    passphrase = _read_passphrase(args, confirm=args.command == "encrypt")
    iterations = args.iterations if args.iterations is not None else prefs.default_iterations
    output_dir = args.output_dir or prefs.output_dir
    overwrite = args.force or prefs.overwrite
    progress = None if args.quiet else ProgressPrinter()

    if args.command == "encrypt":
        target = file_workflow.encrypt_file(
            args.file,
            passphrase,
            iterations,
            output_dir=output_dir,
            overwrite=overwrite,
            progress=progress,
            chunk_size=prefs.read_chunk_size,
        )
    else:
        target = file_workflow.decrypt_file(
            args.file,
            passphrase,
            iterations,
            output_dir=output_dir,
            overwrite=overwrite,
            progress=progress,
            chunk_size=prefs.read_chunk_size,
            fallback_name=prefs.fallback_name,
        )
    print(f"Done: wrote '{target}'")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    prefs = load_preferences(args.config)
    configure_logging(args.debug or prefs.debug, Path(prefs.log_dir) if prefs.log_dir else None)

    try:
        return _run(args, prefs)
    except CryptoUnavailable as e:
        logger.critical("Cryptography unavailable: %s", e)
        print(f"Error: {user_message(e)}", file=sys.stderr)
        return EXIT_FATAL
    except (FileCrypterError, OSError) as e:
        print(f"Error: {user_message(e)}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
