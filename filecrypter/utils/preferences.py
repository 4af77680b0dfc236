# preferences.py
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from ..core.format_config import DEFAULT_ITERATIONS, FALLBACK_NAME
from ..core.kdf import normalize_iterations

logger = logging.getLogger(__name__)

PREFERENCES_FILE = "filecrypter.json"
PREFERENCES_ENV = "FILECRYPTER_CONFIG"


def default_preferences_path() -> Path:
    override = os.getenv(PREFERENCES_ENV)
    if override:
        return Path(override)
    if os.name == "nt":
        base = os.getenv("APPDATA") or str(Path.home())
        return Path(base) / "FileCrypter" / PREFERENCES_FILE
    return Path.home() / ".config" / "filecrypter" / PREFERENCES_FILE


@dataclass
class Preferences:
    # Never holds a passphrase or key material.
    default_iterations: int = DEFAULT_ITERATIONS
    output_dir: Optional[str] = None
    overwrite: bool = False
    fallback_name: str = FALLBACK_NAME
    read_chunk_size: int = 1024 * 1024
    debug: bool = False
    log_dir: Optional[str] = None

    def normalize(self) -> None:
        self.default_iterations = normalize_iterations(self.default_iterations)
        if self.output_dir is not None and not isinstance(self.output_dir, str):
            self.output_dir = None
        self.overwrite = bool(self.overwrite)
        if not isinstance(self.fallback_name, str) or not self.fallback_name.strip():
            self.fallback_name = FALLBACK_NAME
        try:
            self.read_chunk_size = max(4096, int(self.read_chunk_size))
        except (TypeError, ValueError):
            self.read_chunk_size = 1024 * 1024
        self.debug = bool(self.debug)
        if self.log_dir is not None and (not isinstance(self.log_dir, str) or not self.log_dir.strip()):
            self.log_dir = None

    def load_preferences(self, path: Optional[Path] = None) -> None:
        target = path or default_preferences_path()
        known = {f.name for f in fields(self)}
        try:
            with open(target, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as e:
            # Could not load, use defaults
            logger.warning("Could not load preferences from %s: %s", target, e)
            return

        if not isinstance(data, dict):
            logger.warning("Ignoring preferences file %s: expected a JSON object", target)
            return
        for key, value in data.items():
            if key in known:
                setattr(self, key, value)
        self.normalize()

    def save_preferences(self, path: Optional[Path] = None) -> None:
        target = path or default_preferences_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=4)


def load_preferences(path: Optional[Path] = None) -> Preferences:
    prefs = Preferences()
    prefs.load_preferences(path)
    return prefs
