"""
ffqueue.paths
~~~~~~~~~~~~~
Single source of truth for the binaries used across the app.
Import these instead of hard-coding strings anywhere else.
"""

import os
import shutil
from pathlib import Path

# Project root = the directory that contains main.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent

BIN_DIR = PROJECT_ROOT / "bin"


def resolve_binary(name: str, override: str = "") -> str:
    """
    Pick the binary to run for *name* ("ffmpeg" / "ffprobe").

    Order: explicit *override*, a copy bundled in ``bin/``, the first
    match on PATH, and finally the bare name (so the launch error
    names what was missing).
    """
    if override:
        return override
    bundled = BIN_DIR / name
    if bundled.is_file():
        return str(bundled)
    return shutil.which(name) or name


FFMPEG_BIN = resolve_binary("ffmpeg")
FFPROBE_BIN = resolve_binary("ffprobe")


def validate_binaries(*binaries: str) -> list[str]:
    """
    Return a list of error strings for any missing/non-executable binaries.
    Empty list means all good.

    Call this at startup and show a dialog if errors is non-empty.
    """
    errors: list[str] = []
    for binary in binaries or (FFMPEG_BIN, FFPROBE_BIN):
        path = Path(binary)
        if not path.is_absolute():
            found = shutil.which(binary)
            if found is None:
                errors.append(f"Binary not found: {binary}")
                continue
            path = Path(found)
        if not path.exists():
            errors.append(f"Binary not found: {path}")
        elif not path.is_file():
            errors.append(f"Not a file: {path}")
        elif not os.access(path, os.X_OK):
            errors.append(f"Not executable: {path}")
    return errors
