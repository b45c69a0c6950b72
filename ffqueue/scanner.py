"""
ffqueue.scanner
~~~~~~~~~~~~~~~
Pure functions for turning user-supplied paths into queue entries.
No Qt, no subprocess.
"""

from __future__ import annotations

from pathlib import Path

from ffqueue.command_builder import output_extension
from ffqueue.models import ProcessingSpec

# Extensions we consider as valid input files
MEDIA_EXTENSIONS: frozenset[str] = frozenset({
    ".mp4", ".mov", ".mxf", ".avi", ".mkv",
    ".m4v", ".wmv", ".flv", ".webm", ".ts",
    ".mpg", ".mpeg", ".m2t", ".m2ts", ".dv",
    ".mp3", ".m4a", ".aac", ".wav", ".flac", ".opus", ".ogg",
})

OUTPUT_SUFFIX = "_converted"


# ── Public API ────────────────────────────────────────────────────────────────

def collect_media_files(paths: list[Path]) -> list[Path]:
    """
    Expand *paths* into a list of media files, keeping the given order.

    Files are taken as-is (whatever their extension); directories
    contribute their media files, sorted, non-recursive. Duplicates
    are dropped.
    """
    seen: set[Path] = set()
    result: list[Path] = []
    for path in paths:
        candidates = _media_files_in(path) if path.is_dir() else [path]
        for f in candidates:
            key = f.resolve()
            if key not in seen:
                seen.add(key)
                result.append(f)
    return result


def build_output_path(
    input_file: Path,
    output_folder: Path,
    spec: ProcessingSpec,
) -> Path:
    """
    Given an input file, return the path the converted file is written to.

    Example:
        input_file    = Path("/rushes/clip001.mov")
        output_folder = Path("/proxies")
        spec.container_enabled, spec.container = True, "MP4"
        → Path("/proxies/clip001_converted.mp4")
    """
    ext = output_extension(input_file, spec)
    return output_folder / f"{input_file.stem}{OUTPUT_SUFFIX}.{ext}"


# ── Internal helpers ──────────────────────────────────────────────────────────

def _media_files_in(folder: Path) -> list[Path]:
    """Return all media files directly inside *folder* (non-recursive)."""
    return sorted(
        f for f in folder.iterdir()
        if f.is_file() and f.suffix.lower() in MEDIA_EXTENSIONS
    )
