"""
ffqueue.config
~~~~~~~~~~~~~~
Persists application settings and named presets as JSON files in the
platform's standard config directory.

Config location
---------------
  Windows  : %APPDATA%\\FFQueue\\
  macOS    : ~/Library/Application Support/FFQueue/
  Linux    : ~/.config/FFQueue/
  override : $FFQUEUE_CONFIG_DIR

Files
-----
  settings.json  AppSettings
  presets.json   list of Preset

Each file is wrapped in a JsonStore (``load() -> T | None`` /
``save(T)``) which callers receive as a plain object, so tests can
point it anywhere.
"""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Callable, Generic, TypeVar

from ffqueue.models import ProcessingSpec, RGBAColor
from ffqueue.presets import Preset, default_hwaccel, new_default_preset, unique_preset_name
from ffqueue.progress import DEFAULT_MAX_LOG_LINES

T = TypeVar("T")


# ── Config directory ──────────────────────────────────────────────────────────

def config_dir() -> Path:
    override = os.environ.get("FFQUEUE_CONFIG_DIR")
    if override:
        return Path(override)

    if sys.platform == "win32":
        base = Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path.home() / ".config"
    return base / "FFQueue"


# ── Key-value store ───────────────────────────────────────────────────────────

class JsonStore(Generic[T]):
    """
    One JSON file holding one value.

    ``load()`` returns None if the file is missing, empty, or malformed.
    ``save()`` silently ignores I/O errors so a config issue never
    crashes the app.
    """

    def __init__(self, path: Path, encode: Callable[[T], Any], decode: Callable[[Any], T]):
        self.path = Path(path)
        self._encode = encode
        self._decode = decode

    def load(self) -> T | None:
        if not self.path.exists():
            return None
        try:
            return self._decode(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError, TypeError, KeyError, AttributeError):
            print(f"[CONFIG] Ignoring unreadable {self.path}")
            return None

    def save(self, value: T) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._encode(value), indent=2), encoding="utf-8")
        except OSError as exc:
            print(f"[CONFIG] Could not write {self.path}: {exc}")


# ── Application settings ──────────────────────────────────────────────────────

@dataclass
class AppSettings:
    ffmpeg_path: str = ""              # empty → bundled bin/ or PATH
    ffprobe_path: str = ""
    hwaccel: str = ""                  # empty → platform default; "none" disables
    output_dir: str = ""
    max_log_lines: int = DEFAULT_MAX_LOG_LINES
    etr_interval_ms: int = 1000
    success_hold_ms: int = 1000

    @property
    def effective_hwaccel(self) -> str:
        if self.hwaccel.lower() == "none":
            return ""
        return self.hwaccel or default_hwaccel()


def settings_to_dict(settings: AppSettings) -> dict:
    return asdict(settings)


def settings_from_dict(d: dict) -> AppSettings:
    known = {f.name for f in fields(AppSettings)}
    return AppSettings(**{k: v for k, v in d.items() if k in known})


def settings_store(directory: Path | None = None) -> JsonStore[AppSettings]:
    return JsonStore(
        (directory or config_dir()) / "settings.json",
        settings_to_dict,
        settings_from_dict,
    )


def load_settings(store: JsonStore[AppSettings] | None = None) -> AppSettings:
    return (store or settings_store()).load() or AppSettings()


# ── Spec / preset serialisation ───────────────────────────────────────────────

_COLOR_FIELDS = ("subtitle_color", "subtitle_outline_color")


def spec_to_dict(spec: ProcessingSpec) -> dict:
    return asdict(spec)


def spec_from_dict(d: dict) -> ProcessingSpec:
    """
    Build a ProcessingSpec from stored data. Unknown keys are ignored,
    missing ones take their defaults.
    """
    known = {f.name for f in fields(ProcessingSpec)}
    values = {k: v for k, v in d.items() if k in known}
    for key in _COLOR_FIELDS:
        if isinstance(values.get(key), dict):
            values[key] = RGBAColor(**values[key])
    if values.get("audio_only") and values.get("video_only"):
        values["video_only"] = False
    return ProcessingSpec(**values)


def preset_to_dict(preset: Preset) -> dict:
    data = spec_to_dict(preset.spec)
    data.pop("subtitle_path", None)
    return {"name": preset.name, "spec": data}


def preset_from_dict(d: dict) -> Preset:
    return Preset(name=d["name"], spec=spec_from_dict(d.get("spec", {})))


def presets_store(directory: Path | None = None) -> JsonStore[list[Preset]]:
    return JsonStore(
        (directory or config_dir()) / "presets.json",
        lambda presets: [preset_to_dict(p) for p in presets],
        lambda payload: [preset_from_dict(d) for d in payload if isinstance(d, dict)],
    )


def load_presets(store: JsonStore[list[Preset]] | None = None) -> list[Preset]:
    """Stored presets, or a single default one on first run."""
    return (store or presets_store()).load() or [new_default_preset()]


def find_preset(presets: list[Preset], name: str) -> Preset | None:
    return next((p for p in presets if p.name == name), None)


def save_preset_as(
    store: JsonStore[list[Preset]],
    presets: list[Preset],
    spec: ProcessingSpec,
    name: str,
) -> Preset:
    """Append *spec* under a free variant of *name* and write the list back."""
    preset = Preset(name=unique_preset_name(presets, name), spec=spec)
    store.save(presets + [preset])
    return preset
