# ffqueue/presets.py

from __future__ import annotations

import sys
from dataclasses import dataclass, field, replace

from ffqueue.models import MediaSummary, ProcessingSpec


@dataclass(frozen=True)
class VideoEncoder:
    label: str
    ffmpeg_codec: str
    extra_args: tuple[str, ...] = ()
    hardware: bool = False


VIDEO_ENCODERS: dict[str, VideoEncoder] = {
    enc.label: enc for enc in (
        VideoEncoder("HEVC (Hardware)",  "hevc_videotoolbox", ("-tag:v", "hvc1"), hardware=True),
        VideoEncoder("H.264 (Hardware)", "h264_videotoolbox", hardware=True),
        VideoEncoder("HEVC (Software)",  "libx265", ("-tag:v", "hvc1")),
        VideoEncoder("H.264 (Software)", "libx264"),
        VideoEncoder("AV1",              "libsvtav1"),
        VideoEncoder("MPEG-4",           "mpeg4"),
        VideoEncoder("Apple ProRes",     "prores"),
    )
}

PRORES_LABEL = "Apple ProRes"

HARDWARE_CODECS: frozenset[str] = frozenset(
    enc.ffmpeg_codec for enc in VIDEO_ENCODERS.values() if enc.hardware
)

AUDIO_ENCODERS: dict[str, str] = {
    "AAC":  "aac",
    "Opus": "libopus",
    "MP3":  "libmp3lame",
}

DEFAULT_AUDIO_ENCODER = "AAC"

CONTAINER_FORMATS = ["MP4", "MOV", "MKV", "MP3"]

# ASS numpad-style alignment codes
SUBTITLE_ALIGNMENT: dict[str, int] = {
    "Top Center":    8,
    "Bottom Center": 2,
    "Top Left":      5,
    "Bottom Left":   1,
}

DEFAULT_SUBTITLE_ALIGNMENT = 2


def default_hwaccel() -> str:
    """Input-side decode hint passed as ``-hwaccel``."""
    return "videotoolbox" if sys.platform == "darwin" else "auto"


# ── Named presets ─────────────────────────────────────────────────────────────

DEFAULT_PRESET_NAME = "New Preset"


@dataclass
class Preset:
    """A named ProcessingSpec. The subtitle file is per item and never stored."""
    name: str
    spec: ProcessingSpec = field(default_factory=ProcessingSpec)

    def __post_init__(self):
        if self.spec.subtitle_path:
            self.spec = replace(self.spec, subtitle_path="")

    def to_spec(self, subtitle_path: str = "") -> ProcessingSpec:
        return replace(self.spec, subtitle_path=subtitle_path)


def new_default_preset(name: str = DEFAULT_PRESET_NAME) -> Preset:
    return Preset(name=name)


def unique_preset_name(existing: list[Preset], base: str = DEFAULT_PRESET_NAME) -> str:
    """``base``, then ``base 2``, ``base 3`` … until the name is free."""
    taken = {p.name for p in existing}
    name = base
    counter = 2
    while name in taken:
        name = f"{base} {counter}"
        counter += 1
    return name


# ── Probe-driven defaults ─────────────────────────────────────────────────────

def seed_from_probe(spec: ProcessingSpec, summary: MediaSummary) -> ProcessingSpec:
    """
    Copy what ffprobe found into the editable fields so the settings
    start out matching the source.
    """
    changes: dict = {}

    if summary.video is not None:
        v = summary.video
        changes["width"] = str(v.width)
        changes["height"] = str(v.height)
        changes["frame_rate"] = f"{v.fps:.2f}"
        changes["video_bitrate"] = str(v.bit_rate // 1000)
        if v.codec_name.lower() == "hevc":
            changes["video_encoder"] = "HEVC (Hardware)"
        else:
            changes["video_encoder"] = "H.264 (Hardware)"

    if summary.audio is not None:
        a = summary.audio
        changes["audio_bitrate"] = str(a.bit_rate // 1000)
        label = {"aac": "AAC", "opus": "Opus", "mp3": "MP3"}.get(a.codec_name.lower())
        if label:
            changes["audio_encoder"] = label

    return replace(spec, **changes)
