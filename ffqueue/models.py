"""
ffqueue.models
~~~~~~~~~~~~~~
Pure dataclasses. No Qt, no I/O.
These travel freely between ffqueue and ui.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from pathlib import Path


# ── Enums ─────────────────────────────────────────────────────────────────────

class SupervisorState(Enum):
    IDLE      = auto()  # no subprocess
    SPAWNING  = auto()  # Popen in progress
    RUNNING   = auto()  # child alive, pipes being read
    SUCCEEDED = auto()  # exit code 0
    FAILED    = auto()  # non-zero exit, not caused by a stop request
    CANCELLED = auto()  # terminated by a signal / stop request


class BatchStatus(Enum):
    NOT_STARTED = auto()
    PROBING     = auto()  # ffprobe fan-out in flight
    ACQUIRING   = auto()  # asking for output-directory access
    DISPATCHING = auto()  # one item at a time through the supervisor
    COMPLETED   = auto()
    CANCELLED   = auto()
    FAILED      = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.CANCELLED, BatchStatus.FAILED)


class Dimension(Enum):
    WIDTH  = auto()
    HEIGHT = auto()


# ── Lenient numeric parsing ───────────────────────────────────────────────────
# Settings arrive as free text. Anything that does not parse is "not set".

def parse_int(text: str | None) -> int | None:
    try:
        return int(str(text).strip())
    except (TypeError, ValueError):
        return None


def parse_float(text: str | None) -> float | None:
    try:
        value = float(str(text).strip())
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def parse_positive_int(text: str | None) -> int | None:
    value = parse_int(text)
    return value if value is not None and value > 0 else None


def parse_positive_float(text: str | None) -> float | None:
    value = parse_float(text)
    return value if value is not None and value > 0 else None


# ── Colours ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RGBAColor:
    """Colour with 0.0 – 1.0 components, as stored in presets."""
    red: float = 1.0
    green: float = 1.0
    blue: float = 1.0
    opacity: float = 1.0

    def to_ass_hex(self) -> str:
        """
        ASS colour literal ``&HAABBGGRR``.
        The alpha byte is inverted: 00 is opaque, FF is transparent.
        """
        def byte(component: float) -> int:
            return int(round(min(max(component, 0.0), 1.0) * 255))

        alpha = 255 - byte(self.opacity)
        return f"&H{alpha:02X}{byte(self.blue):02X}{byte(self.green):02X}{byte(self.red):02X}"


WHITE = RGBAColor(1.0, 1.0, 1.0, 1.0)
BLACK = RGBAColor(0.0, 0.0, 0.0, 1.0)


# ── Per-item settings ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProcessingSpec:
    """
    Settings snapshot for one queue item.

    Built once before a batch starts and never mutated while it runs;
    editors produce new instances with ``dataclasses.replace``.
    Numeric values are kept as the text the user typed so that a
    malformed entry simply switches its option off.

    ``audio_only`` and ``video_only`` are mutually exclusive. Editors
    must enforce that; the command builder lets ``audio_only`` win if
    both arrive set.
    """
    resolution_enabled: bool = False
    frame_rate_enabled: bool = False
    video_bitrate_enabled: bool = False
    audio_bitrate_enabled: bool = False
    container_enabled: bool = False
    speed_enabled: bool = False
    subtitle_enabled: bool = False
    audio_only: bool = False
    video_only: bool = False

    width: str = "1920"
    height: str = "1080"
    keep_aspect_ratio: bool = True
    frame_rate: str = "60"
    video_bitrate: str = "1600"          # kbps
    video_encoder: str = "HEVC (Hardware)"
    audio_bitrate: str = "32"            # kbps
    audio_encoder: str = "AAC"
    container: str = "MP4"
    speed_percentage: str = "100"

    subtitle_path: str = ""
    subtitle_position: str = "Bottom Center"
    subtitle_color: RGBAColor = WHITE
    subtitle_font: str = "Arial"
    subtitle_font_size: str = "24"
    subtitle_outline_color: RGBAColor = BLACK
    subtitle_outline_width: str = "2"

    @property
    def speed_multiplier(self) -> float | None:
        """1.0 == 100 %. None when the speed option is off or unusable."""
        if not self.speed_enabled:
            return None
        percentage = parse_positive_float(self.speed_percentage)
        return percentage / 100.0 if percentage is not None else None


def recompute_linked_dimension(
    spec: ProcessingSpec,
    edited: Dimension,
    source_width: int,
    source_height: int,
) -> ProcessingSpec:
    """
    Return *spec* with the other dimension recomputed from the edited one
    so the source aspect ratio is kept.

    Returns *spec* unchanged when aspect locking is off, the source size
    is unknown, or the edited field is not an integer. Calling it twice
    gives the same result as calling it once.
    """
    if not spec.keep_aspect_ratio or source_width <= 0 or source_height <= 0:
        return spec

    if edited is Dimension.WIDTH:
        width = parse_int(spec.width)
        if width is None:
            return spec
        height = math.floor(width * source_height / source_width + 0.5)
        return replace(spec, height=str(height))

    height = parse_int(spec.height)
    if height is None:
        return spec
    width = math.floor(height * source_width / source_height + 0.5)
    return replace(spec, width=str(width))


def processing_summary(spec: ProcessingSpec) -> str:
    """Short description of what will be done to an item."""
    if spec.audio_only:
        return "Audio only"
    if spec.video_only:
        return "Video only"

    enabled = [
        name for name, flag in (
            ("Resolution",    spec.resolution_enabled),
            ("Frame rate",    spec.frame_rate_enabled),
            ("Video bitrate", spec.video_bitrate_enabled),
            ("Audio bitrate", spec.audio_bitrate_enabled),
            ("Container",     spec.container_enabled),
            ("Speed",         spec.speed_enabled),
            ("Subtitles",     spec.subtitle_enabled),
        ) if flag
    ]
    if not enabled:
        return "No processing"
    if len(enabled) <= 3:
        return ", ".join(enabled)
    return f"{enabled[0]}, {enabled[1]} and {len(enabled) - 2} more"


# ── Probe result (returned by ffqueue.probe) ──────────────────────────────────

@dataclass
class VideoStreamInfo:
    codec_name: str = ""
    width: int = 0
    height: int = 0
    fps: float = 0.0
    bit_rate: int = 0          # bits per second


@dataclass
class AudioStreamInfo:
    codec_name: str = ""
    bit_rate: int = 0


@dataclass
class MediaSummary:
    """Metadata extracted from a media file via ffprobe."""
    path: Path
    duration_seconds: float | None = None   # None if unknown
    video: VideoStreamInfo | None = None
    audio: AudioStreamInfo | None = None
    stream_count: int = 0

    @property
    def duration_known(self) -> bool:
        return self.duration_seconds is not None

    def describe_video(self) -> str:
        if self.video is None:
            return "No video stream"
        v = self.video
        return (f"{v.width}x{v.height} | {(v.codec_name or 'N/A').upper()} | "
                f"{v.bit_rate // 1000}Kbps | {v.fps:.2f}FPS")

    def describe_audio(self) -> str:
        if self.audio is None:
            return "No audio stream"
        a = self.audio
        return f"{(a.codec_name or 'N/A').upper()} | {a.bit_rate // 1000}Kbps"


# ── Progress ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProgressSnapshot:
    """One parsed ``progress=`` block. Replaced wholesale on every block."""
    current_time: float = 0.0          # seconds of output written
    total_duration: float = 0.0
    current_frame: int | None = None
    total_frames: int | None = None
    speed: float = 0.0                 # encode speed multiplier (1.0 == realtime)

    @property
    def fraction_complete(self) -> float:
        if self.total_duration <= 0:
            return 0.0
        return self.current_time / self.total_duration

    @property
    def percentage(self) -> int:
        return int(math.floor(self.fraction_complete * 100))

    @property
    def eta(self) -> float | None:
        if self.speed > 0 and self.current_time > 0 and self.total_duration > self.current_time:
            return (self.total_duration - self.current_time) / self.speed
        return None


@dataclass(frozen=True)
class RunResult:
    """Terminal report of one supervised ffmpeg run."""
    state: SupervisorState
    return_code: int | None = None
    error_text: str = ""      # accumulated stderr, only for FAILED


# ── Batch ─────────────────────────────────────────────────────────────────────

@dataclass
class BatchItem:
    """
    One queued source file and its settings.
    The orchestrator fills in the runtime fields.
    """
    source: Path
    spec: ProcessingSpec = field(default_factory=ProcessingSpec)
    match_source: bool = False      # seed the settings from the probed streams

    # Runtime state, filled in by the orchestrator
    summary: MediaSummary | None = field(default=None, compare=False)
    duration: float = field(default=0.0, compare=False)          # adjusted, seconds
    duration_known: bool = field(default=False, compare=False)
    output_file: Path | None = field(default=None, compare=False)

    @property
    def has_video(self) -> bool:
        if self.spec.audio_only:
            return False
        return self.summary is None or self.summary.video is not None

    @property
    def has_audio(self) -> bool:
        if self.spec.video_only:
            return False
        return self.summary is None or self.summary.audio is not None


@dataclass(frozen=True)
class BatchOutcome:
    status: BatchStatus
    message: str = ""          # stderr text for FAILED, empty otherwise
    completed_items: int = 0
    total_items: int = 0
