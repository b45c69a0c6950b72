"""
ffqueue.command_builder
~~~~~~~~~~~~~~~~~~~~~~~
Builds ffmpeg CLI arguments as plain list[str].

Keeping command construction separate means you can:
  - log / print the exact command before running it
  - paste it straight into a terminal for debugging
  - unit-test flag generation without running any process

Nothing here touches the filesystem. Malformed numeric settings never
raise; the option they belong to is simply left out.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from ffqueue.models import ProcessingSpec, parse_int, parse_positive_float, parse_positive_int
from ffqueue.presets import (
    AUDIO_ENCODERS,
    DEFAULT_AUDIO_ENCODER,
    DEFAULT_SUBTITLE_ALIGNMENT,
    PRORES_LABEL,
    SUBTITLE_ALIGNMENT,
    VIDEO_ENCODERS,
)

PROBE_ENTRIES = "stream=duration,avg_frame_rate,codec_type,codec_name,bit_rate,width,height"

# Used when subtitles force a re-encode but no encoder was chosen
SUBTITLE_FALLBACK_CODEC = "libx264"

_FILTER_SPECIAL = ":',;[]"


def build_transcode_command(
    spec: ProcessingSpec,
    input_file: Path,
    output_file: Path,
    has_audio: bool = True,
) -> list[str]:
    """
    Build the ffmpeg arguments (without the binary) for one item.
    Pass has_audio=False for sources without an audio stream so that no
    tempo chain is built for audio that is not there.

    The command structure is:
        -i <input>
        -vn | -an                 ← audio-only / video-only
        <video codec + options>   ← or "-c:v copy" when nothing touches video
        <audio codec + options>
        -vf … | -af … | -filter_complex … -map [v] -map [a]
        -y <output>

    Example output (speed 50 %, both streams):
        ['-i', '/in/clip.mov',
         '-filter_complex', '[0:v]setpts=2.0*PTS[v];[0:a]atempo=0.5[a]',
         '-map', '[v]', '-map', '[a]', '-y', '/out/clip_converted.mov']
    """
    args: list[str] = ["-i", str(input_file)]
    video_filters: list[str] = []
    audio_filters: list[str] = []

    audio_only = spec.audio_only
    video_only = spec.video_only and not audio_only
    multiplier = spec.speed_multiplier

    if audio_only:
        args.append("-vn")
    else:
        if video_only:
            args.append("-an")
        args += _video_arguments(spec, video_filters)

    if not video_only:
        if multiplier is not None and has_audio:
            audio_filters += [f"atempo={_number(f)}" for f in build_atempo_chain(multiplier)]
        args += _audio_arguments(spec, audio_only)

    args += _filter_arguments(video_filters, audio_filters)
    args += ["-y", str(output_file)]
    return args


def output_extension(input_file: Path, spec: ProcessingSpec) -> str:
    """
    Extension (no dot) for the converted file.
    ProRes only goes into the chosen container, so it forces the override.
    """
    if spec.container_enabled or spec.video_encoder == PRORES_LABEL:
        return spec.container.lower()
    return input_file.suffix.lstrip(".") or spec.container.lower()


def build_force_style(spec: ProcessingSpec) -> str:
    """Comma-joined ASS override pairs for the ``subtitles`` filter."""
    parts = [
        f"Alignment={SUBTITLE_ALIGNMENT.get(spec.subtitle_position, DEFAULT_SUBTITLE_ALIGNMENT)}",
        f"PrimaryColour={spec.subtitle_color.to_ass_hex()}",
    ]
    if spec.subtitle_font.strip():
        parts.append(f"FontName={spec.subtitle_font.strip()}")
    font_size = parse_positive_int(spec.subtitle_font_size)
    if font_size is not None:
        parts.append(f"FontSize={font_size}")
    parts.append(f"OutlineColour={spec.subtitle_outline_color.to_ass_hex()}")
    outline = parse_int(spec.subtitle_outline_width)
    if outline is not None and outline >= 0:
        parts.append(f"Outline={outline}")
    return ",".join(parts)


def build_atempo_chain(multiplier: float) -> list[float]:
    """
    Split a tempo change into atempo stages of at most 2.0 / at least 0.5.
    The product of the stages equals *multiplier*.
    """
    if multiplier <= 0:
        return []
    factors = []
    while multiplier > 2.0:
        factors.append(2.0)
        multiplier /= 2.0
    while multiplier < 0.5:
        factors.append(0.5)
        multiplier /= 0.5
    factors.append(multiplier)
    return factors


def escape_filter_path(path: str) -> str:
    """
    Make a file path safe inside a filtergraph option value.
    Backslashes become forward slashes; option and graph separators
    (``: ' , ; [ ]``) are backslash-escaped.
    """
    path = path.replace("\\", "/")
    for char in _FILTER_SPECIAL:
        path = path.replace(char, "\\" + char)
    return path


def build_probe_command(input_file: Path, ffprobe_bin: str) -> list[str]:
    """ffprobe call restricted to the stream fields the probe parser reads."""
    return [
        str(ffprobe_bin),
        "-v", "quiet",            # suppress banner
        "-print_format", "json",  # machine-readable output
        "-show_streams",
        "-show_entries", PROBE_ENTRIES,
        str(input_file),
    ]


def command_as_string(cmd: list[str]) -> str:
    """Shell-pasteable version of the command for logging."""
    return shlex.join(cmd)


# ── Internal helpers ──────────────────────────────────────────────────────────

def _video_arguments(spec: ProcessingSpec, filters: list[str]) -> list[str]:
    """Video codec options; appends to *filters* in their fixed order."""
    args: list[str] = []
    reencode = False

    if spec.resolution_enabled:
        width = parse_positive_int(spec.width)
        height = parse_positive_int(spec.height)
        if width is not None and height is not None:
            filters.append(f"scale={width}:{height}")
            reencode = True

    if spec.frame_rate_enabled:
        fps = parse_positive_float(spec.frame_rate)
        if fps is not None:
            args += ["-r", f"{fps:.2f}"]
            reencode = True

    multiplier = spec.speed_multiplier
    if multiplier is not None:
        filters.append(f"setpts={_number(1.0 / multiplier)}*PTS")
        reencode = True

    burn_subtitles = spec.subtitle_enabled and bool(spec.subtitle_path.strip())
    if burn_subtitles:
        filters.append(
            f"subtitles={escape_filter_path(spec.subtitle_path.strip())}"
            f":force_style='{build_force_style(spec)}'"
        )
        reencode = True

    bitrate = parse_positive_int(spec.video_bitrate) if spec.video_bitrate_enabled else None
    if bitrate is not None:
        reencode = True

    if not reencode:
        return ["-c:v", "copy"]

    # The encoder is pinned only together with a bitrate. Otherwise ffmpeg
    # picks its default, and burned-in subtitles use libx264.
    codec_args: list[str] = []
    if spec.video_bitrate_enabled:
        encoder = VIDEO_ENCODERS.get(spec.video_encoder)
        if encoder is not None:
            codec_args = ["-c:v", encoder.ffmpeg_codec, *encoder.extra_args]
        if bitrate is not None:
            codec_args += ["-b:v", f"{bitrate}k"]
    elif burn_subtitles:
        codec_args = ["-c:v", SUBTITLE_FALLBACK_CODEC]
    return codec_args + args


def _audio_arguments(spec: ProcessingSpec, audio_only: bool) -> list[str]:
    if audio_only:
        codec = AUDIO_ENCODERS.get(spec.audio_encoder, AUDIO_ENCODERS[DEFAULT_AUDIO_ENCODER])
    elif spec.audio_bitrate_enabled:
        codec = AUDIO_ENCODERS.get(spec.audio_encoder)
    else:
        return []

    args = ["-c:a", codec] if codec else []
    if spec.audio_bitrate_enabled:
        bitrate = parse_positive_int(spec.audio_bitrate)
        if bitrate is not None:
            args += ["-b:a", f"{bitrate}k"]
    return args


def _filter_arguments(video_filters: list[str], audio_filters: list[str]) -> list[str]:
    if video_filters and audio_filters:
        graph = f"[0:v]{','.join(video_filters)}[v];[0:a]{','.join(audio_filters)}[a]"
        return ["-filter_complex", graph, "-map", "[v]", "-map", "[a]"]
    if video_filters:
        return ["-vf", ",".join(video_filters)]
    if audio_filters:
        return ["-af", ",".join(audio_filters)]
    return []


def _number(value: float) -> str:
    """Short decimal form: 2.0, 0.5, 0.666667."""
    return str(round(value, 6))
