"""
ffqueue.probe
~~~~~~~~~~~~~
Thin wrapper around the ffprobe CLI.
Returns structured MediaSummary dataclasses; no Qt.
"""

from __future__ import annotations

import json
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from ffqueue.command_builder import build_probe_command
from ffqueue.errors import ProbeError
from ffqueue.models import AudioStreamInfo, MediaSummary, VideoStreamInfo, parse_float, parse_int
from ffqueue.paths import FFPROBE_BIN


# ── Public API ────────────────────────────────────────────────────────────────

def probe(file: Path, ffprobe_bin: str | Path = FFPROBE_BIN) -> MediaSummary:
    """
    Run ffprobe on *file* and return a MediaSummary.

    Raises:
        ProbeError – the file is missing, ffprobe cannot be launched,
                     or its output holds no decodable JSON report
    """
    if not file.exists():
        raise ProbeError(f"Input file not found: {file}")

    raw = _run_ffprobe(file, ffprobe_bin)
    return parse_probe_output(file, raw)


def probe_many(
    files: list[Path],
    ffprobe_bin: str | Path = FFPROBE_BIN,
    max_workers: int | None = None,
) -> list[MediaSummary | ProbeError]:
    """
    Probe every file concurrently and wait for all of them.

    Results come back in input order. A failed probe yields its
    ProbeError in that slot instead of aborting the others.
    """
    if not files:
        return []

    def _one(file: Path) -> MediaSummary | ProbeError:
        try:
            return probe(file, ffprobe_bin)
        except ProbeError as exc:
            print(f"[PROBE] ❌ {file.name}: {exc}")
            return exc

    with ThreadPoolExecutor(max_workers=max_workers or min(len(files), 8)) as pool:
        return list(pool.map(_one, files))


def parse_probe_output(file: Path, text: str) -> MediaSummary:
    """
    Decode ffprobe's JSON report.

    ffprobe sometimes wraps the JSON in stray text, so only the part
    between the first ``{`` and the last ``}`` is decoded. Numeric
    fields may be numbers or strings; unparsable ones become 0.
    """
    body = extract_json_body(text)
    if body is None:
        raise ProbeError(f"No JSON report in ffprobe output for {file.name}")
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ProbeError(f"Malformed ffprobe JSON for {file.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise ProbeError(f"Unexpected ffprobe report for {file.name}")

    streams = [s for s in data.get("streams") or [] if isinstance(s, dict)]

    # Pull the first video stream and first audio stream
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    # Container duration is not requested; the video stream's (or else
    # the first stream's) duration stands in for it.
    duration_source = video_stream or (streams[0] if streams else {})
    duration = parse_float(duration_source.get("duration"))
    if duration is not None and duration < 0:
        duration = None

    video = None
    if video_stream is not None:
        video = VideoStreamInfo(
            codec_name=str(video_stream.get("codec_name") or ""),
            width=_as_int(video_stream.get("width")),
            height=_as_int(video_stream.get("height")),
            fps=_parse_fraction(video_stream.get("avg_frame_rate", "0/1")),
            bit_rate=_as_int(video_stream.get("bit_rate")),
        )

    audio = None
    if audio_stream is not None:
        audio = AudioStreamInfo(
            codec_name=str(audio_stream.get("codec_name") or ""),
            bit_rate=_as_int(audio_stream.get("bit_rate")),
        )

    return MediaSummary(
        path=file,
        duration_seconds=duration,
        video=video,
        audio=audio,
        stream_count=len(streams),
    )


def extract_json_body(text: str) -> str | None:
    """Substring from the first ``{`` to the last ``}``, or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start:end + 1]


# ── Internal helpers ──────────────────────────────────────────────────────────

def _run_ffprobe(file: Path, ffprobe_bin: str | Path) -> str:
    """Execute ffprobe and return its raw stdout."""
    cmd = build_probe_command(file, str(ffprobe_bin))

    try:
        result = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        raise ProbeError(f"Could not launch ffprobe ({ffprobe_bin}): {exc}") from exc

    if result.returncode != 0 and extract_json_body(result.stdout) is None:
        raise ProbeError(
            f"ffprobe failed on {file.name}:\n{result.stderr.strip()}"
        )

    return result.stdout


def _as_int(value) -> int:
    """JSON leaf that may be int, float or string → int (0 if unusable)."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    number = parse_float(value)
    return int(number) if number is not None else 0


def _parse_fraction(frac) -> float:
    """Convert a fraction string like '24000/1001' (or plain '30') to a float."""
    text = str(frac)
    if "/" not in text:
        return parse_float(text) or 0.0
    try:
        num, den = text.split("/")
        return float(num) / float(den) if float(den) != 0 else 0.0
    except (ValueError, ZeroDivisionError):
        return 0.0
