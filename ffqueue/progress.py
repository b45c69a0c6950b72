"""
ffqueue.progress
~~~~~~~~~~~~~~~~
Incremental parser for ffmpeg's ``-progress`` stream, plus the bounded
live-log buffer.

Wire format (one ``key=value`` per line, blocks end with ``progress=``):

    frame=240
    out_time_us=8000000
    speed=2.01x
    progress=continue

Chunks read from the pipe are not line-aligned; the parser keeps the
unfinished tail until the next chunk (or ``close()``) completes it.
"""

from __future__ import annotations

import re
from collections import deque
from typing import Callable

from ffqueue.models import ProgressSnapshot, parse_float, parse_int

DEFAULT_MAX_LOG_LINES = 500

_KEY_VALUE = re.compile(r"^([A-Za-z0-9_.]+)=(.*)$")


class ProgressStreamParser:
    """
    Feed raw stdout bytes in, get ProgressSnapshots out.

    Every ``key=value`` line updates a rolling table; only a ``progress``
    line emits a snapshot built from the latest ``out_time_us``,
    ``frame`` and ``speed``. Lines outside the protocol go to *on_line*.
    """

    def __init__(
        self,
        total_duration: float,
        total_frames: int | None = None,
        on_snapshot: Callable[[ProgressSnapshot], None] | None = None,
        on_line: Callable[[str], None] | None = None,
    ):
        self.total_duration = total_duration
        self.total_frames = total_frames
        self.values: dict[str, str] = {}
        self.finished = False           # saw progress=end
        self._on_snapshot = on_snapshot
        self._on_line = on_line
        self._pending = b""

    def feed(self, chunk: bytes) -> list[ProgressSnapshot]:
        """Consume one chunk; return the snapshots completed by it."""
        data = self._pending + chunk
        *lines, self._pending = data.split(b"\n")
        snapshots = []
        for raw in lines:
            snap = self._handle_line(raw)
            if snap is not None:
                snapshots.append(snap)
        return snapshots

    def close(self) -> list[ProgressSnapshot]:
        """Flush a trailing line that had no newline."""
        raw, self._pending = self._pending, b""
        if not raw:
            return []
        snap = self._handle_line(raw)
        return [snap] if snap is not None else []

    # ── Internal ──────────────────────────────────────────────────────────────

    def _handle_line(self, raw: bytes) -> ProgressSnapshot | None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return None

        match = _KEY_VALUE.match(line)
        if match is None:
            if self._on_line:
                self._on_line(line)
            return None

        key, value = match.group(1), match.group(2).strip()
        self.values[key] = value
        if key != "progress":
            return None

        if value == "end":
            self.finished = True
        snap = self._snapshot()
        if self._on_snapshot:
            self._on_snapshot(snap)
        return snap

    def _snapshot(self) -> ProgressSnapshot:
        micros = parse_float(self.values.get("out_time_us"))
        current_time = max(micros / 1_000_000, 0.0) if micros is not None else 0.0

        speed = parse_float(self.values.get("speed", "").replace("x", ""))

        return ProgressSnapshot(
            current_time=current_time,
            total_duration=self.total_duration,
            current_frame=parse_int(self.values.get("frame")),
            total_frames=self.total_frames,
            speed=speed if speed is not None and speed > 0 else 0.0,
        )


class LogBuffer:
    """Keeps the most recent *max_lines* non-empty lines of a live log."""

    def __init__(self, max_lines: int = DEFAULT_MAX_LOG_LINES):
        self._lines: deque[str] = deque(maxlen=max_lines)

    def append(self, text: str) -> None:
        for line in text.splitlines():
            if line.strip():
                self._lines.append(line)

    def clear(self) -> None:
        self._lines.clear()

    def lines(self) -> list[str]:
        return list(self._lines)

    def text(self) -> str:
        return "\n".join(self._lines)

    def __len__(self) -> int:
        return len(self._lines)


def format_remaining(seconds: float) -> str:
    """
    Spell out a duration using at most two units.

        format_remaining(3725) → "1 hour, 2 minutes"
        format_remaining(42)   → "42 seconds"
    """
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    for value, unit in ((hours, "hour"), (minutes, "minute"), (secs, "second")):
        if value and len(parts) < 2:
            parts.append(f"{value} {unit}{'' if value == 1 else 's'}")
    return ", ".join(parts) if parts else "0 seconds"
