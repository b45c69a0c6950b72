"""
ffqueue.worker
~~~~~~~~~~~~~~
Process supervision for ffmpeg, plus the background probe pass.

ProcessSupervisor (lives on the GUI thread) owns at most one ffmpeg
child at a time and walks it through

    IDLE → SPAWNING → RUNNING → SUCCEEDED | FAILED | CANCELLED → IDLE

The child's pipes are read on a TranscodeWorker QThread, which never
touches supervisor state: it only emits signals. Qt queues those onto
the supervisor's thread, so every state change happens in one place.

ProcessSupervisor signals
-------------------------
state_changed(SupervisorState)
progress_changed(ProgressSnapshot | None)   None = clear the display
log_line(str)                               live, human-readable log
run_finished(RunResult)                     once per run, after IDLE is restored
"""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path

from PySide6.QtCore import QObject, QThread, QTimer, Signal

from ffqueue.command_builder import command_as_string
from ffqueue.errors import LaunchError
from ffqueue.models import ProgressSnapshot, RunResult, SupervisorState
from ffqueue.paths import FFMPEG_BIN, FFPROBE_BIN
from ffqueue.presets import HARDWARE_CODECS
from ffqueue.probe import probe_many
from ffqueue.progress import DEFAULT_MAX_LOG_LINES, LogBuffer, ProgressStreamParser

CHUNK_SIZE = 4096

# ffmpeg traps SIGTERM and exits with this status instead of dying by the signal
FFMPEG_SIGNAL_EXIT = 255


# ── Pure helpers ──────────────────────────────────────────────────────────────

def uses_hardware_encoder(args: list[str]) -> bool:
    return any(arg in HARDWARE_CODECS for arg in args)


def build_invocation(
    args: list[str],
    ffmpeg_bin: str | Path = FFMPEG_BIN,
    has_video: bool = True,
    hwaccel: str = "",
) -> list[str]:
    """
    Full command line: binary, injected flags, compiled arguments.

        ffmpeg
          -nostats               ← suppress human-readable stats on stderr
          -progress pipe:1       ← machine-readable key=value progress on stdout
          -hwaccel <name>        ← only for video jobs without a hardware encoder
          <args>                 ← from build_transcode_command
    """
    cmd = [str(ffmpeg_bin), "-nostats", "-progress", "pipe:1"]
    if has_video and hwaccel and not uses_hardware_encoder(args):
        cmd += ["-hwaccel", hwaccel]
    return cmd + list(args)


def classify_exit(returncode: int, stop_requested: bool = False) -> SupervisorState:
    if returncode == 0:
        return SupervisorState.SUCCEEDED
    if returncode < 0:
        # killed by a signal
        return SupervisorState.CANCELLED
    if stop_requested and returncode == FFMPEG_SIGNAL_EXIT:
        return SupervisorState.CANCELLED
    return SupervisorState.FAILED


# ── Pipe reader thread ────────────────────────────────────────────────────────

class TranscodeWorker(QThread):
    """Reads one ffmpeg child's stdout/stderr until it exits."""

    progress_changed = Signal(object)     # ProgressSnapshot
    log_line         = Signal(str)
    exited           = Signal(int, str)   # return code, accumulated stderr

    def __init__(self, process, total_duration: float, total_frames: int | None = None, parent=None):
        super().__init__(parent)
        self._process = process
        self._total_duration = total_duration
        self._total_frames = total_frames

    # ── QThread entry point ───────────────────────────────────────────────────

    def run(self):
        print(f"[WORKER] Reading pipes of PID {getattr(self._process, 'pid', '?')}")
        parser = ProgressStreamParser(
            self._total_duration,
            self._total_frames,
            on_snapshot=self.progress_changed.emit,
            on_line=self.log_line.emit,
        )

        # ── Drain stderr in a background thread to prevent pipe deadlock ──────
        # If only stdout is read, the stderr pipe buffer fills up, ffmpeg
        # blocks writing to it and stdout stalls forever.
        stderr_chunks: list[str] = []

        def _drain_stderr():
            for raw in self._process.stderr:
                text = raw.decode("utf-8", errors="replace")
                stderr_chunks.append(text)
                line = text.rstrip()
                if line:
                    self.log_line.emit(line)

        stderr_thread = threading.Thread(target=_drain_stderr, daemon=True)
        stderr_thread.start()

        # ── Read progress from stdout ─────────────────────────────────────────
        snapshot_count = 0
        while True:
            chunk = self._process.stdout.read1(CHUNK_SIZE)
            if not chunk:
                break
            snapshot_count += len(parser.feed(chunk))
        snapshot_count += len(parser.close())

        stderr_thread.join()
        returncode = self._process.wait()

        print(f"[WORKER] ffmpeg exited with code {returncode} "
              f"({snapshot_count} progress blocks)")
        self.exited.emit(returncode, "".join(stderr_chunks))

    # ── Cancel ────────────────────────────────────────────────────────────────

    def cancel(self):
        """Ask ffmpeg to stop. No kill: it gets to finish the file cleanly."""
        if self._process.poll() is None:
            self._process.terminate()
            print("[WORKER] Terminate sent")
        else:
            print("[WORKER] cancel() — process already exited")


# ── Supervisor ────────────────────────────────────────────────────────────────

class ProcessSupervisor(QObject):

    state_changed    = Signal(object)
    progress_changed = Signal(object)
    log_line         = Signal(str)
    run_finished     = Signal(object)

    def __init__(
        self,
        ffmpeg_bin: str | Path = FFMPEG_BIN,
        hwaccel: str = "",
        max_log_lines: int = DEFAULT_MAX_LOG_LINES,
        success_hold_ms: int = 1000,
        popen=subprocess.Popen,
        parent=None,
    ):
        super().__init__(parent)
        self.ffmpeg_bin = str(ffmpeg_bin)
        self.hwaccel = hwaccel
        self.success_hold_ms = success_hold_ms
        self.log = LogBuffer(max_log_lines)
        self._popen = popen
        self._state = SupervisorState.IDLE
        self._worker: TranscodeWorker | None = None
        self._stop_requested = False
        self._run_id = 0
        self._total_duration = 0.0
        self._total_frames: int | None = None

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SupervisorState.RUNNING

    # ── Public API ────────────────────────────────────────────────────────────

    def start(
        self,
        args: list[str],
        total_duration: float,
        has_video: bool = True,
        total_frames: int | None = None,
    ) -> list[str]:
        """
        Launch ffmpeg with *args* and return the full command line.

        Raises:
            RuntimeError – a run is already in progress
            LaunchError  – the binary could not be started
        """
        if self._state is not SupervisorState.IDLE:
            raise RuntimeError(f"Supervisor is busy ({self._state.name})")

        cmd = build_invocation(args, self.ffmpeg_bin, has_video, self.hwaccel)
        self._run_id += 1
        self._stop_requested = False
        self._total_duration = total_duration
        self._total_frames = total_frames
        self.log.clear()

        self._set_state(SupervisorState.SPAWNING)
        self._append_log(f"🚀 Running: {command_as_string(cmd)}")
        print(f"[SUPERVISOR] Command:\n  {command_as_string(cmd)}")

        try:
            process = self._popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as exc:
            print(f"[SUPERVISOR] ❌ Launch failed: {exc}")
            self._append_log(f"Could not start ffmpeg: {exc}")
            self._set_state(SupervisorState.IDLE)
            raise LaunchError(f"Could not launch ffmpeg ({cmd[0]}): {exc}") from exc

        worker = TranscodeWorker(process, total_duration, total_frames, parent=self)
        worker.progress_changed.connect(self._on_progress)
        worker.log_line.connect(self._append_log)
        worker.exited.connect(self._on_exited)
        worker.finished.connect(worker.deleteLater)
        self._worker = worker

        self._set_state(SupervisorState.RUNNING)
        self.progress_changed.emit(
            ProgressSnapshot(total_duration=total_duration, total_frames=total_frames)
        )
        worker.start()
        return cmd

    def stop(self) -> bool:
        """Request termination of the running child. False if nothing is running."""
        if self._state is not SupervisorState.RUNNING or self._worker is None:
            print(f"[SUPERVISOR] stop() ignored in state {self._state.name}")
            return False
        self._stop_requested = True
        self._worker.cancel()
        return True

    def wait(self, timeout_ms: int = 5000) -> bool:
        """Block until the reader thread is done (used on shutdown)."""
        if self._worker is None:
            return True
        return self._worker.wait(timeout_ms)

    # ── Worker signal handlers ────────────────────────────────────────────────

    def _on_progress(self, snapshot: ProgressSnapshot) -> None:
        if self._state is SupervisorState.RUNNING:
            self.progress_changed.emit(snapshot)

    def _on_exited(self, returncode: int, stderr_text: str) -> None:
        state = classify_exit(returncode, self._stop_requested)
        print(f"[SUPERVISOR] Exit code {returncode} → {state.name}")

        if state is SupervisorState.SUCCEEDED:
            self.progress_changed.emit(ProgressSnapshot(
                current_time=self._total_duration,
                total_duration=self._total_duration,
                current_frame=self._total_frames,
                total_frames=self._total_frames,
                speed=1.0,
            ))
            self._append_log("✅ Completed successfully.")
            run_id = self._run_id
            QTimer.singleShot(self.success_hold_ms, lambda: self._clear_progress(run_id))
        elif state is SupervisorState.CANCELLED:
            self.progress_changed.emit(None)
            self._append_log("🛑 Stopped by user.")
        else:
            self.progress_changed.emit(None)
            self._append_log(f"❌ Failed with exit code {returncode}.")

        result = RunResult(
            state=state,
            return_code=returncode,
            error_text=stderr_text if state is SupervisorState.FAILED else "",
        )
        self._worker = None
        self._set_state(state)
        self._set_state(SupervisorState.IDLE)
        self.run_finished.emit(result)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _clear_progress(self, run_id: int) -> None:
        # a newer run owns the display by now
        if run_id == self._run_id and self._state is SupervisorState.IDLE:
            self.progress_changed.emit(None)

    def _append_log(self, line: str) -> None:
        self.log.append(line)
        self.log_line.emit(line)

    def _set_state(self, state: SupervisorState) -> None:
        print(f"[SUPERVISOR] State: {self._state.name} → {state.name}")
        self._state = state
        self.state_changed.emit(state)


# ── Probe pass ────────────────────────────────────────────────────────────────

class ProbeWorker(QThread):
    """Probes every file concurrently off the GUI thread; emits once when all are done."""

    probed = Signal(object)   # list[MediaSummary | ProbeError], input order

    def __init__(self, files: list[Path], ffprobe_bin: str | Path = FFPROBE_BIN, parent=None):
        super().__init__(parent)
        self._files = list(files)
        self._ffprobe_bin = ffprobe_bin

    def run(self):
        print(f"[PROBE] Probing {len(self._files)} file(s)")
        results = probe_many(self._files, self._ffprobe_bin)
        self.probed.emit(results)
