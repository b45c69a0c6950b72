"""
ffqueue.overseer
~~~~~~~~~~~~~~~~
BatchOrchestrator runs one batch of queued items through ffmpeg,
strictly one after another.

    NOT_STARTED → PROBING → ACQUIRING → DISPATCHING(i) … → COMPLETED
                                                         ↘ CANCELLED | FAILED

The first failure halts the queue; nothing is retried. The output
directory capability is released exactly once on every way out.

Signals
-------
status_changed(BatchStatus)
item_started(int, Path)          index, source file
item_progress(ProgressSnapshot)
overall_progress(float)          0.0 – 1.0 across the whole batch
etr_changed(str)                 "Calculating…", "Finishing…" or "About …"
log_line(str)
batch_finished(BatchOutcome)
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable

from PySide6.QtCore import QObject, QTimer, Signal

from ffqueue.batch import BatchState
from ffqueue.command_builder import build_transcode_command
from ffqueue.errors import CapabilityError, LaunchError
from ffqueue.models import (
    BatchItem, BatchOutcome, BatchStatus, ProgressSnapshot, RunResult, SupervisorState, processing_summary,
)
from ffqueue.paths import FFPROBE_BIN
from ffqueue.progress import format_remaining
from ffqueue.scanner import build_output_path
from ffqueue.worker import ProbeWorker, ProcessSupervisor

ETR_CALCULATING = "Calculating…"
ETR_FINISHING = "Finishing…"


def describe_remaining(seconds: float | None) -> str:
    if seconds is None:
        return ETR_CALCULATING
    if seconds <= 0:
        return ETR_FINISHING
    return f"About {format_remaining(seconds)}"


class BatchOrchestrator(QObject):

    status_changed   = Signal(object)
    item_started     = Signal(int, object)
    item_progress    = Signal(object)
    overall_progress = Signal(float)
    etr_changed      = Signal(str)
    log_line         = Signal(str)
    batch_finished   = Signal(object)

    def __init__(
        self,
        supervisor: ProcessSupervisor | None = None,
        ffprobe_bin: str | Path = FFPROBE_BIN,
        etr_interval_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        parent=None,
    ):
        super().__init__(parent)
        self.supervisor = supervisor if supervisor is not None else ProcessSupervisor(parent=self)
        self.state = BatchState()
        self._ffprobe_bin = ffprobe_bin
        self._clock = clock
        self._capability = None
        self._capability_held = False
        self._probe_worker: ProbeWorker | None = None

        self._etr_timer = QTimer(self)
        self._etr_timer.setInterval(etr_interval_ms)
        self._etr_timer.timeout.connect(self.refresh_etr)

        self.supervisor.progress_changed.connect(self._on_progress)
        self.supervisor.log_line.connect(self.log_line)
        self.supervisor.run_finished.connect(self._on_run_finished)

    @property
    def is_active(self) -> bool:
        return self.state.status not in (BatchStatus.NOT_STARTED,) and not self.state.is_terminal

    # ── Public API ────────────────────────────────────────────────────────────

    def start(self, items: list[BatchItem], capability) -> None:
        """
        Begin a batch. *capability* grants access to the output directory
        (see ffqueue.capability); it is acquired after probing and
        released when the batch ends.
        """
        if self.is_active or self.supervisor.state is not SupervisorState.IDLE:
            raise RuntimeError("A batch is already running")

        print(f"[OVERSEER] start: {len(items)} item(s) → '{capability.directory}'")
        self.state.reset(items)
        self._capability = capability
        self._capability_held = False

        self._set_status(BatchStatus.PROBING)
        self.overall_progress.emit(0.0)
        self.etr_changed.emit(ETR_CALCULATING)
        self._etr_timer.start()

        worker = ProbeWorker([item.source for item in items], self._ffprobe_bin, parent=self)
        worker.probed.connect(self._on_probes_finished)
        worker.finished.connect(worker.deleteLater)
        self._probe_worker = worker
        worker.start()

    def cancel(self) -> None:
        """Stop the running item (terminate, no kill) and end the batch as CANCELLED."""
        if not self.is_active:
            print("[OVERSEER] cancel() — no active batch")
            return
        print("[OVERSEER] cancel requested")
        self.supervisor.stop()
        self._finish(BatchStatus.CANCELLED)

    def refresh_etr(self) -> None:
        """Recompute the estimate; also driven by the timer between progress events."""
        if not self.is_active:
            return
        self.etr_changed.emit(describe_remaining(self.state.estimate_remaining(self._clock())))

    # ── Probe barrier ─────────────────────────────────────────────────────────

    def _on_probes_finished(self, results: list) -> None:
        self._probe_worker = None
        if self.state.status is not BatchStatus.PROBING:
            print("[OVERSEER] Probe results arrived after the batch ended — ignored")
            return

        self.state.apply_probe_results(results)
        for item in self.state.items:
            if item.summary is not None:
                self.log_line.emit(f"ℹ {item.source.name}: {item.summary.describe_video()}")
                self.log_line.emit(f"ℹ {item.source.name}: {item.summary.describe_audio()}")
            if not item.duration_known:
                self.log_line.emit(f"⚠ Duration of {item.source.name} unknown; progress will be approximate.")
        print(f"[OVERSEER] Total batch duration = {self.state.total_duration:.2f}s")

        self.state.begin(self._clock())
        self._set_status(BatchStatus.ACQUIRING)
        try:
            self._capability.acquire()
        except CapabilityError as exc:
            print(f"[OVERSEER] ❌ {exc}")
            self._finish(BatchStatus.FAILED, str(exc))
            return
        self._capability_held = True

        self._set_status(BatchStatus.DISPATCHING)
        self._dispatch_next()

    # ── Sequencing ────────────────────────────────────────────────────────────

    def _dispatch_next(self) -> None:
        item = self.state.advance()
        self.overall_progress.emit(self.state.overall_fraction)
        if item is None:
            self._finish(BatchStatus.COMPLETED)
            return

        index = self.state.index
        item.output_file = build_output_path(item.source, self._capability.directory, item.spec)
        args = build_transcode_command(item.spec, item.source, item.output_file, has_audio=item.has_audio)
        print(f"[OVERSEER] Item {index + 1}/{self.state.total_items}: "
              f"'{item.source.name}' → '{item.output_file.name}'")
        self.log_line.emit(f"▶ {item.source.name} ({processing_summary(item.spec)})")
        self.item_started.emit(index, item.source)

        try:
            self.supervisor.start(args, item.duration, has_video=item.has_video)
        except LaunchError as exc:
            self._finish(BatchStatus.FAILED, str(exc))

    def _on_run_finished(self, result: RunResult) -> None:
        if self.state.status is not BatchStatus.DISPATCHING:
            print(f"[OVERSEER] Run finished ({result.state.name}) after batch ended — ignored")
            return

        if result.state is SupervisorState.SUCCEEDED:
            self._dispatch_next()
        elif result.state is SupervisorState.CANCELLED:
            self._finish(BatchStatus.CANCELLED)
        else:
            message = result.error_text or f"ffmpeg exited with code {result.return_code}"
            self._finish(BatchStatus.FAILED, message)

    def _on_progress(self, snapshot: ProgressSnapshot | None) -> None:
        if snapshot is None or self.state.status is not BatchStatus.DISPATCHING:
            return
        overall = self.state.record_progress(snapshot)
        self.item_progress.emit(snapshot)
        self.overall_progress.emit(overall)

    # ── Termination ───────────────────────────────────────────────────────────

    def _finish(self, status: BatchStatus, message: str = "") -> None:
        if self.state.is_terminal:
            return
        self._etr_timer.stop()
        self._release_capability()

        self._set_status(status)
        outcome: BatchOutcome = self.state.finish(status, message)
        print(f"[OVERSEER] Batch {status.name} "
              f"({outcome.completed_items}/{outcome.total_items} done)")

        if status is BatchStatus.COMPLETED:
            self.overall_progress.emit(1.0)
        self.etr_changed.emit("")
        self.batch_finished.emit(outcome)

    def _release_capability(self) -> None:
        if self._capability_held:
            self._capability_held = False
            self._capability.release()

    def _set_status(self, status: BatchStatus) -> None:
        print(f"[OVERSEER] Status: {self.state.status.name} → {status.name}")
        self.state.status = status
        self.status_changed.emit(status)
