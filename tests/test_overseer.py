"""Tests for the batch orchestrator, driven through a fake supervisor."""

from pathlib import Path

import pytest
from PySide6.QtCore import QObject, Signal

from ffqueue import overseer
from ffqueue.errors import CapabilityError, LaunchError, ProbeError
from ffqueue.models import (
    AudioStreamInfo, BatchItem, BatchStatus, MediaSummary, ProcessingSpec, ProgressSnapshot,
    RunResult, SupervisorState, VideoStreamInfo,
)
from ffqueue.overseer import ETR_CALCULATING, ETR_FINISHING, BatchOrchestrator, describe_remaining


class FakeSupervisor(QObject):
    state_changed    = Signal(object)
    progress_changed = Signal(object)
    log_line         = Signal(str)
    run_finished     = Signal(object)

    def __init__(self, launch_error=False):
        super().__init__()
        self.state = SupervisorState.IDLE
        self.launch_error = launch_error
        self.started = []
        self.stop_calls = 0

    def start(self, args, total_duration, has_video=True, total_frames=None):
        if self.launch_error:
            raise LaunchError("Could not launch ffmpeg (ffmpeg): not found")
        self.started.append((args, total_duration, has_video))
        return args

    def stop(self):
        self.stop_calls += 1
        return True

    def wait(self, timeout_ms=5000):
        return True

    def finish_run(self, state, code=0, error_text=""):
        self.run_finished.emit(RunResult(state=state, return_code=code, error_text=error_text))


class FakeCapability:
    def __init__(self, directory, fail=False):
        self.directory = Path(directory)
        self.fail = fail
        self.acquire_calls = 0
        self.release_calls = 0

    def acquire(self):
        self.acquire_calls += 1
        if self.fail:
            raise CapabilityError("Output directory is not writable")

    def release(self):
        self.release_calls += 1


class FakeProbeWorker(QObject):
    """Reports probe results synchronously from start()."""

    probed = Signal(object)
    finished = Signal()
    results = None

    def __init__(self, files, ffprobe_bin, parent=None):
        super().__init__(parent)
        self.files = files

    def start(self):
        results = FakeProbeWorker.results
        if results is None:
            results = [MediaSummary(path=f, duration_seconds=10.0, video=VideoStreamInfo())
                       for f in self.files]
        self.probed.emit(results)


class Clock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def probe_results(monkeypatch):
    monkeypatch.setattr(overseer, "ProbeWorker", FakeProbeWorker)
    monkeypatch.setattr(FakeProbeWorker, "results", None)

    def _set(results):
        FakeProbeWorker.results = results

    return _set


@pytest.fixture
def rig(qapp, probe_results, tmp_path):
    supervisor = FakeSupervisor()
    clock = Clock()
    orchestrator = BatchOrchestrator(supervisor=supervisor, clock=clock)
    events = {"status": [], "started": [], "overall": [], "etr": [], "log": [], "finished": []}
    orchestrator.status_changed.connect(events["status"].append)
    orchestrator.item_started.connect(lambda i, src: events["started"].append((i, src)))
    orchestrator.overall_progress.connect(events["overall"].append)
    orchestrator.etr_changed.connect(events["etr"].append)
    orchestrator.log_line.connect(events["log"].append)
    orchestrator.batch_finished.connect(events["finished"].append)
    return orchestrator, supervisor, clock, events, FakeCapability(tmp_path)


def items(*names, spec=None):
    return [BatchItem(source=Path(f"/media/{n}"), spec=spec or ProcessingSpec()) for n in names]


def test_items_run_one_after_another(rig, tmp_path):
    orchestrator, supervisor, _, events, capability = rig
    orchestrator.start(items("a.mov", "b.mov", "c.mov"), capability)

    assert events["status"][:3] == [BatchStatus.PROBING, BatchStatus.ACQUIRING, BatchStatus.DISPATCHING]
    assert len(supervisor.started) == 1
    args, duration, has_video = supervisor.started[0]
    assert args[-1] == str(tmp_path / "a_converted.mov")
    assert duration == 10.0 and has_video

    supervisor.finish_run(SupervisorState.SUCCEEDED)
    assert len(supervisor.started) == 2
    supervisor.finish_run(SupervisorState.SUCCEEDED)
    supervisor.finish_run(SupervisorState.SUCCEEDED)

    assert [i for i, _ in events["started"]] == [0, 1, 2]
    (outcome,) = events["finished"]
    assert outcome.status is BatchStatus.COMPLETED
    assert (outcome.completed_items, outcome.total_items) == (3, 3)
    assert events["overall"][-1] == 1.0
    assert events["etr"][-1] == ""
    assert capability.acquire_calls == 1
    assert capability.release_calls == 1
    assert not orchestrator.is_active


def test_failure_halts_queue_with_stderr(rig):
    orchestrator, supervisor, _, events, capability = rig
    orchestrator.start(items("a.mov", "b.mov", "c.mov"), capability)

    supervisor.finish_run(SupervisorState.SUCCEEDED)
    supervisor.finish_run(SupervisorState.FAILED, code=1, error_text="Invalid data found\n")

    assert len(supervisor.started) == 2
    (outcome,) = events["finished"]
    assert outcome.status is BatchStatus.FAILED
    assert outcome.message == "Invalid data found\n"
    assert outcome.completed_items == 1
    assert capability.release_calls == 1


def test_failure_without_stderr_reports_exit_code(rig):
    orchestrator, supervisor, _, events, capability = rig
    orchestrator.start(items("a.mov"), capability)
    supervisor.finish_run(SupervisorState.FAILED, code=183)
    assert events["finished"][0].message == "ffmpeg exited with code 183"


def test_killed_item_cancels_batch(rig):
    orchestrator, supervisor, _, events, capability = rig
    orchestrator.start(items("a.mov", "b.mov"), capability)
    supervisor.finish_run(SupervisorState.CANCELLED, code=-15)

    (outcome,) = events["finished"]
    assert outcome.status is BatchStatus.CANCELLED
    assert outcome.message == ""
    assert len(supervisor.started) == 1
    assert capability.release_calls == 1


def test_user_cancel(rig):
    orchestrator, supervisor, _, events, capability = rig
    orchestrator.start(items("a.mov", "b.mov"), capability)

    orchestrator.cancel()
    # the supervisor reports the terminated run afterwards
    supervisor.finish_run(SupervisorState.CANCELLED, code=255)
    orchestrator.cancel()

    assert supervisor.stop_calls == 1
    assert len(events["finished"]) == 1
    assert events["finished"][0].status is BatchStatus.CANCELLED
    assert len(supervisor.started) == 1
    assert capability.release_calls == 1


def test_cancel_while_probing(rig, monkeypatch):
    orchestrator, supervisor, _, events, capability = rig
    monkeypatch.setattr(FakeProbeWorker, "start", lambda self: None)
    orchestrator.start(items("a.mov"), capability)
    assert orchestrator.state.status is BatchStatus.PROBING

    orchestrator.cancel()
    # late probe results are dropped
    orchestrator._on_probes_finished([MediaSummary(path=Path("/media/a.mov"), duration_seconds=1.0)])

    assert events["finished"][0].status is BatchStatus.CANCELLED
    assert capability.acquire_calls == 0
    assert capability.release_calls == 0
    assert supervisor.started == []


def test_capability_refused(rig):
    orchestrator, supervisor, _, events, _ = rig
    capability = FakeCapability("/readonly", fail=True)
    orchestrator.start(items("a.mov"), capability)

    (outcome,) = events["finished"]
    assert outcome.status is BatchStatus.FAILED
    assert "not writable" in outcome.message
    assert supervisor.started == []
    assert capability.release_calls == 0


def test_launch_error_fails_batch(qapp, probe_results, tmp_path):
    supervisor = FakeSupervisor(launch_error=True)
    orchestrator = BatchOrchestrator(supervisor=supervisor)
    finished = []
    orchestrator.batch_finished.connect(finished.append)
    capability = FakeCapability(tmp_path)

    orchestrator.start(items("a.mov"), capability)

    assert finished[0].status is BatchStatus.FAILED
    assert "Could not launch ffmpeg" in finished[0].message
    assert capability.release_calls == 1


def test_start_while_running_is_rejected(rig):
    orchestrator, _, _, _, capability = rig
    orchestrator.start(items("a.mov"), capability)
    with pytest.raises(RuntimeError):
        orchestrator.start(items("b.mov"), capability)


def test_progress_and_zero_guard(rig):
    orchestrator, supervisor, _, events, capability = rig
    orchestrator.start(items("a.mov", "b.mov"), capability)

    supervisor.progress_changed.emit(ProgressSnapshot(current_time=5.0, total_duration=10.0))
    assert events["overall"][-1] == pytest.approx(0.25)

    supervisor.progress_changed.emit(ProgressSnapshot(current_time=0.0, total_duration=10.0))
    assert events["overall"][-1] == pytest.approx(0.25)

    supervisor.progress_changed.emit(None)
    assert events["overall"][-1] == pytest.approx(0.25)


def test_time_remaining_updates(rig):
    orchestrator, supervisor, clock, events, capability = rig
    orchestrator.start(items("a.mov", "b.mov"), capability)

    clock.now = 101.0
    orchestrator.refresh_etr()
    assert events["etr"][-1] == ETR_CALCULATING

    supervisor.progress_changed.emit(ProgressSnapshot(current_time=5.0, total_duration=10.0))
    clock.now = 105.0
    orchestrator.refresh_etr()
    assert events["etr"][-1] == "About 15 seconds"


def test_unknown_durations_are_logged(rig, probe_results):
    orchestrator, supervisor, _, events, capability = rig
    probe_results([ProbeError("broken"), MediaSummary(path=Path("/media/b.mov"))])
    orchestrator.start(items("a.mov", "b.mov"), capability)

    assert orchestrator.state.total_duration == 0.0
    assert sum("unknown" in line for line in events["log"]) == 2
    assert supervisor.started[0][1] == 0.0


def test_audio_only_item_has_no_video(rig):
    orchestrator, supervisor, _, _, capability = rig
    orchestrator.start(items("a.mov", spec=ProcessingSpec(audio_only=True)), capability)
    args, _, has_video = supervisor.started[0]
    assert has_video is False
    assert "-vn" in args


def test_describe_remaining():
    assert describe_remaining(None) == ETR_CALCULATING
    assert describe_remaining(0.0) == ETR_FINISHING
    assert describe_remaining(3725) == "About 1 hour, 2 minutes"


def test_stream_details_and_plan_are_logged(rig, probe_results):
    orchestrator, _, _, events, capability = rig
    probe_results([MediaSummary(
        path=Path("/media/a.mov"), duration_seconds=10.0,
        video=VideoStreamInfo("h264", 1920, 1080, 25.0, 8_000_000),
        audio=AudioStreamInfo("aac", 128_000),
    )])
    orchestrator.start(items("a.mov"), capability)

    assert "ℹ a.mov: 1920x1080 | H264 | 8000Kbps | 25.00FPS" in events["log"]
    assert "ℹ a.mov: AAC | 128Kbps" in events["log"]
    assert "▶ a.mov (No processing)" in events["log"]


def test_speed_change_on_silent_source_skips_tempo(rig, probe_results):
    orchestrator, supervisor, _, _, capability = rig
    probe_results([MediaSummary(path=Path("/media/a.mov"), duration_seconds=10.0,
                                video=VideoStreamInfo())])
    spec = ProcessingSpec(speed_enabled=True, speed_percentage="50")
    orchestrator.start(items("a.mov", spec=spec), capability)

    args, duration, _ = supervisor.started[0]
    assert args[args.index("-vf") + 1] == "setpts=2.0*PTS"
    assert "-map" not in args
    assert not any("atempo" in a for a in args)
    assert duration == 20.0
