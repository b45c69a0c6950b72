from .models import (
    ProcessingSpec, MediaSummary, ProgressSnapshot, BatchItem, BatchOutcome,
    BatchStatus, SupervisorState, RunResult,
)
from .errors import FFQueueError, LaunchError, ProbeError, CapabilityError
from .command_builder import build_transcode_command
from .progress import ProgressStreamParser
from .probe import probe, probe_many
from .capability import DirectoryCapability
from .worker import ProcessSupervisor
from .overseer import BatchOrchestrator

__all__ = [
    "ProcessingSpec", "MediaSummary", "ProgressSnapshot", "BatchItem", "BatchOutcome",
    "BatchStatus", "SupervisorState", "RunResult",
    "FFQueueError", "LaunchError", "ProbeError", "CapabilityError",
    "build_transcode_command",
    "ProgressStreamParser",
    "probe", "probe_many",
    "DirectoryCapability",
    "ProcessSupervisor",
    "BatchOrchestrator",
]
