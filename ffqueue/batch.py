"""
ffqueue.batch
~~~~~~~~~~~~~
Batch bookkeeping with no Qt and no processes: durations, overall
progress and the estimated time remaining.

Only the orchestrator mutates a BatchState. Time is passed in
explicitly so the arithmetic can be tested with fixed clocks.
"""

from __future__ import annotations

from ffqueue.errors import ProbeError
from ffqueue.models import BatchItem, BatchOutcome, BatchStatus, MediaSummary, ProcessingSpec, ProgressSnapshot
from ffqueue.presets import seed_from_probe

# No estimate until the batch has run this long
MIN_ETR_ELAPSED = 2.0


def adjusted_duration(duration: float, spec: ProcessingSpec) -> float:
    """Playback length of the output: source length ÷ speed multiplier."""
    multiplier = spec.speed_multiplier
    if multiplier is None:
        return duration
    return duration / multiplier


class BatchState:

    def __init__(self, items: list[BatchItem] | None = None):
        self.reset(items or [])

    def reset(self, items: list[BatchItem]) -> None:
        self.items: list[BatchItem] = list(items)
        self.index = -1
        self.status = BatchStatus.NOT_STARTED
        self.total_duration = 0.0
        self.started_at: float | None = None
        self.current: ProgressSnapshot | None = None
        self.item_fraction = 0.0
        self.outcome: BatchOutcome | None = None

    # ── Setup ─────────────────────────────────────────────────────────────────

    def apply_probe_results(self, results: list[MediaSummary | ProbeError]) -> None:
        """
        Store probe output on each item and compute adjusted durations.
        A failed probe (or a report without a duration) counts as 0 s
        with ``duration_known`` left False. Items flagged ``match_source``
        get their settings seeded from the probed streams.
        """
        for item, result in zip(self.items, results):
            if isinstance(result, MediaSummary):
                item.summary = result
                if item.match_source:
                    item.spec = seed_from_probe(item.spec, result)
                item.duration_known = result.duration_known
                raw = result.duration_seconds or 0.0
            else:
                item.summary = None
                item.duration_known = False
                raw = 0.0
            item.duration = adjusted_duration(raw, item.spec)

        self.total_duration = sum(item.duration for item in self.items)

    def begin(self, now: float) -> None:
        self.started_at = now

    # ── Sequencing ────────────────────────────────────────────────────────────

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def current_item(self) -> BatchItem | None:
        if 0 <= self.index < len(self.items):
            return self.items[self.index]
        return None

    def advance(self) -> BatchItem | None:
        """Move to the next item. Returns None once the queue is exhausted."""
        self.index += 1
        self.current = None
        self.item_fraction = 0.0
        return self.current_item

    def finish(self, status: BatchStatus, message: str = "") -> BatchOutcome:
        self.status = status
        completed = len(self.items) if status is BatchStatus.COMPLETED else max(self.index, 0)
        self.outcome = BatchOutcome(
            status=status,
            message=message,
            completed_items=min(completed, len(self.items)),
            total_items=len(self.items),
        )
        return self.outcome

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    # ── Progress ──────────────────────────────────────────────────────────────

    def record_progress(self, snapshot: ProgressSnapshot) -> float:
        """
        Integrate one snapshot for the current item; return the overall
        fraction. A zero reading after real progress is treated as a
        transient glitch and does not pull the bar back.
        """
        fraction = min(max(snapshot.fraction_complete, 0.0), 1.0)
        if fraction > 0 or self.item_fraction == 0:
            self.item_fraction = fraction
            self.current = snapshot
        return self.overall_fraction

    @property
    def overall_fraction(self) -> float:
        if not self.items:
            return 0.0
        if self.status is BatchStatus.COMPLETED:
            return 1.0
        completed = min(max(self.index, 0), len(self.items))
        return min((completed + self.item_fraction) / len(self.items), 1.0)

    def processed_duration(self) -> float:
        """Seconds of output written: finished items plus the current one so far."""
        done = sum(item.duration for item in self.items[:max(self.index, 0)])
        return done + (self.current.current_time if self.current else 0.0)

    def estimate_remaining(self, now: float) -> float | None:
        """
        Seconds left for the whole batch, from the average throughput so far.

        None while no estimate is possible (too early, nothing processed
        yet, unknown total). 0.0 means "finishing": the estimate is not
        positive. Never negative.
        """
        if self.started_at is None or self.total_duration <= 0:
            return None
        elapsed = now - self.started_at
        if elapsed < MIN_ETR_ELAPSED:
            return None

        processed = self.processed_duration()
        average_speed = processed / elapsed
        if average_speed <= 0:
            return None

        remaining = (self.total_duration - processed) / average_speed
        return remaining if remaining > 0 else 0.0
