"""CPU utilization trackers built on successive counter snapshots."""

from typing import Generic, TypeVar

import structlog

from hosttop.errors import InconsistentSnapshot
from hosttop.models import CpuTimes, ProcessTimes

log = structlog.get_logger()

T = TypeVar("T")


def _clamped_ratio(busy: float, total: float) -> float:
    """Return busy / total clamped to [0, 1], or 0.0 when nothing elapsed."""
    if total <= 0:
        return 0.0
    return min(max(busy / total, 0.0), 1.0)


class DeltaTracker(Generic[T]):
    """
    Convert two counter snapshots into a utilization ratio.

    Only the previous snapshot and its clock reading are kept. Every call to
    observe() replaces them, whether or not a ratio could be computed.
    """

    def __init__(self) -> None:
        self._previous: T | None = None
        self._previous_time: float | None = None
        self._last: float = 0.0

    @property
    def last(self) -> float:
        """The ratio returned by the most recent observation."""
        return self._last

    @property
    def has_baseline(self) -> bool:
        return self._previous is not None

    def observe(self, current: T, now: float) -> float:
        """
        Record a snapshot taken at `now` and return the utilization since the previous one.

        The first observation returns 0.0. An observation whose clock did not
        advance, or whose counters went backwards, returns the previous ratio.
        """
        previous, previous_time = self._previous, self._previous_time
        self._previous = current
        self._previous_time = now

        if previous is None or previous_time is None:
            self._last = 0.0
            return self._last

        try:
            elapsed = now - previous_time
            if elapsed <= 0:
                raise InconsistentSnapshot(f"clock did not advance ({elapsed:.6f}s)")
            self._last = self._utilization(previous, current, elapsed)
        except InconsistentSnapshot as e:
            log.debug("inconsistent_snapshot", tracker=type(self).__name__, reason=str(e))
        return self._last

    def _utilization(self, previous: T, current: T, elapsed: float) -> float:
        raise NotImplementedError


class CpuTracker(DeltaTracker[CpuTimes]):
    """System-wide CPU utilization from the 8 kernel time buckets."""

    def _utilization(self, previous: CpuTimes, current: CpuTimes, elapsed: float) -> float:
        deltas = [c - p for p, c in zip(previous.as_tuple(), current.as_tuple())]
        if any(d < 0 for d in deltas):
            raise InconsistentSnapshot("cpu counters decreased")

        busy = current.busy_ticks - previous.busy_ticks
        idle = current.idle_ticks - previous.idle_ticks
        return _clamped_ratio(busy, busy + idle)


class ProcessCpuTracker(DeltaTracker[ProcessTimes]):
    """
    Per-process CPU utilization.

    A process has no idle bucket, so the denominator is the wall time between
    observations converted to clock ticks.
    """

    def __init__(self, clock_ticks: int) -> None:
        super().__init__()
        self._clock_ticks = clock_ticks

    def _utilization(self, previous: ProcessTimes, current: ProcessTimes, elapsed: float) -> float:
        busy = current.active_ticks - previous.active_ticks
        if busy < 0:
            raise InconsistentSnapshot("process counters decreased")
        return _clamped_ratio(busy, elapsed * self._clock_ticks)
