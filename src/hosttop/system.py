"""Host-wide aggregation of process records and system metrics."""

import time
from collections.abc import Callable

import structlog

from hosttop.errors import ProcessReplaced, VanishedProcess
from hosttop.models import HostInfo, HostMetrics, ProcessSnapshot, SystemSnapshot
from hosttop.process import Process
from hosttop.processor import CpuTracker
from hosttop.source import CounterSource, ProcfsSource

log = structlog.get_logger()


def memory_utilization(total: int, available: int) -> float:
    """Fraction of memory in use, clamped to [0, 1]; 0.0 if total is unknown."""
    if total <= 0:
        return 0.0
    return min(max((total - available) / total, 0.0), 1.0)


def rank_key(process: Process) -> tuple[float, int]:
    """Sort by CPU utilization descending, then pid ascending."""
    return (-process.cpu_utilization, process.pid)


class System:
    """
    The monitored host.

    Each refresh() enumerates live pids, updates one Process per pid and
    rebuilds the record table from scratch, so a pid missing from one
    enumeration is forgotten and starts over with a fresh CPU baseline if it
    comes back.

    Host-wide counters are read before any process is touched. If they are
    unavailable, refresh() raises HostMetricsUnavailable and the records
    from the previous refresh are kept as they were.
    """

    def __init__(
        self,
        source: CounterSource | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source: CounterSource = source if source is not None else ProcfsSource()
        self._clock = clock
        self._info: HostInfo = self._source.host_info()
        self._cpu = CpuTracker()
        self._records: dict[int, Process] = {}
        self._processes: list[ProcessSnapshot] = []
        self._metrics = HostMetrics(
            cpu_utilization=0.0,
            memory_utilization=0.0,
            uptime=0.0,
            total_processes=0,
            running_processes=0,
            os_name=self._info.os_name,
            kernel=self._info.kernel,
        )

    @property
    def info(self) -> HostInfo:
        return self._info

    @property
    def metrics(self) -> HostMetrics:
        """Host metrics from the most recent refresh."""
        return self._metrics

    @property
    def cpu_utilization(self) -> float:
        return self._metrics.cpu_utilization

    @property
    def memory_utilization(self) -> float:
        return self._metrics.memory_utilization

    @property
    def uptime(self) -> float:
        return self._metrics.uptime

    @property
    def total_processes(self) -> int:
        return self._metrics.total_processes

    @property
    def running_processes(self) -> int:
        return self._metrics.running_processes

    @property
    def operating_system(self) -> str:
        return self._info.os_name

    @property
    def kernel(self) -> str:
        return self._info.kernel

    @property
    def processes(self) -> list[ProcessSnapshot]:
        """Ranked processes from the most recent refresh (a copy)."""
        return list(self._processes)

    def refresh(self) -> list[ProcessSnapshot]:
        """
        Run one refresh cycle and return the ranked process list.

        Processes that vanish mid-scan are left out of the result. The
        returned list is owned by the caller.

        Raises:
            HostMetricsUnavailable: System CPU, memory, uptime or the pid
                list could not be read.
        """
        now = self._clock()
        cpu_times = self._source.cpu_times()
        mem_total, mem_available = self._source.memory()
        uptime = self._source.uptime()
        pids = self._source.pids()

        records: dict[int, Process] = {}
        for pid in pids:
            try:
                record = self._track(pid, now, uptime)
            except VanishedProcess as e:
                log.debug("process_vanished", pid=pid, reason=e.reason)
                continue
            records[pid] = record
        self._records = records

        ranked = sorted(records.values(), key=rank_key)
        self._processes = [record.snapshot() for record in ranked]

        self._metrics = HostMetrics(
            cpu_utilization=self._cpu.observe(cpu_times, now),
            memory_utilization=memory_utilization(mem_total, mem_available),
            uptime=uptime,
            total_processes=len(ranked),
            running_processes=sum(1 for record in ranked if record.is_running),
            os_name=self._info.os_name,
            kernel=self._info.kernel,
        )
        return list(self._processes)

    def _track(self, pid: int, now: float, uptime: float) -> Process:
        """Update the record for pid, starting a new one if the pid is new or was reused."""
        record = self._records.get(pid)
        if record is not None:
            try:
                record.update(now, uptime)
                return record
            except ProcessReplaced:
                log.debug("pid_reused", pid=pid)

        record = Process(pid, self._source, self._info.clock_ticks)
        record.update(now, uptime)
        return record

    def snapshot(self) -> SystemSnapshot:
        """Package the most recent refresh for a renderer."""
        return SystemSnapshot(host=self._metrics, processes=list(self._processes))
