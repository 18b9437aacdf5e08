"""Per-process records that carry their own CPU history between refreshes."""

from hosttop.errors import ProcessReplaced
from hosttop.models import ProcessSnapshot
from hosttop.processor import ProcessCpuTracker
from hosttop.source import CounterSource


class Process:
    """
    A live process as seen across refreshes.

    User and command are read once, when the record is created. CPU
    utilization comes from a private tracker fed on every update(), while
    memory, state and lifetime are re-read each time since they are
    instantaneous values rather than rates.

    Raises VanishedProcess from the constructor or update() when the
    process can no longer be read, and ProcessReplaced when the pid has
    been reused by a process with a different start time.
    """

    def __init__(self, pid: int, source: CounterSource, clock_ticks: int) -> None:
        self._source = source
        self._clock_ticks = clock_ticks
        self._tracker = ProcessCpuTracker(clock_ticks)

        identity = source.identity(pid)
        self.pid = pid
        self.user = identity.user
        self.command = identity.command

        self.cpu_utilization = 0.0
        self.ram_kb = 0
        self.state = "?"
        self.uptime = 0
        self.starttime: int | None = None  # From the first update

    @property
    def ram(self) -> str:
        """Resident memory in megabytes."""
        return str(self.ram_kb // 1024)

    @property
    def is_running(self) -> bool:
        return self.state == "R"

    def update(self, now: float, host_uptime: float) -> None:
        """
        Refresh counters for this process.

        Args:
            now: Monotonic clock reading for this refresh.
            host_uptime: Seconds since boot, read once per refresh.
        """
        times = self._source.process_times(self.pid)
        if self.starttime is None:
            self.starttime = times.starttime
        elif times.starttime != self.starttime:
            raise ProcessReplaced(self.pid, "start time changed")
        ram_kb = self._source.resident_memory(self.pid)

        self.cpu_utilization = self._tracker.observe(times, now)
        self.ram_kb = ram_kb
        self.state = times.state
        # host uptime and starttime are read separately and can race
        started = times.starttime / self._clock_ticks
        self.uptime = max(int(host_uptime - started), 0)

    def snapshot(self) -> ProcessSnapshot:
        return ProcessSnapshot(
            pid=self.pid,
            user=self.user,
            command=self.command,
            ram=self.ram,
            cpu_utilization=self.cpu_utilization,
            uptime=self.uptime,
            state=self.state,
        )

    def __repr__(self) -> str:
        return f"Process(pid={self.pid}, command={self.command!r}, cpu={self.cpu_utilization:.3f})"
