"""Data models for hosttop."""

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """Cumulative system-wide CPU time buckets, in clock ticks since boot."""

    user: int
    nice: int
    system: int
    idle: int
    iowait: int
    irq: int
    softirq: int
    steal: int

    @property
    def idle_ticks(self) -> int:
        """Ticks spent idle or waiting on I/O."""
        return self.idle + self.iowait

    @property
    def busy_ticks(self) -> int:
        return self.user + self.nice + self.system + self.irq + self.softirq + self.steal

    @property
    def total_ticks(self) -> int:
        return self.busy_ticks + self.idle_ticks

    def as_tuple(self) -> tuple[int, ...]:
        return (
            self.user,
            self.nice,
            self.system,
            self.idle,
            self.iowait,
            self.irq,
            self.softirq,
            self.steal,
        )


@dataclass(slots=True, frozen=True)
class ProcessTimes:
    """Per-process CPU counters, in clock ticks."""

    utime: int
    stime: int
    cutime: int
    cstime: int
    starttime: int  # Ticks after boot
    state: str = "?"  # Lifecycle flag read alongside the counters

    @property
    def active_ticks(self) -> int:
        """Time scheduled for the process and its waited-for children."""
        return self.utime + self.stime + self.cutime + self.cstime


@dataclass(slots=True, frozen=True)
class ProcessIdentity:
    """Fields that do not change while a process is alive."""

    pid: int
    user: str
    command: str


@dataclass(slots=True, frozen=True)
class HostInfo:
    """Static host facts, read once at startup."""

    os_name: str
    kernel: str
    clock_ticks: int  # Ticks per second


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a process state."""

    pid: int
    user: str
    command: str
    ram: str  # Resident memory in MB
    cpu_utilization: float  # 0.0 - 1.0
    uptime: int  # Seconds since the process started
    state: str  # 'R', 'S', 'Z', 'D', etc.


@dataclass(slots=True, frozen=True)
class HostMetrics:
    """Host-level values derived during one refresh."""

    cpu_utilization: float
    memory_utilization: float
    uptime: float
    total_processes: int
    running_processes: int
    os_name: str
    kernel: str


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Host metrics together with the ranked process list."""

    host: HostMetrics
    processes: list[ProcessSnapshot] = field(default_factory=list)
