"""Shared test fixtures for hosttop."""

from dataclasses import dataclass
from pathlib import Path

import pytest

from hosttop.errors import HostMetricsUnavailable, VanishedProcess
from hosttop.models import CpuTimes, HostInfo, ProcessIdentity, ProcessTimes


@dataclass
class FakeProcess:
    """Mutable per-process counters for FakeSource."""

    user: str = "root"
    command: str = "/bin/test"
    active: int = 0  # utime; the other tick counters stay at zero
    starttime: int = 0
    ram_kb: int = 2048
    state: str = "S"

    def times(self) -> ProcessTimes:
        return ProcessTimes(
            utime=self.active,
            stime=0,
            cutime=0,
            cstime=0,
            starttime=self.starttime,
            state=self.state,
        )


class FakeSource:
    """In-memory counter source with controllable failures."""

    def __init__(
        self,
        cpu: CpuTimes | None = None,
        memory: tuple[int, int] = (1000, 250),
        uptime: float = 120.0,
        ticks: int = 100,
    ) -> None:
        self.cpu = cpu or CpuTimes(100, 0, 50, 850, 0, 0, 0, 0)
        self.mem = memory
        self.up = uptime
        self.info = HostInfo(os_name="Test OS 1.0", kernel="6.1.0-test", clock_ticks=ticks)
        self.procs: dict[int, FakeProcess] = {}
        self.vanished: set[int] = set()  # Enumerated but unreadable
        self.host_failure = False
        self.identity_calls: dict[int, int] = {}
        self.host_info_calls = 0

    def add(self, pid: int, **kwargs) -> FakeProcess:
        proc = FakeProcess(**kwargs)
        self.procs[pid] = proc
        return proc

    def remove(self, pid: int) -> None:
        self.procs.pop(pid, None)

    def _check_host(self) -> None:
        if self.host_failure:
            raise HostMetricsUnavailable("simulated failure")

    def _proc(self, pid: int) -> FakeProcess:
        if pid in self.vanished or pid not in self.procs:
            raise VanishedProcess(pid, "simulated exit")
        return self.procs[pid]

    def cpu_times(self) -> CpuTimes:
        self._check_host()
        return self.cpu

    def memory(self) -> tuple[int, int]:
        self._check_host()
        return self.mem

    def uptime(self) -> float:
        self._check_host()
        return self.up

    def host_info(self) -> HostInfo:
        self.host_info_calls += 1
        return self.info

    def pids(self) -> set[int]:
        return set(self.procs) | self.vanished

    def identity(self, pid: int) -> ProcessIdentity:
        proc = self._proc(pid)
        self.identity_calls[pid] = self.identity_calls.get(pid, 0) + 1
        return ProcessIdentity(pid=pid, user=proc.user, command=proc.command)

    def process_times(self, pid: int) -> ProcessTimes:
        return self._proc(pid).times()

    def resident_memory(self, pid: int) -> int:
        return self._proc(pid).ram_kb


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 1.0) -> None:
        self.now += seconds


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def write_proc_pid(
    root: Path,
    pid: int,
    comm: str = "bash",
    state: str = "S",
    utime: int = 10,
    stime: int = 5,
    cutime: int = 0,
    cstime: int = 0,
    starttime: int = 200,
    uid: int = 0,
    rss_kb: int | None = 4096,
    cmdline: bytes = b"/bin/bash\x00--login\x00",
) -> None:
    """Write the stat, status and cmdline files of one fake process."""
    pid_dir = root / str(pid)
    pid_dir.mkdir(parents=True)
    # Fields 3..22 of proc(5); unrelated fields are zero
    fields = [state, "1", str(pid), str(pid), "0", "-1", "4194304"]
    fields += ["0"] * 4  # minflt, cminflt, majflt, cmajflt
    fields += [str(utime), str(stime), str(cutime), str(cstime)]
    fields += ["20", "0", "1", "0", str(starttime)]
    fields += ["12345678", "1024"]  # vsize, rss pages
    (pid_dir / "stat").write_text(f"{pid} ({comm}) {' '.join(fields)}\n")

    status = [f"Name:\t{comm}", f"State:\t{state}", f"Uid:\t{uid}\t{uid}\t{uid}\t{uid}"]
    if rss_kb is not None:
        status.append(f"VmRSS:\t{rss_kb:8d} kB")
    (pid_dir / "status").write_text("\n".join(status) + "\n")
    (pid_dir / "cmdline").write_bytes(cmdline)


@pytest.fixture
def proc_tree(tmp_path: Path) -> tuple[Path, Path]:
    """A minimal fake /proc and /etc with two processes."""
    proc = tmp_path / "proc"
    etc = tmp_path / "etc"
    proc.mkdir()
    etc.mkdir()

    (proc / "stat").write_text(
        "cpu  100 0 50 850 0 0 0 0 0 0\n"
        "cpu0 50 0 25 425 0 0 0 0 0 0\n"
        "processes 12345\n"
        "procs_running 2\n"
    )
    (proc / "meminfo").write_text(
        "MemTotal:       16000000 kB\n"
        "MemFree:         2000000 kB\n"
        "MemAvailable:    4000000 kB\n"
        "Buffers:          100000 kB\n"
    )
    (proc / "uptime").write_text("3600.52 7000.10\n")
    (proc / "version").write_text(
        "Linux version 6.1.0-18-amd64 (debian-kernel@lists.debian.org) #1 SMP\n"
    )
    (proc / "self").mkdir()  # Non-numeric entries are not pids

    (etc / "os-release").write_text(
        'PRETTY_NAME="Debian GNU/Linux 12 (bookworm)"\nNAME="Debian GNU/Linux"\nID=debian\n'
    )
    (etc / "passwd").write_text(
        "root:x:0:0:root:/root:/bin/bash\nalice:x:1000:1000:Alice:/home/alice:/bin/bash\n"
    )

    write_proc_pid(proc, 1, comm="systemd", cmdline=b"/sbin/init\x00")
    write_proc_pid(proc, 42, comm="my (odd) prog", state="R", uid=1000, utime=300, stime=20)
    return proc, etc
