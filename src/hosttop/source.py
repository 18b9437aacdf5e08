"""
Raw counter sources.

A source returns one consistent reading per call and keeps no history.
Per-process accessors raise VanishedProcess when the process is gone or
unreadable; host-wide accessors raise HostMetricsUnavailable.
"""

import os
import platform
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

import psutil

from hosttop.errors import HostMetricsUnavailable, VanishedProcess
from hosttop.models import CpuTimes, HostInfo, ProcessIdentity, ProcessTimes

CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")

# Offsets into /proc/<pid>/stat once the "pid (comm)" prefix is removed.
# The first remaining field is field 3 (state) in proc(5) numbering.
_STAT_STATE = 0
_STAT_UTIME = 11
_STAT_STIME = 12
_STAT_CUTIME = 13
_STAT_CSTIME = 14
_STAT_STARTTIME = 19

SOURCES = ("procfs", "psutil")

SYSTEM_ETC = Path("/etc")


def clock_ticks() -> int:
    """Kernel clock ticks per second."""
    try:
        return int(os.sysconf("SC_CLK_TCK"))
    except (AttributeError, ValueError, OSError):
        return 100


class CounterSource(Protocol):
    """Read-only accessors for kernel-reported counters."""

    def cpu_times(self) -> CpuTimes: ...

    def memory(self) -> tuple[int, int]: ...

    def uptime(self) -> float: ...

    def host_info(self) -> HostInfo: ...

    def pids(self) -> set[int]: ...

    def identity(self, pid: int) -> ProcessIdentity: ...

    def process_times(self, pid: int) -> ProcessTimes: ...

    def resident_memory(self, pid: int) -> int: ...


class ProcfsSource:
    """Counter source reading the Linux /proc filesystem."""

    def __init__(
        self,
        root: str | Path = "/proc",
        etc_root: str | Path = "/etc",
        ticks: int | None = None,
    ) -> None:
        self._root = Path(root)
        self._etc = Path(etc_root)
        self._ticks = ticks
        self._users: dict[int, str] = {}
        self._passwd: dict[int, str] | None = None

    # Host-wide counters

    def cpu_times(self) -> CpuTimes:
        try:
            with open(self._root / "stat") as f:
                fields = f.readline().split()
            if not fields or fields[0] != "cpu":
                raise ValueError("missing aggregate cpu line")
            values = [int(v) for v in fields[1 : len(CPU_FIELDS) + 1]]
        except (OSError, ValueError) as e:
            raise HostMetricsUnavailable(f"cannot read cpu times: {e}") from e

        # Kernels older than 2.6.11 do not report steal
        values += [0] * (len(CPU_FIELDS) - len(values))
        return CpuTimes(*values)

    def memory(self) -> tuple[int, int]:
        """Return (total, available) memory in kB."""
        try:
            meminfo = _parse_key_values(self._root / "meminfo")
            total = _kb(meminfo["MemTotal"])
            if "MemAvailable" in meminfo:
                available = _kb(meminfo["MemAvailable"])
            else:
                available = _kb(meminfo["MemFree"])
        except (OSError, KeyError, ValueError) as e:
            raise HostMetricsUnavailable(f"cannot read memory totals: {e}") from e
        return total, available

    def uptime(self) -> float:
        try:
            return float((self._root / "uptime").read_text().split()[0])
        except (OSError, ValueError, IndexError) as e:
            raise HostMetricsUnavailable(f"cannot read uptime: {e}") from e

    def host_info(self) -> HostInfo:
        return HostInfo(
            os_name=self._os_name(),
            kernel=self._kernel(),
            clock_ticks=self._ticks or clock_ticks(),
        )

    def _os_name(self) -> str:
        try:
            release = _parse_key_values(self._etc / "os-release", sep="=")
        except OSError:
            return platform.system()
        return release.get("PRETTY_NAME", "").strip('"') or platform.system()

    def _kernel(self) -> str:
        try:
            # "Linux version 6.1.0-18-amd64 (...) ..."
            return (self._root / "version").read_text().split()[2]
        except (OSError, IndexError):
            return platform.release()

    def pids(self) -> set[int]:
        try:
            with os.scandir(self._root) as entries:
                return {int(e.name) for e in entries if e.name.isdigit() and e.is_dir()}
        except OSError as e:
            raise HostMetricsUnavailable(f"cannot enumerate processes: {e}") from e

    # Per-process counters

    def identity(self, pid: int) -> ProcessIdentity:
        status = self._status(pid)
        try:
            uid = int(status["Uid"].split()[0])
        except (KeyError, ValueError, IndexError) as e:
            raise VanishedProcess(pid, "no uid in status") from e

        try:
            raw = (self._root / str(pid) / "cmdline").read_bytes()
        except OSError as e:
            raise VanishedProcess(pid, str(e)) from e
        command = raw.replace(b"\x00", b" ").decode(errors="replace").strip()
        if not command:
            # Kernel threads have an empty command line
            command = f"[{status.get('Name', '')}]"

        return ProcessIdentity(pid=pid, user=self._user_name(uid), command=command)

    def process_times(self, pid: int) -> ProcessTimes:
        fields = self._stat(pid)
        try:
            return ProcessTimes(
                utime=int(fields[_STAT_UTIME]),
                stime=int(fields[_STAT_STIME]),
                cutime=int(fields[_STAT_CUTIME]),
                cstime=int(fields[_STAT_CSTIME]),
                starttime=int(fields[_STAT_STARTTIME]),
                state=fields[_STAT_STATE],
            )
        except (ValueError, IndexError) as e:
            raise VanishedProcess(pid, "truncated stat") from e

    def resident_memory(self, pid: int) -> int:
        """Resident set size in kB, 0 for kernel threads."""
        status = self._status(pid)
        if "VmRSS" not in status:
            return 0
        try:
            return _kb(status["VmRSS"])
        except ValueError as e:
            raise VanishedProcess(pid, "malformed VmRSS") from e

    def _stat(self, pid: int) -> list[str]:
        try:
            text = (self._root / str(pid) / "stat").read_text()
        except OSError as e:
            raise VanishedProcess(pid, str(e)) from e
        # comm may contain spaces and parentheses; fields resume after the last ")"
        end = text.rfind(")")
        if end < 0:
            raise VanishedProcess(pid, "malformed stat")
        fields = text[end + 1 :].split()
        if not fields:
            raise VanishedProcess(pid, "truncated stat")
        return fields

    def _status(self, pid: int) -> dict[str, str]:
        try:
            return _parse_key_values(self._root / str(pid) / "status")
        except OSError as e:
            raise VanishedProcess(pid, str(e)) from e

    def _user_name(self, uid: int) -> str:
        if uid not in self._users:
            self._users[uid] = self._resolve_user(uid)
        return self._users[uid]

    def _resolve_user(self, uid: int) -> str:
        """Look up a user name, falling back to the numeric uid."""
        if self._etc == SYSTEM_ETC:
            # NSS covers LDAP and other directory users that /etc/passwd lacks
            import pwd

            try:
                return pwd.getpwuid(uid).pw_name
            except KeyError:
                return str(uid)

        if self._passwd is None:
            self._passwd = self._load_passwd()
        return self._passwd.get(uid, str(uid))

    def _load_passwd(self) -> dict[int, str]:
        """Parse passwd under a non-system etc root, e.g. a container image."""
        users: dict[int, str] = {}
        try:
            with open(self._etc / "passwd") as f:
                for line in f:
                    parts = line.split(":")
                    if len(parts) > 2 and parts[2].isdigit():
                        users.setdefault(int(parts[2]), parts[0])
        except OSError:
            pass  # Fall back to numeric uids
        return users


_PSUTIL_STATES = {
    psutil.STATUS_RUNNING: "R",
    psutil.STATUS_SLEEPING: "S",
    psutil.STATUS_DISK_SLEEP: "D",
    psutil.STATUS_STOPPED: "T",
    psutil.STATUS_TRACING_STOP: "t",
    psutil.STATUS_ZOMBIE: "Z",
    psutil.STATUS_DEAD: "X",
    psutil.STATUS_IDLE: "I",
}


@contextmanager
def _guard(pid: int) -> Iterator[None]:
    """Translate psutil's per-process errors into VanishedProcess."""
    try:
        yield
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
        raise VanishedProcess(pid, type(e).__name__) from e


class PsutilSource:
    """Counter source backed by psutil, for hosts without /proc."""

    def __init__(self, ticks: int | None = None) -> None:
        self._ticks = ticks or clock_ticks()

    def _to_ticks(self, seconds: float) -> int:
        return max(int(round(seconds * self._ticks)), 0)

    def cpu_times(self) -> CpuTimes:
        try:
            times = psutil.cpu_times()
        except (OSError, psutil.Error) as e:
            raise HostMetricsUnavailable(f"cannot read cpu times: {e}") from e
        return CpuTimes(*(self._to_ticks(getattr(times, name, 0.0)) for name in CPU_FIELDS))

    def memory(self) -> tuple[int, int]:
        """Return (total, available) memory in kB."""
        try:
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as e:
            raise HostMetricsUnavailable(f"cannot read memory totals: {e}") from e
        return mem.total // 1024, mem.available // 1024

    def uptime(self) -> float:
        try:
            return max(time.time() - psutil.boot_time(), 0.0)
        except (OSError, psutil.Error) as e:
            raise HostMetricsUnavailable(f"cannot read uptime: {e}") from e

    def host_info(self) -> HostInfo:
        try:
            os_name = platform.freedesktop_os_release().get("PRETTY_NAME", "")
        except OSError:
            os_name = ""
        return HostInfo(
            os_name=os_name or platform.system(),
            kernel=platform.release(),
            clock_ticks=self._ticks,
        )

    def pids(self) -> set[int]:
        try:
            return set(psutil.pids())
        except (OSError, psutil.Error) as e:
            raise HostMetricsUnavailable(f"cannot enumerate processes: {e}") from e

    def identity(self, pid: int) -> ProcessIdentity:
        with _guard(pid):
            proc = psutil.Process(pid)
            with proc.oneshot():
                cmdline = proc.cmdline()
                command = " ".join(cmdline) if cmdline else f"[{proc.name()}]"
                return ProcessIdentity(pid=pid, user=proc.username(), command=command)

    def process_times(self, pid: int) -> ProcessTimes:
        with _guard(pid):
            proc = psutil.Process(pid)
            with proc.oneshot():
                times = proc.cpu_times()
                started = proc.create_time() - psutil.boot_time()
                status = proc.status()
        return ProcessTimes(
            utime=self._to_ticks(times.user),
            stime=self._to_ticks(times.system),
            cutime=self._to_ticks(times.children_user),
            cstime=self._to_ticks(times.children_system),
            starttime=self._to_ticks(started),
            state=_PSUTIL_STATES.get(status, "?"),
        )

    def resident_memory(self, pid: int) -> int:
        with _guard(pid):
            return psutil.Process(pid).memory_info().rss // 1024


def create_source(
    name: str = "procfs",
    proc_root: str | Path = "/proc",
    etc_root: str | Path = "/etc",
) -> CounterSource:
    """Build the counter source named in the configuration."""
    if name == "procfs":
        return ProcfsSource(root=proc_root, etc_root=etc_root)
    if name == "psutil":
        return PsutilSource()
    raise ValueError(f"Unknown source: {name!r}. Valid sources: {list(SOURCES)}")


def _parse_key_values(path: Path, sep: str = ":") -> dict[str, str]:
    """Parse "Key: value" (or "KEY=value") lines into a dict."""
    result: dict[str, str] = {}
    with open(path) as f:
        for line in f:
            key, found, value = line.partition(sep)
            if found:
                result[key.strip()] = value.strip()
    return result


def _kb(value: str) -> int:
    """Parse a "1234 kB" meminfo/status value."""
    parts = value.split()
    if not parts:
        raise ValueError("empty value")
    return int(parts[0])
