"""Exceptions raised by the hosttop engine."""


class HosttopError(Exception):
    """Base class for hosttop errors."""


class TransientReadFailure(HosttopError):
    """A single counter read could not complete."""


class VanishedProcess(TransientReadFailure):
    """A process exited, or became unreadable, between enumeration and detail read."""

    def __init__(self, pid: int, reason: str = "") -> None:
        self.pid = pid
        self.reason = reason
        message = f"process {pid} vanished"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InconsistentSnapshot(HosttopError):
    """Delta preconditions do not hold: the clock stalled or a counter went backwards."""


class ProcessReplaced(VanishedProcess):
    """The pid now belongs to a different process than the one first seen."""


class HostMetricsUnavailable(HosttopError):
    """System-wide CPU, memory or uptime counters could not be read."""
