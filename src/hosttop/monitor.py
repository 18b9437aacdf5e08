"""Background refresh loop for hosttop."""

import threading
from queue import Queue

import structlog

from hosttop.errors import HostMetricsUnavailable
from hosttop.models import SystemSnapshot
from hosttop.system import System

log = structlog.get_logger()


class SystemMonitor:
    """
    Refreshes a System on a fixed cadence.

    Runs in a separate daemon thread and pushes each SystemSnapshot to a
    thread-safe Queue. The System is only ever touched from that thread;
    consumers receive independent snapshots.
    """

    def __init__(
        self,
        update_queue: Queue[SystemSnapshot],
        poll_rate: float = 2.0,
        system: System | None = None,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            update_queue: Thread-safe queue to push updates to.
            poll_rate: How often to refresh (in seconds). Default 2.0s.
            system: The System to refresh. Defaults to one reading /proc.
        """
        self._queue = update_queue
        self._poll_rate = max(0.1, poll_rate)
        self._system = system if system is not None else System()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def system(self) -> System:
        return self._system

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(0.1, value)  # Minimum 0.1 seconds

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()
        log.info("monitor_started", poll_rate=self._poll_rate)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            log.info("monitor_stopped")

    def poll_once(self) -> SystemSnapshot | None:
        """Refresh once and queue the result. Returns None if host metrics were unavailable."""
        try:
            self._system.refresh()
        except HostMetricsUnavailable as e:
            log.warning("host_metrics_unavailable", error=str(e))
            return None
        snapshot = self._system.snapshot()
        self._queue.put(snapshot)
        return snapshot

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:
                # Keep the loop alive; the UI shows the last good snapshot
                log.exception("refresh_failed")
            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)
