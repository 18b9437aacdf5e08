"""hosttop - Main Textual application."""

from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.widgets import DataTable, Footer, Static

from hosttop.config import Config
from hosttop.models import HostMetrics, ProcessSnapshot, SystemSnapshot
from hosttop.monitor import SystemMonitor
from hosttop.source import create_source
from hosttop.system import System

BAR_WIDTH = 20
COLUMN_KEYS = ("pid", "user", "cpu", "ram", "uptime", "command")


def format_uptime(seconds: float) -> str:
    """Format seconds as HH:MM:SS, prefixed with days when over a day."""
    seconds = max(int(seconds), 0)
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_bar(ratio: float, color: str = "green", width: int = BAR_WIDTH) -> str:
    """Render a ratio in [0, 1] as a Rich markup bar."""
    filled = min(max(int(ratio * width), 0), width)
    # Escaped bracket keeps Rich from reading the bar container as markup
    return f"\\[[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]]"


class HeaderStats(Static):
    """Header widget showing host information and utilization."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._host: HostMetrics | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_host_info(), id="host-info"),
            Static(self._get_usage_info(), id="usage-info"),
        )

    def update_stats(self, host: HostMetrics) -> None:
        """Update the statistics from the latest host metrics."""
        self._host = host
        try:
            self.query_one("#host-info", Static).update(self._get_host_info())
            self.query_one("#usage-info", Static).update(self._get_usage_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_host_info(self) -> str:
        if self._host is None:
            return "Loading host info..."
        host = self._host
        return (
            f"OS: {host.os_name}\n"
            f"Kernel: {host.kernel}\n"
            f"Processes: {host.total_processes} total, {host.running_processes} running\n"
            f"Uptime: {format_uptime(host.uptime)}"
        )

    def _get_usage_info(self) -> str:
        if self._host is None:
            return ""
        host = self._host
        return (
            f"CPU {format_bar(host.cpu_utilization)} {host.cpu_utilization * 100:5.1f}%\n"
            f"Mem {format_bar(host.memory_utilization, 'cyan')} "
            f"{host.memory_utilization * 100:5.1f}%"
        )


class ProcessTable(Container):
    """Container for the process data table, in the order the engine ranked them."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, max_rows: int = 0, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._max_rows = max_rows
        self._current_pids: set[int] = set()

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("RAM[MB]", key="ram", width=9)
        table.add_column("TIME+", key="uptime", width=10)
        table.add_column("Command", key="command")

    def update_processes(self, processes: list[ProcessSnapshot]) -> None:
        """
        Update the process table with new data.

        Rows are keyed by pid and updated in place with update_cell, then
        sorted into the ranked order. The cursor follows the selected process.
        """
        table = self.query_one("#process-table", DataTable)
        if self._max_rows > 0:
            processes = processes[: self._max_rows]

        selected = self.selected_row_key(table)
        new_pids = {proc.pid for proc in processes}

        # Remove rows for processes that no longer exist
        for pid in self._current_pids - new_pids:
            table.remove_row(str(pid))

        for proc in processes:
            row_key = str(proc.pid)
            if proc.pid in self._current_pids:
                for column, value in zip(COLUMN_KEYS, self.format_row(proc)):
                    table.update_cell(row_key, column, value)
            else:
                table.add_row(*self.format_row(proc), key=row_key)

        self._current_pids = new_pids

        rank = {str(proc.pid): index for index, proc in enumerate(processes)}
        table.sort("pid", key=lambda pid: rank[pid])
        if selected in rank:
            table.move_cursor(row=table.get_row_index(selected))

    @staticmethod
    def selected_row_key(table: DataTable) -> str | None:
        """Row key (pid) under the cursor, or None for an empty table."""
        if table.row_count == 0:
            return None
        return table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value

    @staticmethod
    def format_row(proc: ProcessSnapshot) -> tuple[str, ...]:
        return (
            str(proc.pid),
            proc.user[:10],
            f"{proc.cpu_utilization * 100:5.1f}",
            proc.ram,
            format_uptime(proc.uptime),
            proc.command[:50],
        )


class HosttopApp(App):
    """Main hosttop application."""

    TITLE = "hosttop"
    SUB_TITLE = "Host Resource Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #host-info {
        width: 1fr;
        padding-right: 2;
    }

    #usage-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: Config | None = None, system: System | None = None) -> None:
        """Initialize the HosttopApp."""
        super().__init__()
        self._settings = config or Config()
        monitor_config = self._settings.monitor
        if system is None:
            system = System(
                create_source(
                    monitor_config.source,
                    proc_root=monitor_config.proc_root,
                    etc_root=monitor_config.etc_root,
                )
            )
        self._update_queue: Queue[SystemSnapshot] = Queue()
        self._monitor = SystemMonitor(
            self._update_queue,
            poll_rate=monitor_config.poll_rate,
            system=system,
        )

    @property
    def system_monitor(self) -> SystemMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield ProcessTable(max_rows=self._settings.monitor.max_processes)
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Check the queue for system updates and refresh the UI."""
        # Drain the queue, keeping only the most recent snapshot
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is not None:
            self.update_ui(snapshot)

    def update_ui(self, snapshot: SystemSnapshot) -> None:
        """Update the UI with a new system snapshot."""
        self.query_one("#header-stats", HeaderStats).update_stats(snapshot.host)
        self.query_one(ProcessTable).update_processes(snapshot.processes)

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def run_app(config: Config | None = None) -> None:
    """Run the hosttop application."""
    app = HosttopApp(config)
    app.run()
