"""procmetrics - live dashboard of the process gauges."""

from datetime import datetime, timezone

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from procmetrics.backends import InMemoryBackend
from procmetrics.config import MetricField, MonitorSettings
from procmetrics.logs import setup_logging
from procmetrics.monitor import GAUGE_FIELDS, ProcessMetricsMonitor


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_value(field: MetricField, value: float) -> str:
    """Render a gauge value for display."""
    if field in ("virtual_memory_bytes", "resident_memory_bytes"):
        return format_bytes(value)
    if field == "start_time_seconds":
        started = datetime.fromtimestamp(value, tz=timezone.utc)
        return started.strftime("%Y-%m-%d %H:%M:%S UTC")
    if field == "cpu_seconds_total":
        return f"{value:.2f}s"
    if field == "cpu_usage":
        return f"{value:5.1f}%"
    return str(int(value))


class StatusLine(Static):
    """One-line summary of the sampling state."""

    DEFAULT_CSS = """
    StatusLine {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def show_state(self, polls: int, paused: bool, interval: float) -> None:
        state = "[yellow]paused[/yellow]" if paused else "[green]sampling[/green]"
        self.update(f"{state} every {interval:.2f}s | polls: {polls}")


class GaugeTable(Container):
    """Container for the gauge data table."""

    DEFAULT_CSS = """
    GaugeTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, settings: MonitorSettings, *args, **kwargs) -> None:
        """Initialize GaugeTable."""
        super().__init__(*args, **kwargs)
        self._settings = settings

    def compose(self) -> ComposeResult:
        """Compose the gauge table."""
        yield DataTable(id="gauge-table")

    def on_mount(self) -> None:
        """Add one row per gauge when mounted."""
        table = self.query_one("#gauge-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Metric", key="metric", width=36)
        table.add_column("Value", key="value", width=26)
        for field, _ in GAUGE_FIELDS:
            table.add_row(self._settings.labels.label_for(field), "-", key=field)

    def update_gauges(self, latest: dict[str, float]) -> None:
        """Update the value column from the latest recorded gauges."""
        table = self.query_one("#gauge-table", DataTable)
        for field, _ in GAUGE_FIELDS:
            value = latest.get(self._settings.labels.label_for(field))
            if value is not None:
                table.update_cell(field, "value", format_value(field, value))


class ProcmetricsApp(App):
    """Main procmetrics application."""

    TITLE = "procmetrics"
    SUB_TITLE = "Process Resource Gauges"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("p", "pause", "Pause"),
    ]

    def __init__(self, settings: MonitorSettings | None = None) -> None:
        """Initialize the ProcmetricsApp."""
        super().__init__()
        self._settings = settings or MonitorSettings.prometheus()
        self._backend = InMemoryBackend()
        self._monitor = ProcessMetricsMonitor(self._settings, backend=self._backend)
        self._paused = False

    @property
    def monitor(self) -> ProcessMetricsMonitor:
        return self._monitor

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield StatusLine(id="status")
        yield GaugeTable(self._settings)
        yield Footer()

    def on_mount(self) -> None:
        """Start the monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Refresh the table from the backend."""
        latest = self._backend.latest()
        polls = self._backend.updates // len(GAUGE_FIELDS)
        self.query_one(GaugeTable).update_gauges(latest)
        self.query_one("#status", StatusLine).show_state(
            polls, self._paused, self._monitor.poll_interval
        )

    def action_pause(self) -> None:
        """Pause or resume sampling."""
        if self._paused:
            self._monitor.start()
        else:
            self._monitor.stop()
        self._paused = not self._paused
        self.notify("Paused" if self._paused else "Resumed")

    async def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def main() -> None:
    """Entry point for the procmetrics dashboard."""
    settings = MonitorSettings()
    setup_logging(settings.log_level, settings.log_format)
    app = ProcmetricsApp(settings)
    app.run()


if __name__ == "__main__":
    main()
