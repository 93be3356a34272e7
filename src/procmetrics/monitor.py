"""Periodic process metrics reporting for procmetrics."""

import asyncio
import threading
from typing import Optional

from procmetrics.backends import InMemoryBackend, MetricsBackend
from procmetrics.config import MetricField, MonitorSettings
from procmetrics.logs import get_logger
from procmetrics.models import Snapshot
from procmetrics.sampler import Sampler, select_sampler

logger = get_logger("monitor")

# Gauge label field -> Snapshot attribute
GAUGE_FIELDS: tuple[tuple[MetricField, str], ...] = (
    ("virtual_memory_bytes", "virtual_memory_bytes"),
    ("resident_memory_bytes", "resident_memory_bytes"),
    ("start_time_seconds", "start_time_seconds"),
    ("cpu_seconds_total", "cpu_seconds"),
    ("cpu_usage", "cpu_usage_percent"),
    ("max_fds", "max_file_descriptors"),
    ("open_fds", "open_file_descriptors"),
)

MIN_POLL_INTERVAL = 0.01


class ProcessMetricsMonitor:
    """
    Samples the current process and records the results as gauges.

    Can run in a separate daemon thread (``start``/``stop``) or as an
    asyncio coroutine (``run``). A poll whose sample is unavailable emits
    nothing, leaving a gap in the series rather than zeros.
    """

    def __init__(
        self,
        settings: Optional[MonitorSettings] = None,
        backend: Optional[MetricsBackend] = None,
        sampler: Optional[Sampler] = None,
    ) -> None:
        """
        Initialize the ProcessMetricsMonitor.

        Args:
            settings: Poll interval, metric labels and dimensions.
                Defaults to the Prometheus-style configuration.
            backend: Where gauges are recorded. Defaults to an InMemoryBackend.
            sampler: Snapshot source. Defaults to the one for this platform.
        """
        self._settings = settings or MonitorSettings.prometheus()
        self._backend = backend if backend is not None else InMemoryBackend()
        self._sampler = sampler or select_sampler()
        self._poll_interval = max(MIN_POLL_INTERVAL, self._settings.poll_interval)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    @property
    def backend(self) -> MetricsBackend:
        return self._backend

    @property
    def poll_interval(self) -> float:
        """Get the current poll interval in seconds."""
        return self._poll_interval

    @poll_interval.setter
    def poll_interval(self, value: float) -> None:
        """Set the poll interval in seconds."""
        self._poll_interval = max(MIN_POLL_INTERVAL, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def update_metrics(self) -> Optional[Snapshot]:
        """
        Take one sample and record all seven gauges.

        Returns:
            The reported snapshot, or None when nothing was emitted.
        """
        snapshot = self._sampler.data()
        if snapshot is None:
            return None

        labels = self._settings.labels
        dimensions = self._settings.dimensions
        for field, attribute in GAUGE_FIELDS:
            name = labels.label_for(field)
            try:
                self._backend.record_gauge(name, dimensions, getattr(snapshot, attribute))
            except Exception as exc:
                logger.warning("gauge_record_failed", metric=name, error=str(exc))
        return snapshot

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ProcessMetricsMonitor",
        )
        self._thread.start()
        logger.info("monitor_started", mode="thread", poll_interval=self._poll_interval)

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
            logger.info("monitor_stopped", mode="thread")

    def _poll_once(self) -> None:
        try:
            self.update_metrics()
        except Exception:
            logger.exception("monitor_poll_failed")

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self._poll_once()

            # Wait for poll_interval seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_interval)

    async def run(self) -> None:
        """
        Sample and report until the surrounding task is cancelled.

        Sampling does blocking I/O, so each poll runs in a worker thread.
        """
        logger.info("monitor_started", mode="async", poll_interval=self._poll_interval)
        try:
            while True:
                await asyncio.to_thread(self._poll_once)
                await asyncio.sleep(self._poll_interval)
        finally:
            logger.info("monitor_stopped", mode="async")
