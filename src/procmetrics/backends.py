"""Metrics backends that receive gauge updates from the monitor."""

import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from prometheus_client import CollectorRegistry, Gauge

Dimensions = Sequence[tuple[str, str]]


class MetricsBackend(Protocol):
    """Anything that accepts named, dimensioned gauge updates."""

    def record_gauge(self, name: str, dimensions: Dimensions, value: float) -> None:
        ...


@dataclass(slots=True, frozen=True)
class RecordedGauge:
    """One gauge update captured by the InMemoryBackend."""

    name: str
    dimensions: tuple[tuple[str, str], ...]
    value: float


class InMemoryBackend:
    """
    Backend that keeps recent gauge updates in memory.

    Used by the dashboard and by tests to observe what the monitor reports.
    Only the newest ``max_records`` updates are kept, so a long-running
    monitor does not grow without bound; ``latest()`` and ``updates`` cover
    the whole lifetime.
    """

    def __init__(self, max_records: int = 7 * 60) -> None:
        """
        Initialize the InMemoryBackend.

        Args:
            max_records: How many updates to keep (60 polls of seven gauges by default).
        """
        if max_records <= 0:
            raise ValueError("max_records must be positive")
        self._records: deque[RecordedGauge] = deque(maxlen=max_records)
        self._latest: dict[str, float] = {}
        self._updates = 0
        self._lock = threading.Lock()

    def record_gauge(self, name: str, dimensions: Dimensions, value: float) -> None:
        with self._lock:
            self._records.append(RecordedGauge(name, tuple(dimensions), value))
            self._latest[name] = value
            self._updates += 1

    @property
    def records(self) -> list[RecordedGauge]:
        """Retained updates, oldest first."""
        with self._lock:
            return list(self._records)

    @property
    def updates(self) -> int:
        """Number of updates received, including ones no longer retained."""
        return self._updates

    def latest(self) -> dict[str, float]:
        """Return the most recent value of every gauge, keyed by name."""
        with self._lock:
            return dict(self._latest)

    def values(self, name: str) -> list[float]:
        """Return the retained values recorded for ``name``, oldest first."""
        with self._lock:
            return [record.value for record in self._records if record.name == name]

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
            self._latest.clear()
            self._updates = 0


class PrometheusBackend:
    """
    Backend that exposes gauges through prometheus_client.

    Gauges live in their own CollectorRegistry by default: the global
    registry already carries prometheus_client's process collector, which
    owns the same ``process_*`` names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self._registry = registry if registry is not None else CollectorRegistry(auto_describe=True)
        self._gauges: dict[str, tuple[Gauge, tuple[str, ...]]] = {}
        self._lock = threading.Lock()

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def _gauge(self, name: str, label_names: tuple[str, ...]) -> Gauge:
        with self._lock:
            entry = self._gauges.get(name)
            if entry is None:
                gauge = Gauge(
                    name,
                    f"Process metric {name}",
                    labelnames=label_names,
                    registry=self._registry,
                )
                self._gauges[name] = (gauge, label_names)
                return gauge

            gauge, registered = entry
            if registered != label_names:
                raise ValueError(
                    f"gauge {name} was registered with dimensions {registered}, "
                    f"got {label_names}"
                )
            return gauge

    def record_gauge(self, name: str, dimensions: Dimensions, value: float) -> None:
        label_names = tuple(key for key, _ in dimensions)
        gauge = self._gauge(name, label_names)
        if label_names:
            gauge.labels(*(val for _, val in dimensions)).set(value)
        else:
            gauge.set(value)
