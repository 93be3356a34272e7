"""procmetrics configuration, loaded from the environment via pydantic-settings."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MetricField = Literal[
    "virtual_memory_bytes",
    "resident_memory_bytes",
    "start_time_seconds",
    "cpu_seconds_total",
    "cpu_usage",
    "max_fds",
    "open_fds",
]


class MetricLabels(BaseModel):
    """Names of the reported gauges. Every name is ``prefix + label``."""

    model_config = {"frozen": True}

    prefix: str = "process_"
    virtual_memory_bytes: str = "virtual_memory_bytes"
    resident_memory_bytes: str = "resident_memory_bytes"
    start_time_seconds: str = "start_time_seconds"
    cpu_seconds_total: str = "cpu_seconds_total"
    cpu_usage: str = "cpu_usage"
    max_fds: str = "max_fds"
    open_fds: str = "open_fds"

    def label_for(self, field: MetricField) -> str:
        """Return the full metric name for ``field``."""
        return self.prefix + getattr(self, field)


class MonitorSettings(BaseSettings):
    """All procmetrics configuration. Reads from PROCMETRICS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROCMETRICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between two samples",
    )
    labels: MetricLabels = Field(default_factory=MetricLabels)
    dimensions: list[tuple[str, str]] = Field(
        default_factory=list,
        description="Extra (key, value) dimensions attached to every gauge",
    )

    # --- Logging ---
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    @field_validator("dimensions")
    @classmethod
    def _unique_dimension_keys(cls, value: list[tuple[str, str]]) -> list[tuple[str, str]]:
        keys = [key for key, _ in value]
        if len(keys) != len(set(keys)):
            raise ValueError("dimension keys must be unique")
        return value

    @classmethod
    def prometheus(cls, **overrides) -> "MonitorSettings":
        """Prometheus-style configuration: 2 s poll, ``process_`` metric names."""
        values = {"poll_interval": 2.0, "labels": MetricLabels(prefix="process_")}
        values.update(overrides)
        return cls(**values)
