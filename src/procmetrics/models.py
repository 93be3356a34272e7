"""Data models for procmetrics."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable resource usage of the current process at one poll."""

    virtual_memory_bytes: int
    resident_memory_bytes: int
    start_time_seconds: int  # Unix epoch
    cpu_seconds: float  # user + system since process start
    cpu_usage_percent: float  # 0.0 - 100.0 * core_count
    max_file_descriptors: int
    open_file_descriptors: int


@dataclass(slots=True, frozen=True)
class ProcessStat:
    """Fields parsed from one line of /proc/self/stat."""

    user_ticks: int
    kernel_ticks: int
    start_ticks: int  # since system boot
    virtual_memory_bytes: int
    resident_pages: int

    @property
    def cpu_ticks(self) -> int:
        return self.user_ticks + self.kernel_ticks
