"""Platform-specific samplers producing one Snapshot per poll."""

import sys
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import psutil

from procmetrics.constants import boot_time, system_constants
from procmetrics.cpu import CPUUsageCalculator
from procmetrics.errors import SamplingError, SourceUnavailable, SyscallFailure
from procmetrics.logs import get_logger
from procmetrics.models import Snapshot
from procmetrics.procfs import ProcfsReader, parse_process_stat, parse_uptime, read_fd_limit

logger = get_logger("sampler")


class Sampler(ABC):
    """
    Source of process resource snapshots.

    ``data()`` either returns a complete Snapshot or None. Failures of any
    kind are handled here and never raised to the caller. The call does
    blocking I/O.
    """

    platform = "unknown"

    def data(self) -> Optional[Snapshot]:
        """Take one sample, or return None if it could not be completed."""
        try:
            return self._sample()
        except SamplingError as exc:
            logger.debug(
                "sample_unavailable",
                platform=self.platform,
                reason=type(exc).__name__,
                error=str(exc),
            )
            return None

    @abstractmethod
    def _sample(self) -> Snapshot:
        """Read all sources; raise SamplingError if any of them fails."""


class UnsupportedSampler(Sampler):
    """
    Sampler for platforms without an implementation.

    Every poll is unavailable, so ``data()`` always returns None.
    """

    def _sample(self) -> Snapshot:
        raise SourceUnavailable(f"process metrics are not supported on {sys.platform}")


class LinuxSampler(Sampler):
    """
    Sampler backed by procfs, getrlimit and sysconf.

    CPU time and CPU usage both come from the utime/stime ticks in
    /proc/self/stat, so the two metrics always agree with each other.
    """

    platform = "linux"

    def __init__(
        self,
        reader: Optional[ProcfsReader] = None,
        fd_limit: Callable[[], int] = read_fd_limit,
    ) -> None:
        """
        Initialize the LinuxSampler.

        Args:
            reader: procfs reader; defaults to the real /proc.
            fd_limit: Callable returning the descriptor limit.
        """
        self._reader = reader or ProcfsReader()
        self._fd_limit = fd_limit
        self._cpu_usage = CPUUsageCalculator()

    def _sample(self) -> Snapshot:
        stat_text, uptime_text = self._reader.read_stat_files()
        stat = parse_process_stat(stat_text)
        uptime = parse_uptime(uptime_text)

        constants = system_constants()
        ticks_per_second = constants.clock_ticks_per_second
        booted_at = boot_time(self._reader.read_boot_time)

        max_fds = self._fd_limit()
        open_fds = self._reader.count_open_fds()

        # Only advance the usage baseline once every other source succeeded.
        usage = self._cpu_usage.usage_percent(
            ticks_since_boot=int(uptime * ticks_per_second),
            cpu_ticks=stat.cpu_ticks,
        )

        return Snapshot(
            virtual_memory_bytes=stat.virtual_memory_bytes,
            resident_memory_bytes=stat.resident_pages * constants.page_size,
            start_time_seconds=booted_at + stat.start_ticks // ticks_per_second,
            cpu_seconds=stat.cpu_ticks / ticks_per_second,
            cpu_usage_percent=usage,
            max_file_descriptors=max_fds,
            open_file_descriptors=open_fds,
        )


class DarwinSampler(Sampler):
    """
    Sampler backed by the task introspection APIs, accessed through psutil.

    psutil fetches task info in one proc_pidinfo call inside ``oneshot()``,
    converts Mach ticks to seconds, and counts descriptors with the two-phase
    PROC_PIDLISTFDS query.
    """

    platform = "darwin"

    def __init__(
        self,
        process: Optional[psutil.Process] = None,
        fd_limit: Callable[[], int] = read_fd_limit,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the DarwinSampler.

        Args:
            process: psutil handle for the current process.
            fd_limit: Callable returning the descriptor limit.
            clock: Wall clock in epoch seconds.
        """
        self._process = process if process is not None else psutil.Process()
        self._fd_limit = fd_limit
        self._clock = clock
        self._cpu_usage = CPUUsageCalculator()

    def _sample(self) -> Snapshot:
        try:
            with self._process.oneshot():
                memory = self._process.memory_info()
                cpu_times = self._process.cpu_times()
                started_at = self._process.create_time()
                open_fds = self._process.num_fds()
            booted_at = psutil.boot_time()
        except (psutil.Error, OSError) as exc:
            raise SyscallFailure(f"task info query failed: {exc}") from exc

        assert open_fds >= 0, "descriptor count cannot be negative"
        max_fds = self._fd_limit()

        ticks_per_second = system_constants().clock_ticks_per_second
        cpu_seconds = cpu_times.user + cpu_times.system
        usage = self._cpu_usage.usage_percent(
            ticks_since_boot=int((self._clock() - booted_at) * ticks_per_second),
            cpu_ticks=int(cpu_seconds * ticks_per_second),
        )

        return Snapshot(
            virtual_memory_bytes=memory.vms,
            resident_memory_bytes=memory.rss,
            start_time_seconds=int(started_at),
            cpu_seconds=cpu_seconds,
            cpu_usage_percent=usage,
            max_file_descriptors=max_fds,
            open_file_descriptors=open_fds,
        )


def select_sampler(platform: Optional[str] = None) -> Sampler:
    """
    Return the sampler for ``platform`` (defaults to ``sys.platform``).

    Unknown platforms get an UnsupportedSampler, whose ``data()`` is always
    None.
    """
    platform = platform or sys.platform
    if platform.startswith("linux"):
        return LinuxSampler()
    if platform == "darwin":
        return DarwinSampler()
    logger.info("sampler_unsupported_platform", platform=platform)
    return UnsupportedSampler()
