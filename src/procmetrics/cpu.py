"""CPU usage percentage from two time-separated tick samples."""

import threading
from typing import Optional


class CPUUsageCalculator:
    """
    Turns cumulative tick counters into an instantaneous usage percentage.

    The percentage is always the rate between the current call and the
    previous one, never an average since process start. The first call has
    no baseline and returns 0.0.
    """

    def __init__(self) -> None:
        """Create a calculator with no baseline."""
        self._prev_ticks_since_boot: Optional[int] = None
        self._prev_cpu_ticks: Optional[int] = None
        self._lock = threading.Lock()

    def usage_percent(self, ticks_since_boot: int, cpu_ticks: int) -> float:
        """
        Compute CPU usage since the previous call.

        Args:
            ticks_since_boot: Wall-clock ticks elapsed since system boot.
            cpu_ticks: Ticks this process has spent on CPU (user + kernel).

        Returns:
            Percentage of one core; may exceed 100.0 for multi-threaded load.
        """
        with self._lock:
            try:
                if self._prev_ticks_since_boot is None or self._prev_cpu_ticks is None:
                    return 0.0

                boot_delta = ticks_since_boot - self._prev_ticks_since_boot
                if boot_delta <= 0:
                    return 0.0

                cpu_delta = cpu_ticks - self._prev_cpu_ticks
                return max(0.0, cpu_delta * 100.0 / boot_delta)
            finally:
                self._prev_ticks_since_boot = ticks_since_boot
                self._prev_cpu_ticks = cpu_ticks
