"""Process-wide scaling constants, computed once and cached."""

import os
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from procmetrics.errors import SourceUnavailable


@dataclass(slots=True, frozen=True)
class SystemConstants:
    """Scaling constants reported by the OS for this process."""

    clock_ticks_per_second: int
    page_size: int  # bytes


_constants: Optional[SystemConstants] = None
_constants_lock = threading.Lock()

_boot_time: Optional[int] = None
_boot_time_lock = threading.Lock()


def _read_sysconf() -> SystemConstants:
    try:
        ticks = os.sysconf("SC_CLK_TCK")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (ValueError, OSError) as exc:
        raise SourceUnavailable(f"sysconf unavailable: {exc}") from exc

    if ticks <= 0 or page_size <= 0:
        raise SourceUnavailable("sysconf returned a non-positive value")
    return SystemConstants(clock_ticks_per_second=ticks, page_size=page_size)


def system_constants() -> SystemConstants:
    """
    Return the cached SystemConstants, computing them on first use.

    Raises:
        SourceUnavailable: sysconf does not know the values on this host.
    """
    global _constants
    if _constants is not None:
        return _constants

    with _constants_lock:
        if _constants is None:
            _constants = _read_sysconf()
        return _constants


def boot_time(reader: Callable[[], int]) -> int:
    """
    Return the system boot time in epoch seconds.

    ``reader`` is only called until it succeeds once; failures are not
    cached so the next poll tries again.
    """
    global _boot_time
    if _boot_time is not None:
        return _boot_time

    with _boot_time_lock:
        if _boot_time is None:
            _boot_time = reader()
        return _boot_time


def reset_caches() -> None:
    """Forget all cached values. Only meant for tests."""
    global _constants, _boot_time
    with _constants_lock, _boot_time_lock:
        _constants = None
        _boot_time = None
