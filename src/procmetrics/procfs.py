"""Readers and parsers for Linux procfs accounting files."""

import math
import os
import resource
from typing import Iterable

from procmetrics.errors import ParseFailure, SourceUnavailable, SyscallFailure
from procmetrics.models import ProcessStat

# Offsets counted from the first field after the closing ")" of comm.
# proc_pid_stat(5) numbers fields from 1, so utime (14) lands at 11.
USER_TICKS = 11
KERNEL_TICKS = 12
START_TICKS = 19
VIRTUAL_MEMORY_BYTES = 20
RESIDENT_PAGES = 21


def parse_process_stat(text: str) -> ProcessStat:
    """
    Parse the contents of /proc/<pid>/stat.

    The executable name is wrapped in parentheses and may contain spaces
    or ")" itself, so everything up to the last ")" is skipped.

    Raises:
        ParseFailure: A required field is missing or not an integer.
    """
    _, sep, rest = text.rpartition(")")
    if not sep:
        raise ParseFailure("stat line has no closing parenthesis")

    fields = rest.split()
    try:
        return ProcessStat(
            user_ticks=int(fields[USER_TICKS]),
            kernel_ticks=int(fields[KERNEL_TICKS]),
            start_ticks=int(fields[START_TICKS]),
            virtual_memory_bytes=int(fields[VIRTUAL_MEMORY_BYTES]),
            resident_pages=int(fields[RESIDENT_PAGES]),
        )
    except (IndexError, ValueError) as exc:
        raise ParseFailure(f"malformed stat line: {exc}") from exc


def parse_uptime(text: str) -> float:
    """Return system uptime in seconds from the contents of /proc/uptime."""
    tokens = text.split()
    if not tokens:
        raise ParseFailure("uptime file is empty")
    try:
        uptime = float(tokens[0])
    except ValueError as exc:
        raise ParseFailure(f"uptime is not a number: {tokens[0]!r}") from exc
    if not math.isfinite(uptime) or uptime < 0:
        raise ParseFailure(f"uptime out of range: {uptime}")
    return uptime


def parse_boot_time(lines: Iterable[str]) -> int:
    """Return the ``btime`` value (boot epoch seconds) from /proc/stat lines."""
    for line in lines:
        if line.startswith("btime"):
            try:
                return int(line.split()[-1])
            except (IndexError, ValueError) as exc:
                raise ParseFailure(f"malformed btime line: {line!r}") from exc
    raise ParseFailure("no btime line in system stat file")


def read_fd_limit() -> int:
    """
    Return the maximum number of file descriptors for this process.

    The hard limit is reported. When it is unlimited the soft limit is used
    instead, since an unbounded gauge has no meaningful value.
    """
    try:
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
    except (OSError, ValueError) as exc:
        raise SyscallFailure(f"getrlimit(RLIMIT_NOFILE) failed: {exc}") from exc

    for limit in (hard, soft):
        if limit != resource.RLIM_INFINITY and limit >= 0:
            return limit
    raise SyscallFailure("file descriptor limit is unlimited")


class ProcfsReader:
    """
    Reads the procfs files the Linux sampler needs.

    Args:
        root: Mount point of procfs. Tests point this at a fake tree.
    """

    def __init__(self, root: str = "/proc") -> None:
        self._root = root

    @property
    def root(self) -> str:
        return self._root

    def _path(self, *parts: str) -> str:
        return os.path.join(self._root, *parts)

    def read_stat_files(self) -> tuple[str, str]:
        """
        Read the process stat line and the system uptime.

        Both files are read back-to-back so the CPU usage computed from
        them refers to the same instant.
        """
        try:
            with open(self._path("self", "stat"), "r") as stat_file, open(
                self._path("uptime"), "r"
            ) as uptime_file:
                stat_text = stat_file.read()
                uptime_text = uptime_file.read()
        except OSError as exc:
            raise SourceUnavailable(f"cannot read procfs: {exc}") from exc
        return stat_text, uptime_text

    def read_boot_time(self) -> int:
        """Read the system boot time in epoch seconds from the stat file."""
        try:
            with open(self._path("stat"), "r") as f:
                return parse_boot_time(f)
        except OSError as exc:
            raise SourceUnavailable(f"cannot read system stat: {exc}") from exc

    def count_open_fds(self) -> int:
        """Count entries in this process's descriptor table."""
        try:
            entries = os.listdir(self._path("self", "fd"))
        except OSError as exc:
            raise SourceUnavailable(f"cannot list open descriptors: {exc}") from exc
        return sum(1 for entry in entries if entry.isdigit())
