"""Shared fixtures for procmetrics tests."""

import pytest

from procmetrics import constants
from procmetrics.constants import SystemConstants
from procmetrics.procfs import ProcfsReader

STAT_FIELDS = (
    "S 1 1234 1234 0 -1 4194560 100 0 0 0 {utime} {stime} 0 0 20 0 3 0 "
    "5000 104857600 2560 18446744073709551615 1 1 0 0 0 0 0 0 0 0 0 0 17 0 0 0 0 0 0"
)


def stat_line(utime: int = 250, stime: int = 50, comm: str = "python") -> str:
    """Build a /proc/<pid>/stat line with the given CPU ticks."""
    return f"1234 ({comm}) " + STAT_FIELDS.format(utime=utime, stime=stime) + "\n"


class FakeProcfs:
    """A writable procfs tree under a temporary directory."""

    def __init__(self, root) -> None:
        self.root = root
        (root / "self" / "fd").mkdir(parents=True)
        for fd in range(4):
            (root / "self" / "fd" / str(fd)).write_text("")
        self.set_stat(stat_line())
        self.set_uptime("12345.5 98765.25\n")
        (root / "stat").write_text(
            "cpu  10 0 10 100 0 0 0 0 0 0\n"
            "intr 12345\n"
            "ctxt 67890\n"
            "btime 1700000000\n"
            "processes 4242\n"
        )

    def set_stat(self, text: str) -> None:
        (self.root / "self" / "stat").write_text(text)

    def set_uptime(self, text: str) -> None:
        (self.root / "uptime").write_text(text)

    @property
    def reader(self) -> ProcfsReader:
        return ProcfsReader(str(self.root))


@pytest.fixture(autouse=True)
def reset_constant_caches():
    """Each test starts without cached constants or boot time."""
    constants.reset_caches()
    yield
    constants.reset_caches()


@pytest.fixture
def fixed_constants(monkeypatch):
    """Pin clock ticks to 100/s and pages to 4 KiB."""
    value = SystemConstants(clock_ticks_per_second=100, page_size=4096)
    monkeypatch.setattr(constants, "_constants", value)
    return value


@pytest.fixture
def fake_procfs(tmp_path):
    return FakeProcfs(tmp_path / "proc")


@pytest.fixture
def make_stat_line():
    return stat_line
