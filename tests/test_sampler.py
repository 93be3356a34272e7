"""Tests for the platform samplers and sampler selection."""

import os
import resource
import shutil
import sys
import time
from contextlib import contextmanager
from types import SimpleNamespace

import psutil
import pytest

from procmetrics import sampler as sampler_module
from procmetrics.errors import SyscallFailure
from procmetrics.models import Snapshot
from procmetrics.sampler import (
    DarwinSampler,
    LinuxSampler,
    UnsupportedSampler,
    select_sampler,
)

linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux"), reason="requires procfs"
)


def fixed_fd_limit() -> int:
    return 1024


class TestLinuxSamplerFakeProcfs:
    """LinuxSampler against a fake procfs tree with pinned constants."""

    def test_snapshot_fields(self, fake_procfs, fixed_constants):
        """Every field is derived from the fake files with the right scaling."""
        sampler = LinuxSampler(fake_procfs.reader, fd_limit=fixed_fd_limit)

        snapshot = sampler.data()

        assert snapshot == Snapshot(
            virtual_memory_bytes=104857600,
            resident_memory_bytes=2560 * 4096,
            start_time_seconds=1700000000 + 5000 // 100,
            cpu_seconds=3.0,
            cpu_usage_percent=0.0,
            max_file_descriptors=1024,
            open_file_descriptors=4,
        )

    def test_cpu_usage_between_samples(self, fake_procfs, fixed_constants, make_stat_line):
        """100 CPU ticks over 2 s of uptime (200 ticks) is 50%."""
        sampler = LinuxSampler(fake_procfs.reader, fd_limit=fixed_fd_limit)
        assert sampler.data().cpu_usage_percent == 0.0

        fake_procfs.set_stat(make_stat_line(utime=300, stime=100))
        fake_procfs.set_uptime("12347.5 98766.0\n")
        snapshot = sampler.data()

        assert snapshot.cpu_usage_percent == 50.0
        assert snapshot.cpu_seconds == 4.0

    def test_same_uptime_gives_zero_usage(self, fake_procfs, fixed_constants, make_stat_line):
        sampler = LinuxSampler(fake_procfs.reader, fd_limit=fixed_fd_limit)
        sampler.data()

        fake_procfs.set_stat(make_stat_line(utime=900, stime=100))
        assert sampler.data().cpu_usage_percent == 0.0

    @pytest.mark.parametrize(
        "break_source",
        [
            lambda fs: (fs.root / "uptime").unlink(),
            lambda fs: (fs.root / "self" / "stat").unlink(),
            lambda fs: fs.set_stat("1234 (python) S 1 2 3\n"),
            lambda fs: fs.set_uptime("not-a-number\n"),
            lambda fs: (fs.root / "stat").write_text("cpu  1 2 3\n"),
            lambda fs: shutil.rmtree(fs.root / "self" / "fd"),
        ],
        ids=["no-uptime", "no-stat", "short-stat", "bad-uptime", "no-btime", "no-fd-dir"],
    )
    def test_any_failed_source_discards_snapshot(
        self, fake_procfs, fixed_constants, break_source
    ):
        """One broken source means no snapshot at all."""
        break_source(fake_procfs)
        sampler = LinuxSampler(fake_procfs.reader, fd_limit=fixed_fd_limit)

        assert sampler.data() is None

    def test_fd_limit_failure_discards_snapshot(self, fake_procfs, fixed_constants):
        def failing_limit() -> int:
            raise SyscallFailure("getrlimit failed")

        sampler = LinuxSampler(fake_procfs.reader, fd_limit=failing_limit)

        assert sampler.data() is None

    def test_failed_sample_keeps_usage_baseline(self, fake_procfs, fixed_constants):
        """A discarded poll does not become the CPU usage baseline."""
        calls = iter([SyscallFailure("transient"), 1024, 1024])

        def flaky_limit() -> int:
            result = next(calls)
            if isinstance(result, Exception):
                raise result
            return result

        sampler = LinuxSampler(fake_procfs.reader, fd_limit=flaky_limit)

        assert sampler.data() is None
        # Still the first successful sample, so no baseline yet
        assert sampler.data().cpu_usage_percent == 0.0

    def test_boot_time_cached_after_success(self, fake_procfs, fixed_constants):
        sampler = LinuxSampler(fake_procfs.reader, fd_limit=fixed_fd_limit)
        assert sampler.data() is not None

        (fake_procfs.root / "stat").unlink()

        assert sampler.data().start_time_seconds == 1700000050

    def test_boot_time_failure_is_retried(self, fake_procfs, fixed_constants):
        (fake_procfs.root / "stat").write_text("cpu  1 2 3\n")
        sampler = LinuxSampler(fake_procfs.reader, fd_limit=fixed_fd_limit)
        assert sampler.data() is None

        (fake_procfs.root / "stat").write_text("btime 1600000000\n")

        assert sampler.data().start_time_seconds == 1600000050


@linux_only
class TestLinuxSamplerLive:
    """LinuxSampler against the real /proc of the test process."""

    def test_all_metrics_present(self):
        snapshot = LinuxSampler().data()

        assert snapshot is not None
        assert snapshot.virtual_memory_bytes > 0
        assert snapshot.resident_memory_bytes > 0
        assert snapshot.start_time_seconds > 0
        assert snapshot.cpu_seconds > 0
        assert snapshot.cpu_usage_percent == 0.0
        assert snapshot.max_file_descriptors > 0
        assert snapshot.open_file_descriptors > 0

    def test_resident_memory_tracks_allocation(self):
        """Touching N new bytes raises resident memory by about N."""
        allocation_size = 64 * 1024 * 1024

        for _ in range(5):
            warmup = b"\xa2" * allocation_size
            del warmup

        sampler = LinuxSampler()
        before = sampler.data().resident_memory_bytes

        block = b"\xa2" * allocation_size
        after = sampler.data().resident_memory_bytes
        del block

        # proc_pid_stat(5) documents rss as inaccurate: the kernel batches
        # per-CPU counter updates. Allow 1% plus one MiB of batching slack.
        accuracy = allocation_size // 100 + 1024 * 1024
        assert abs((after - before) - allocation_size) <= accuracy

    def test_cpu_seconds_increase_under_load(self):
        sampler = LinuxSampler()
        before = sampler.data().cpu_seconds

        deadline = time.monotonic() + 1.0
        value = 0
        while time.monotonic() < deadline:
            value = hash((value, 1))

        after = sampler.data()
        assert after.cpu_seconds - before > 0
        assert after.cpu_usage_percent > 0

    def test_cpu_seconds_match_getrusage(self):
        snapshot = LinuxSampler().data()
        usage = resource.getrusage(resource.RUSAGE_SELF)

        assert abs(snapshot.cpu_seconds - (usage.ru_utime + usage.ru_stime)) < 0.1

    def test_start_time_matches_psutil(self):
        snapshot = LinuxSampler().data()

        assert abs(snapshot.start_time_seconds - psutil.Process().create_time()) <= 1

    def test_open_descriptor_is_counted(self):
        sampler = LinuxSampler()
        before = sampler.data().open_file_descriptors

        fd = os.open(os.devnull, os.O_RDONLY)
        try:
            during = sampler.data().open_file_descriptors
        finally:
            os.close(fd)

        assert during == before + 1

    def test_max_descriptors_is_hard_limit(self):
        soft, hard = resource.getrlimit(resource.RLIMIT_NOFILE)
        expected = hard if hard != resource.RLIM_INFINITY else soft

        assert LinuxSampler().data().max_file_descriptors == expected


class FakeProcess:
    """Stands in for psutil.Process with controllable readings."""

    def __init__(self) -> None:
        self.user = 1.5
        self.system = 0.5
        self.fds = 7
        self.error: Exception | None = None

    @contextmanager
    def oneshot(self):
        yield

    def memory_info(self):
        if self.error is not None:
            raise self.error
        return SimpleNamespace(rss=50 * 1024 * 1024, vms=400 * 1024 * 1024)

    def cpu_times(self):
        return SimpleNamespace(user=self.user, system=self.system)

    def create_time(self) -> float:
        return 1700000123.75

    def num_fds(self) -> int:
        return self.fds


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestDarwinSampler:
    """Tests for DarwinSampler."""

    @pytest.fixture
    def process(self, monkeypatch):
        monkeypatch.setattr(sampler_module.psutil, "boot_time", lambda: 1700000000.0)
        return FakeProcess()

    def test_snapshot_fields(self, process, fixed_constants):
        sampler = DarwinSampler(process, fd_limit=fixed_fd_limit, clock=FakeClock(1700001000.0))

        snapshot = sampler.data()

        assert snapshot == Snapshot(
            virtual_memory_bytes=400 * 1024 * 1024,
            resident_memory_bytes=50 * 1024 * 1024,
            start_time_seconds=1700000123,
            cpu_seconds=2.0,
            cpu_usage_percent=0.0,
            max_file_descriptors=1024,
            open_file_descriptors=7,
        )

    def test_cpu_usage_between_samples(self, process, fixed_constants):
        """One CPU second over two wall seconds is 50%."""
        clock = FakeClock(1700001000.0)
        sampler = DarwinSampler(process, fd_limit=fixed_fd_limit, clock=clock)
        sampler.data()

        clock.now += 2.0
        process.user += 1.0

        assert sampler.data().cpu_usage_percent == pytest.approx(50.0)

    @pytest.mark.parametrize(
        "error",
        [psutil.NoSuchProcess(1), psutil.AccessDenied(1), OSError("EPERM")],
        ids=["no-such-process", "access-denied", "os-error"],
    )
    def test_task_info_failure_discards_snapshot(self, process, fixed_constants, error):
        process.error = error
        sampler = DarwinSampler(process, fd_limit=fixed_fd_limit)

        assert sampler.data() is None

    def test_fd_limit_failure_discards_snapshot(self, process, fixed_constants):
        def failing_limit() -> int:
            raise SyscallFailure("getrlimit failed")

        assert DarwinSampler(process, fd_limit=failing_limit).data() is None

    @pytest.mark.skipif(sys.platform == "win32", reason="psutil has no num_fds on Windows")
    def test_live_process(self):
        """psutil provides every reading for the test process on this host."""
        snapshot = DarwinSampler().data()

        assert snapshot is not None
        assert snapshot.virtual_memory_bytes > 0
        assert snapshot.resident_memory_bytes > 0
        assert snapshot.start_time_seconds > 0
        assert snapshot.open_file_descriptors > 0


class TestSelectSampler:
    """Tests for select_sampler."""

    @pytest.mark.parametrize("platform", ["linux", "linux2"])
    def test_linux(self, platform):
        assert isinstance(select_sampler(platform), LinuxSampler)

    def test_darwin(self):
        assert isinstance(select_sampler("darwin"), DarwinSampler)

    @pytest.mark.parametrize("platform", ["win32", "cygwin", "emscripten"])
    def test_unsupported_platforms(self, platform):
        sampler = select_sampler(platform)

        assert isinstance(sampler, UnsupportedSampler)
        assert sampler.data() is None

    def test_defaults_to_host_platform(self):
        sampler = select_sampler()

        if sys.platform.startswith("linux"):
            assert isinstance(sampler, LinuxSampler)
        elif sys.platform == "darwin":
            assert isinstance(sampler, DarwinSampler)
        else:
            assert isinstance(sampler, UnsupportedSampler)
