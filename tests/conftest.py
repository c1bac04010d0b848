"""Shared fixtures for cpuguard tests."""

import os

import pytest

from cpuguard.errors import EnumerationError
from cpuguard.models import CpuTimes, ProcessRecord
from cpuguard.provider import ProcessProvider, PsutilProvider


def ms(value: float) -> int:
    """Milliseconds to nanoseconds."""
    return round(value * 1_000_000)


class FakeProvider(ProcessProvider):
    """In-memory provider that records every query and kill."""

    def __init__(self, processes, samples=None, query_errors=None, terminate_errors=None):
        self.processes = list(processes)
        self.samples = samples or {}
        self.query_errors = query_errors or {}
        self.terminate_errors = terminate_errors or {}
        self.enumerate_error: Exception | None = None
        self.enumerations = 0
        self.queried: list[int] = []
        self.terminated: list[int] = []

    def enumerate_all(self) -> list[ProcessRecord]:
        self.enumerations += 1
        if self.enumerate_error is not None:
            raise self.enumerate_error
        return list(self.processes)

    def query_cpu_time(self, record: ProcessRecord) -> CpuTimes:
        self.queried.append(record.pid)
        if record.pid in self.query_errors:
            raise self.query_errors[record.pid]
        return self.samples.get(record.pid, CpuTimes(0, 0))

    def terminate(self, record: ProcessRecord) -> None:
        if record.pid in self.terminate_errors:
            raise self.terminate_errors[record.pid]
        self.terminated.append(record.pid)


@pytest.fixture
def leaker_table():
    """Two leaker.exe instances around unrelated processes."""
    return [
        ProcessRecord(pid=4, ppid=0, executable="System"),
        ProcessRecord(pid=101, ppid=4, executable="leaker.exe"),
        ProcessRecord(pid=150, ppid=4, executable="explorer.exe"),
        ProcessRecord(pid=202, ppid=150, executable="leaker.exe"),
    ]


@pytest.fixture
def leaker_provider(leaker_table):
    """Provider with samples of (300ms, 100ms) and (200ms, 250ms)."""
    return FakeProvider(
        leaker_table,
        samples={
            101: CpuTimes(user_ns=ms(300), system_ns=ms(100)),
            202: CpuTimes(user_ns=ms(200), system_ns=ms(250)),
        },
    )


@pytest.fixture
def failing_provider(leaker_table):
    provider = FakeProvider(leaker_table)
    provider.enumerate_error = EnumerationError("snapshot failed")
    return provider


class ChildrenProvider(PsutilProvider):
    """Live psutil provider restricted to children of the test process."""

    def enumerate_all(self) -> list[ProcessRecord]:
        me = os.getpid()
        return [r for r in super().enumerate_all() if r.ppid == me]
