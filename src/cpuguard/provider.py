"""Process providers: enumerate, query and terminate OS processes."""

import sys
from abc import ABC, abstractmethod

import psutil

from cpuguard.errors import (
    AccessDenied,
    EnumerationError,
    ProcessNotFound,
    QueryError,
    TerminationError,
)
from cpuguard.models import CpuTimes, ProcessRecord


class ProcessProvider(ABC):
    """
    Platform-agnostic access to the process table.

    Implementations keep no state between calls: any OS resource (snapshot,
    process handle) is acquired and released inside the call that needs it.
    """

    @abstractmethod
    def enumerate_all(self) -> list[ProcessRecord]:
        """
        Return one record per live process.

        This is a point-in-time snapshot. Processes that start or exit while
        the table is walked may be missing (or, on some platforms, repeated).
        """

    def find_by_id(self, pid: int) -> ProcessRecord | None:
        """Look up a single process by pid, returning None if it is absent."""
        for record in self.enumerate_all():
            if record.pid == pid:
                return record
        return None

    def filter_by_executable_name(self, name: str) -> list[ProcessRecord]:
        """Return the processes whose executable equals ``name`` exactly."""
        return [record for record in self.enumerate_all() if record.executable == name]

    @abstractmethod
    def query_cpu_time(self, record: ProcessRecord) -> CpuTimes:
        """Return cumulative user and system CPU time for ``record``."""

    @abstractmethod
    def terminate(self, record: ProcessRecord) -> None:
        """Kill ``record`` immediately without waiting for it to exit."""


class PsutilProvider(ProcessProvider):
    """Portable provider backed by psutil."""

    def enumerate_all(self) -> list[ProcessRecord]:
        records: list[ProcessRecord] = []
        try:
            # process_iter() skips processes that die mid-iteration and fills
            # inaccessible attributes with None.
            for proc in psutil.process_iter(attrs=["pid", "ppid", "name"]):
                info = proc.info
                records.append(
                    ProcessRecord(
                        pid=info["pid"],
                        ppid=info.get("ppid") or 0,
                        executable=info.get("name") or "",
                    )
                )
        except (psutil.Error, OSError) as exc:
            raise EnumerationError(f"cannot list processes: {exc}") from exc
        return records

    def query_cpu_time(self, record: ProcessRecord) -> CpuTimes:
        pid = record.pid
        try:
            times = psutil.Process(pid).cpu_times()
        except psutil.NoSuchProcess as exc:
            raise ProcessNotFound(f"process {pid} not found", pid=pid) from exc
        except psutil.AccessDenied as exc:
            raise AccessDenied(f"access denied reading CPU times of {pid}", pid=pid) from exc
        except (psutil.Error, OSError) as exc:
            raise QueryError(f"cannot read CPU times of {pid}: {exc}", pid=pid) from exc
        return CpuTimes.from_seconds(times.user, times.system)

    def terminate(self, record: ProcessRecord) -> None:
        pid = record.pid
        try:
            psutil.Process(pid).kill()
        except psutil.NoSuchProcess as exc:
            raise ProcessNotFound(f"process {pid} not found", pid=pid) from exc
        except psutil.AccessDenied as exc:
            raise AccessDenied(f"access denied terminating {pid}", pid=pid) from exc
        except (psutil.Error, OSError) as exc:
            raise TerminationError(f"cannot terminate {pid}: {exc}", pid=pid) from exc


def default_provider(kind: str = "auto") -> ProcessProvider:
    """
    Create the provider for this platform.

    Args:
        kind: "auto", "psutil" or "windows". "auto" picks the native
            Windows provider on win32 and psutil everywhere else.
    """
    if kind == "auto":
        kind = "windows" if sys.platform == "win32" else "psutil"

    if kind == "psutil":
        return PsutilProvider()
    if kind == "windows":
        from cpuguard.windows import WindowsProvider

        return WindowsProvider()
    raise ValueError(f"unknown provider: {kind!r}")
