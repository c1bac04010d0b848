"""Data models for cpuguard."""

from dataclasses import dataclass
from datetime import timedelta

# Width of one FILETIME tick in nanoseconds.
TICK_NS = 100


def filetime_to_ns(high: int, low: int) -> int:
    """
    Convert a FILETIME high/low pair into nanoseconds.

    Only valid as an elapsed duration (e.g. GetProcessTimes kernel/user
    values). Do not use it to turn a FILETIME into a clock time.
    """
    ticks = (high << 32) | low
    return ticks * TICK_NS


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable snapshot of one process's identity."""

    pid: int
    ppid: int  # May refer to a process that has already exited
    executable: str  # Base name, no path

    def __str__(self) -> str:
        return f"{self.executable} (pid={self.pid}, ppid={self.ppid})"


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """Cumulative CPU time of a process since it was created."""

    user_ns: int
    system_ns: int

    @classmethod
    def from_seconds(cls, user: float, system: float) -> "CpuTimes":
        """Build from float seconds, as reported by psutil."""
        return cls(user_ns=round(user * 1e9), system_ns=round(system * 1e9))

    @property
    def total_ns(self) -> int:
        return self.user_ns + self.system_ns

    @property
    def user(self) -> timedelta:
        return timedelta(microseconds=self.user_ns / 1000)

    @property
    def system(self) -> timedelta:
        return timedelta(microseconds=self.system_ns / 1000)

    def __str__(self) -> str:
        return f"user={self.user_ns / 1e6:.1f}ms system={self.system_ns / 1e6:.1f}ms"
