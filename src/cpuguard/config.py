"""Watchdog configuration."""

from pydantic import BaseModel, Field

DEFAULT_TARGET_NAME = "notepad.exe"


class WatchdogConfig(BaseModel):
    target_name: str = Field(default=DEFAULT_TARGET_NAME, min_length=1)
    threshold_seconds: float = Field(default=0.5, ge=0, allow_inf_nan=False)  # Cumulative user + system
    poll_interval_seconds: float = Field(default=10.0, gt=0, allow_inf_nan=False)
    dry_run: bool = False
    # Treat a process that exits mid-cycle as gone rather than as a fatal error
    skip_vanished: bool = False

    @property
    def threshold_ns(self) -> int:
        return round(self.threshold_seconds * 1e9)
