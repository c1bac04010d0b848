"""Watchdog loop: poll matching processes and kill the ones over budget."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NoReturn

from cpuguard.config import WatchdogConfig
from cpuguard.errors import ProcessNotFound
from cpuguard.models import CpuTimes, ProcessRecord
from cpuguard.provider import ProcessProvider

log = logging.getLogger(__name__)


def should_terminate(sample: CpuTimes, threshold_ns: int) -> bool:
    """Return True when the sample's user + system time is strictly above the threshold."""
    return sample.total_ns > threshold_ns


@dataclass(slots=True)
class CycleReport:
    """What a single watchdog cycle saw and did."""

    observed: list[tuple[ProcessRecord, CpuTimes]] = field(default_factory=list)
    terminated: list[ProcessRecord] = field(default_factory=list)
    skipped: list[ProcessRecord] = field(default_factory=list)


class Watchdog:
    """
    Fixed-interval loop that enforces a CPU time budget on one executable.

    A cycle lists the matching processes, reads each one's cumulative CPU
    time in enumeration order, and kills those over the threshold. Provider
    errors are not caught here: they end the cycle and the loop, and whatever
    was already terminated earlier in the cycle stays terminated.
    """

    def __init__(
        self,
        provider: ProcessProvider,
        config: WatchdogConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the Watchdog.

        Args:
            provider: Process provider used for every OS interaction.
            config: Target name, threshold and poll interval.
            sleep: Called with the poll interval between cycles.
        """
        self._provider = provider
        self._config = config
        self._sleep = sleep

    @property
    def config(self) -> WatchdogConfig:
        return self._config

    def run(self) -> NoReturn:
        """Run cycles forever. Only an exception from a cycle ends the loop."""
        log.debug(
            "Watching %r: threshold %.3fs, interval %.1fs",
            self._config.target_name,
            self._config.threshold_seconds,
            self._config.poll_interval_seconds,
        )
        while True:
            self.run_cycle()
            self._sleep(self._config.poll_interval_seconds)

    def run_cycle(self) -> CycleReport:
        """Run one enumerate / query / decide / terminate pass."""
        report = CycleReport()
        matches = self._provider.filter_by_executable_name(self._config.target_name)

        for record in matches:
            try:
                sample = self._provider.query_cpu_time(record)
            except ProcessNotFound:
                if not self._config.skip_vanished:
                    raise
                log.debug("%s exited before it could be sampled", record)
                report.skipped.append(record)
                continue

            report.observed.append((record, sample))
            log.info("%s %s", record, sample)

            if not should_terminate(sample, self._config.threshold_ns):
                continue

            if self._config.dry_run:
                log.info("Would kill process %s (dry run)", record)
                continue

            log.info("Killing process %s", record)
            try:
                self._provider.terminate(record)
            except ProcessNotFound:
                if not self._config.skip_vanished:
                    raise
                log.debug("%s exited before it could be killed", record)
                report.skipped.append(record)
                continue
            report.terminated.append(record)

        return report
