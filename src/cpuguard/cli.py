"""cpuguard - command line entry point."""

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version

from pydantic import ValidationError

from cpuguard.config import DEFAULT_TARGET_NAME, WatchdogConfig
from cpuguard.errors import ProcessError
from cpuguard.logging_ import setup_logging
from cpuguard.provider import default_provider
from cpuguard.watchdog import Watchdog

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

try:
    __version__ = version("cpuguard")
except PackageNotFoundError:
    __version__ = "unknown"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the cpuguard command."""
    parser = argparse.ArgumentParser(
        prog="cpuguard",
        description="Kill processes of one executable once their CPU time exceeds a threshold.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-n", "--name", default=DEFAULT_TARGET_NAME, help="executable base name to watch")
    parser.add_argument(
        "-t",
        "--threshold",
        type=float,
        default=0.5,
        help="cumulative user + system CPU seconds above which a process is killed",
    )
    parser.add_argument("-i", "--interval", type=float, default=10.0, help="seconds between polls")
    parser.add_argument(
        "--provider",
        choices=("auto", "psutil", "windows"),
        default="auto",
        help="process provider implementation",
    )
    parser.add_argument("--once", action="store_true", help="run a single poll and exit")
    parser.add_argument("--dry-run", action="store_true", help="announce kills without issuing them")
    parser.add_argument(
        "--skip-vanished",
        action="store_true",
        help="skip processes that exit mid-poll instead of stopping",
    )
    parser.add_argument("--log-file", help="also write logs to this file (rotated)")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the cpuguard command."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        config = WatchdogConfig(
            target_name=args.name,
            threshold_seconds=args.threshold,
            poll_interval_seconds=args.interval,
            dry_run=args.dry_run,
            skip_vanished=args.skip_vanished,
        )
        provider = default_provider(args.provider)
    except (ValidationError, ValueError, OSError) as exc:
        log.error("Invalid configuration: %s", exc)
        return EXIT_USAGE

    watchdog = Watchdog(provider, config)
    try:
        if args.once:
            watchdog.run_cycle()
            return EXIT_OK
        watchdog.run()
    except ProcessError as exc:
        log.error("%s: %s", type(exc).__name__, exc)
        return EXIT_FATAL
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
