"""Command-line entry point for resmon."""

import logging
import signal
import sys
from collections.abc import Sequence

from resmon.config import MonitorConfig, build_parser
from resmon.detector import Detector
from resmon.errors import ConfigError
from resmon.monitor import ScanLoop
from resmon.report import JsonReporter, TextReporter
from resmon.sources import BoundedSource, default_source

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: int) -> None:
    """Send log records to stderr so stdout carries only the report."""
    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_loop(config: MonitorConfig) -> ScanLoop:
    """Assemble source, detector and reporter for a console run."""
    source = default_source(config.source)
    if config.timeout > 0:
        source = BoundedSource(source, config.timeout)

    if config.output == "json":
        sinks = [JsonReporter()]
    else:
        reporter = TextReporter()
        reporter.banner(config.thresholds, source.name)
        sinks = [reporter]

    return ScanLoop(
        source,
        Detector(config.thresholds),
        interval=config.interval,
        iterations=config.iterations,
        sinks=sinks,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the resmon command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = MonitorConfig.from_args(args)
    except ConfigError as exc:
        parser.error(str(exc))

    configure_logging(config.level)

    if config.output == "tui":
        from resmon.app import ResmonApp

        ResmonApp(config).run()
        return 0

    loop = build_loop(config)

    def _handle_signal(signum, frame):
        logger.info("Received signal %d, stopping", signum)
        loop.stop()

    previous = {
        signum: signal.signal(signum, _handle_signal)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        scans = loop.run()
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
    logger.info("Monitoring complete after %d scans", scans)
    if config.output == "text":
        print("Monitoring complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
