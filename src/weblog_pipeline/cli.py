"""
Command line interface.

Usage:
    weblog-pipeline serve [--config config.yaml] [--verbose]
    weblog-pipeline scan  [--config config.yaml] [--verbose]

`scan` runs one ingestion pass and prints the per-site outcomes. It
shares the scan state file with `serve`, so do not run it while the
service is running against the same data directory.
"""

import argparse
import dataclasses
import logging
import sys
from typing import Optional, Sequence

from .config import ConfigurationError, get_settings
from .ingestion import summarize
from .monitoring import setup_logging
from .service import WeblogService
from .storage import StorageError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="weblog-pipeline",
        description="Incremental web access-log analytics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the service (startup scan, HTTP API, periodic scans)
  weblog-pipeline serve --config config.yaml

  # Run a single ingestion pass
  weblog-pipeline scan --config config.yaml --verbose
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to YAML config file (default: $WEBLOG_CONFIG or ./config.yaml)",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser(
        "serve", parents=[common], help="Run the analytics service"
    )
    subparsers.add_parser(
        "scan", parents=[common], help="Run one ingestion pass and exit"
    )
    return parser


def print_outcomes(outcomes) -> None:
    """Print a per-site table of scan outcomes."""
    summary = summarize(outcomes)

    print()
    print("Log Scan Results")
    print("=" * 50)
    for outcome in outcomes:
        status = "ok" if outcome.success else "FAILED"
        print(
            f"  {outcome.site_name} ({outcome.site_id}): {status}, "
            f"{outcome.total_entries:,} records, {outcome.duration_seconds:.2f}s"
        )
        if outcome.error:
            print(f"      {outcome.error}")
    print("-" * 50)
    print(
        f"  {summary.succeeded}/{summary.total} sites succeeded, "
        f"{summary.entries:,} records"
    )
    print()


def run_scan(service: WeblogService) -> int:
    service.initialize()
    try:
        outcomes = service.scan_once()
    finally:
        service.backend.close()
    print_outcomes(outcomes)
    return 0 if all(o.success for o in outcomes) else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = get_settings(args.config)
    except ConfigurationError as e:
        setup_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        return 2

    if args.verbose:
        settings = dataclasses.replace(settings, log_level="DEBUG")

    try:
        service = WeblogService(settings)
        if args.command == "scan":
            return run_scan(service)
        service.run()
    except StorageError as e:
        logger.error(f"Storage backend unavailable: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
