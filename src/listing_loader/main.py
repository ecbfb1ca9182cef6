"""Main entry point for the listing loader."""

import argparse
import asyncio
import logging
import sys
from typing import Any, Final

import pydantic

from listing_loader.config import Settings
from listing_loader.job import run_job
from listing_loader.logging import configure_logging, get_logger

logger = get_logger(__name__)

EXIT_DONE: Final = 0
EXIT_FAILED: Final = 1
EXIT_CONFIG_ERROR: Final = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Listing Loader - load scraped real-estate listings into SQLite"
    )
    parser.add_argument(
        "input_file",
        nargs="?",
        default=None,
        help="JSON array of listing records (default: LISTING_LOADER_INPUT_FILE)",
    )
    parser.add_argument("--skip-file", help="Where skipped records are written")
    parser.add_argument("--database", dest="database_path", help="SQLite database path")
    parser.add_argument(
        "--commit-interval",
        type=int,
        default=None,
        help="Listings written per transaction",
    )
    parser.add_argument(
        "--skip-limit",
        type=int,
        default=None,
        help="Maximum skipped records before the job fails",
    )
    parser.add_argument(
        "--restart",
        action="store_true",
        help="Resume from the last unfinished run over the same input file",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=None,
        help="Emit JSON log lines instead of console output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting",
    )
    return parser


def settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """CLI values that were given explicitly; these win over the environment."""
    candidates = {
        "input_file": args.input_file,
        "skip_file": args.skip_file,
        "database_path": args.database_path,
        "commit_interval": args.commit_interval,
        "skip_limit": args.skip_limit,
        "json_logs": args.json_logs,
    }
    return {key: value for key, value in candidates.items() if value is not None}


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings(**settings_overrides(args))
    except pydantic.ValidationError as e:
        configure_logging(level=logging.DEBUG if args.debug else logging.INFO)
        logger.error("failed_to_load_settings", error=str(e))
        print(f"Error: Invalid settings. {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    configure_logging(
        json_output=settings.json_logs,
        level=logging.DEBUG if args.debug else logging.INFO,
    )
    logger.info(
        "starting_listing_loader",
        input_file=settings.input_file,
        database=settings.database_path,
        commit_interval=settings.commit_interval,
        skip_limit=settings.skip_limit,
        restart=args.restart,
    )

    try:
        settings.require_input_file()
    except ValueError as e:
        logger.error("invalid_job_configuration", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        outcome = asyncio.run(run_job(settings, restart=args.restart))
    except (FileNotFoundError, PermissionError) as e:
        logger.error("invalid_job_configuration", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    summary = (
        f"status={outcome.status.value} read={outcome.read_count} "
        f"filtered={outcome.filtered_count} written={outcome.written_count} "
        f"skipped={outcome.skip_count} position={outcome.position}"
    )
    if not outcome.succeeded:
        assert outcome.failure_kind is not None
        print(
            f"Job failed ({outcome.failure_kind.value}): {outcome.error_message}\n{summary}",
            file=sys.stderr,
        )
        return EXIT_FAILED
    print(summary)
    return EXIT_DONE


if __name__ == "__main__":
    sys.exit(main())
