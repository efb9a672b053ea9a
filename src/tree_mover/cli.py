"""
Command-line interface for the tree mover application.

This module is responsible for:
- Parsing command-line arguments using argparse
- Configuring logging based on verbosity level
- Running the migration engine (or a dry run)
- Displaying progress, results and timing to the user
- Translating the outcome into a process exit code
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__, PRODUCT_NAME, PRODUCT_DESCRIPTION
from .dispatcher import DEFAULT_WORKERS
from .errors import MigrationError
from .migrator import TreeMigrator
from .progress import ConsoleProgress
from .report import ReportWriter, generate_report
from .scanner import enumerate_tasks, filter_pending
from .types import MigrationSummary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_ITEM_FAILURES = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tree-mover",
        description=f"""
{PRODUCT_NAME} - {PRODUCT_DESCRIPTION}

Move everything under SOURCE into DEST, keeping the relative layout.

Items that already exist at the destination are skipped and never
overwritten, so an interrupted run can simply be started again.
The emptied SOURCE folder is removed after a fully successful run.
        """.strip(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic usage
  %(prog)s D:\\dev\\code E:\\dev

  # Preview with dry-run
  %(prog)s D:\\dev\\code E:\\dev --dry-run

  # More workers when both sides are fast disks
  %(prog)s /mnt/ssd/data /mnt/nvme/data --workers 8

  # Generate report
  %(prog)s D:\\dev\\code E:\\dev --report moves.csv -y

Notes:
  - Existing destination entries are skipped (no overwrite, no diffing)
  - Files are renamed when possible, otherwise copied then deleted
  - The default of 3 workers suits a fast source and a slower destination
        """
    )

    parser.add_argument(
        "source_root",
        type=Path,
        help="Directory whose contents will be moved"
    )
    parser.add_argument(
        "dest_root",
        type=Path,
        help="Directory receiving the contents (created if missing)"
    )

    parser.add_argument(
        "-w", "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        metavar="N",
        help=f"Number of parallel workers (default: {DEFAULT_WORKERS})"
    )
    parser.add_argument(
        "-n", "--dry-run", "--whatif",
        action="store_true",
        dest="dry_run",
        help="Preview operations without moving anything"
    )
    parser.add_argument(
        "-r", "--report",
        type=Path,
        default=None,
        metavar="CSV_FILE",
        help="Write a CSV report of every processed item"
    )
    parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Skip confirmation prompt (use with caution)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v for INFO, -vv for DEBUG)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=__version__
    )

    return parser


def setup_logging(verbosity: int) -> None:
    """Configure logging based on verbosity level."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def validate_args(args: argparse.Namespace) -> bool:
    """Validate paths and options before any work starts."""
    errors = []

    if not args.source_root.exists():
        errors.append(f"Source root not found: {args.source_root}")
    elif not args.source_root.is_dir():
        errors.append(f"Source root is not a directory: {args.source_root}")

    if args.dest_root.exists() and not args.dest_root.is_dir():
        errors.append(f"Destination root is not a directory: {args.dest_root}")

    if args.workers < 1:
        errors.append(f"Workers must be at least 1, got {args.workers}")

    for error in errors:
        logger.error(error)
        print(f"Error: {error}", file=sys.stderr)

    return len(errors) == 0


def get_run_parameters(args: argparse.Namespace) -> Dict[str, str]:
    """
    Get run parameters as a dictionary for traceability.

    Args:
        args: Parsed command-line arguments

    Returns:
        Dictionary of parameter names to values
    """
    return {
        "version": __version__,
        "timestamp": datetime.now().isoformat(),
        "source_root": str(args.source_root.resolve()),
        "dest_root": str(args.dest_root.resolve()),
        "workers": str(args.workers),
        "dry_run": str(args.dry_run),
        "report": str(args.report.resolve()) if args.report else "",
    }


def format_error_chain(error: BaseException) -> str:
    """Render an exception and its causes as 'outer: inner: ...'."""
    parts: List[str] = []
    seen = set()
    current: Optional[BaseException] = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current)
        if text:
            parts.append(text)
        current = current.__cause__
    return "\n  caused by: ".join(parts) or type(error).__name__


def confirm_operation(source_root: Path, dest_root: Path) -> bool:
    """
    Prompt user to confirm the move.

    Returns:
        True if user confirms, False otherwise
    """
    print(f"\n{'!'*60}")
    print("CONFIRMATION REQUIRED")
    print(f"{'!'*60}")
    print(f"\nYou are about to MOVE everything under:")
    print(f"  {source_root}")
    print(f"into:")
    print(f"  {dest_root}")
    print("\nUse --dry-run to preview changes first.")
    print(f"{'!'*60}\n")

    try:
        response = input("Type 'yes' to proceed, or anything else to cancel: ")
        return response.strip().lower() == "yes"
    except EOFError:
        # Non-interactive environment
        return False


def print_banner(args: argparse.Namespace) -> None:
    """Print startup banner with configuration."""
    print(f"\n{'='*60}")
    print(f"{PRODUCT_NAME}")
    print(f"Version {__version__}")
    print(f"{PRODUCT_DESCRIPTION}")
    print(f"{'='*60}")
    print(f"Source root:  {args.source_root}")
    print(f"Dest root:    {args.dest_root}")
    print(f"Workers:      {args.workers}")

    if args.dry_run:
        print(f"Mode:         DRY RUN (no changes will be made)")
    else:
        print(f"Mode:         LIVE (items will be moved)")

    if args.report:
        print(f"Report:       {args.report}")

    print(f"{'='*60}\n")


def print_summary(summary: MigrationSummary) -> None:
    """Print final summary of operations."""
    print(f"\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    print(f"  Items found:           {summary.total}")
    print(f"  Moved:                 {summary.processed}")
    print(f"  Skipped (exists):      {summary.skipped}")
    if summary.failed:
        print(f"  Errors:                {summary.failed}")
    if summary.cleanup_warnings:
        print(f"  Cleanup warnings:      {len(summary.cleanup_warnings)}")
    print(f"  Elapsed:               {summary.elapsed:.2f}s")
    print(f"{'='*60}\n")


def run_dry_run(args: argparse.Namespace, run_params: Dict[str, str]) -> int:
    """List what a live run would move, without touching the filesystem."""
    tasks = enumerate_tasks(args.source_root, args.dest_root)
    to_process, skipped = filter_pending(tasks)

    print(f"  Found {len(tasks)} items")
    print(f"  Would move: {len(to_process)} items ({skipped} already at destination)")

    if args.report:
        with ReportWriter(args.report) as writer:
            writer.write_parameters(run_params)
            writer.write_skipped_count(skipped)
            for task in to_process:
                writer.write_dry_run(task)
        print(f"\nReport saved to: {args.report}")

    return EXIT_OK


def main(argv: list = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    logger.info(f"{PRODUCT_NAME} v{__version__}")
    logger.debug(f"Arguments: {args}")

    if not validate_args(args):
        return EXIT_FATAL

    run_params = get_run_parameters(args)
    logger.info("Run parameters:")
    for key, value in run_params.items():
        if value:
            logger.info(f"  {key}: {value}")

    print_banner(args)

    try:
        if args.dry_run:
            return run_dry_run(args, run_params)

        if not args.yes:
            if not confirm_operation(args.source_root, args.dest_root):
                print("\nOperation cancelled by user.")
                logger.info("Operation cancelled by user at confirmation prompt")
                return EXIT_OK
        else:
            logger.info("Confirmation skipped (--yes flag)")

        start = time.monotonic()
        print(f"Starting move from {args.source_root} to {args.dest_root}")

        migrator = TreeMigrator(
            source_root=args.source_root,
            dest_root=args.dest_root,
            workers=args.workers,
            progress=ConsoleProgress()
        )
        summary = migrator.run()

        if args.report:
            generate_report(summary, args.report, run_params)
            print(f"Report saved to: {args.report}")

        print_summary(summary)

        if not summary.ok:
            try:
                summary.raise_for_failure()
            except MigrationError as e:
                print(f"Move failed: {format_error_chain(e)}", file=sys.stderr)
            return EXIT_ITEM_FAILURES

        print(f"Success! Total time: {time.monotonic() - start:.2f}s")
        return EXIT_OK

    except MigrationError as e:
        print(f"\nError: {format_error_chain(e)}", file=sys.stderr)
        logger.error(f"Migration error: {e}")
        return EXIT_FATAL

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.", file=sys.stderr)
        return EXIT_INTERRUPTED

    except Exception as e:
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        logger.exception("Unexpected error")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
