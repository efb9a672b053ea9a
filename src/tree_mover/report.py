"""
CSV report generator for documenting migration runs.

This module is responsible for:
- Creating a CSV record of every dispatched item, failures included
- Streaming writes to keep memory low
- Recording run parameters for traceability
- Generating summary statistics
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, TextIO, Union

from .types import (
    MigrationSummary,
    MoveTask,
    ReportEntry,
    ReportStatus,
    TaskOutcome,
)

logger = logging.getLogger(__name__)

# CSV column headers in order
REPORT_COLUMNS = [
    "timestamp",
    "status",
    "source_path",
    "dest_path",
    "message",
]


class ReportWriter:
    """
    Streaming CSV report writer for migration outcomes.

    Writes entries incrementally so trees with hundreds of thousands of
    entries never have to be held twice in memory.
    """

    def __init__(
        self,
        report_path: Union[str, Path],
        include_header: bool = True
    ):
        """
        Initialize the report writer.

        Args:
            report_path: Path where the CSV report will be written
            include_header: Whether to write header row (default: True)
        """
        self.report_path = Path(report_path)
        self.include_header = include_header

        self._file: Optional[TextIO] = None
        self._writer = None
        self._row_count = 0
        self._stats: Dict[str, int] = {}

    def __enter__(self):
        """Context manager entry - opens the file."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - closes the file."""
        self.close()
        return False

    def open(self) -> None:
        """Open the report file for writing."""
        if self._file is not None:
            return  # Already open

        self.report_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Opening report file: {self.report_path}")
        self._file = open(self.report_path, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file, quoting=csv.QUOTE_MINIMAL)

        if self.include_header:
            self._writer.writerow(REPORT_COLUMNS)

    def close(self) -> None:
        """Close the report file."""
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None
            logger.info(
                f"Report closed: {self._row_count} rows written to {self.report_path}"
            )

    def _ensure_open(self) -> None:
        if self._file is None:
            self.open()

    def _get_timestamp(self) -> str:
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def write_parameters(self, params: Dict[str, str]) -> None:
        """
        Write run parameters as rows with status "PARAMETER".

        Empty values are left out. A separator row closes the block.

        Args:
            params: Dictionary of parameter names to values
        """
        self._ensure_open()
        timestamp = self._get_timestamp()

        for key, value in params.items():
            if value:
                self._writer.writerow([timestamp, "PARAMETER", "", "", f"{key}={value}"])
                self._row_count += 1

        self._writer.writerow([timestamp, "PARAMETER", "", "", "--- END PARAMETERS ---"])
        self._row_count += 1
        self._file.flush()

    def write_entry(self, entry: ReportEntry) -> None:
        """
        Write a single report entry to the CSV.

        Args:
            entry: The ReportEntry to write
        """
        self._ensure_open()

        self._writer.writerow([
            entry.timestamp,
            entry.status,
            entry.source_path,
            entry.dest_path,
            entry.message,
        ])
        self._row_count += 1
        self._stats[entry.status] = self._stats.get(entry.status, 0) + 1

        # Flush periodically for safety
        if self._row_count % 100 == 0:
            self._file.flush()

    def write_outcome(
        self,
        outcome: TaskOutcome,
        timestamp: Optional[str] = None
    ) -> None:
        """
        Write a dispatched TaskOutcome to the report.

        Args:
            outcome: The outcome to record
            timestamp: Optional timestamp (defaults to current time)
        """
        self.write_entry(ReportEntry(
            timestamp=timestamp or self._get_timestamp(),
            status=ReportStatus.from_outcome_status(outcome.status).value,
            source_path=outcome.task.source_path,
            dest_path=outcome.task.dest_path,
            message=outcome.message,
        ))

    def write_dry_run(
        self,
        task: MoveTask,
        timestamp: Optional[str] = None
    ) -> None:
        """Write a FOUND_DRYRUN entry for a task that would be moved."""
        self.write_entry(ReportEntry(
            timestamp=timestamp or self._get_timestamp(),
            status=ReportStatus.FOUND_DRYRUN.value,
            source_path=task.source_path,
            dest_path=task.dest_path,
            message=f"Would move to {task.dest_path}",
        ))

    def write_skipped_count(
        self,
        count: int,
        timestamp: Optional[str] = None
    ) -> None:
        """
        Record items skipped before dispatch as one summary row.

        These are not listed individually; on a re-run they can be the
        bulk of the tree.
        """
        if not count:
            return
        self.write_entry(ReportEntry(
            timestamp=timestamp or self._get_timestamp(),
            status=ReportStatus.SKIPPED_EXISTS.value,
            source_path="",
            dest_path="",
            message=f"{count} item(s) already at destination before the run",
        ))

    def get_stats(self) -> Dict[str, int]:
        """Get a mapping of status to number of rows written."""
        return dict(self._stats)

    def get_row_count(self) -> int:
        """Get total number of rows written."""
        return self._row_count

    def get_summary(self) -> str:
        """
        Get a human-readable summary of the report.

        Returns:
            Formatted summary string
        """
        lines = [f"Report Summary ({self._row_count} total entries):"]

        if self._stats.get("MOVED", 0):
            lines.append(f"  Moved: {self._stats['MOVED']}")
        if self._stats.get("FOUND_DRYRUN", 0):
            lines.append(f"  Would move (dry run): {self._stats['FOUND_DRYRUN']}")
        if self._stats.get("SKIPPED_EXISTS", 0):
            lines.append(f"  Skipped rows: {self._stats['SKIPPED_EXISTS']}")
        if self._stats.get("ERROR", 0):
            lines.append(f"  Errors: {self._stats['ERROR']}")

        return "\n".join(lines)


def generate_report(
    summary: MigrationSummary,
    report_path: Union[str, Path],
    params: Optional[Dict[str, str]] = None
) -> ReportWriter:
    """
    Write a complete report for a finished run.

    Args:
        summary: The MigrationSummary of the run
        report_path: Path for the CSV report
        params: Optional run parameters written at the top

    Returns:
        The ReportWriter used (for accessing stats)
    """
    with ReportWriter(report_path) as writer:
        if params:
            writer.write_parameters(params)

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        writer.write_skipped_count(summary.already_present, timestamp)

        for outcome in summary.outcomes:
            writer.write_outcome(outcome, timestamp)

        logger.info(writer.get_summary())
        return writer
