"""
Type definitions and data classes for the tree mover application.

This module defines:
- MoveTask: One source entry paired with its destination path
- EntryKind: Enum for the filesystem type of a source entry
- OutcomeStatus: Enum for per-task outcomes
- TaskOutcome: Data class for the result of one task
- MigrationSummary: Aggregate counts for a whole run
- ReportStatus: Enum for CSV report status values
- ReportEntry: Data class for CSV report rows
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .errors import CleanupWarning, MigrationError, MigrationFailedError


@dataclass(frozen=True, slots=True)
class MoveTask:
    """
    A single unit of work: move one source entry to its destination.

    Attributes:
        source_path: Full path of the entry under the source root
        dest_path: Full path the entry should occupy under the destination root
    """
    source_path: str
    dest_path: str


class EntryKind(Enum):
    """Filesystem type of a source entry (classified without following links)."""
    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"      # fifo, socket, device
    MISSING = "missing"  # vanished since enumeration


class OutcomeStatus(Enum):
    """Status of a single move task."""
    SUCCESS = "success"                # Moved or created at destination
    SKIPPED_EXISTS = "skipped_exists"  # Destination already present
    ERROR = "error"                    # Failed due to error


@dataclass
class TaskOutcome:
    """Result of a dispatched move task."""
    task: MoveTask
    status: OutcomeStatus
    message: str = ""
    error: Optional[MigrationError] = None

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.ERROR


@dataclass
class MigrationSummary:
    """
    Aggregate result of a migration run.

    Attributes:
        total: Number of entries enumerated under the source root
        skipped: Entries left alone because the destination already existed
        processed: Entries moved or created during this run
        failed: Entries whose task ended in an error
        already_present: Part of skipped found at destination before dispatch
        first_failure: The first failed outcome in dispatch order, if any
        outcomes: Every dispatched outcome, in dispatch order
        elapsed: Wall-clock seconds for the run
        cleanup_warnings: Non-fatal problems met while removing the source
    """
    total: int = 0
    skipped: int = 0
    processed: int = 0
    failed: int = 0
    already_present: int = 0
    first_failure: Optional[TaskOutcome] = None
    outcomes: List[TaskOutcome] = field(default_factory=list)
    elapsed: float = 0.0
    cleanup_warnings: List[CleanupWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.first_failure is None

    @classmethod
    def from_outcomes(
        cls,
        total: int,
        filtered: int,
        outcomes: List[TaskOutcome]
    ) -> "MigrationSummary":
        """
        Build a summary from dispatcher outcomes.

        Note that first_failure is the first error found when scanning
        outcomes in dispatch order, which is not necessarily the failure
        that happened first in time.

        Args:
            total: Number of enumerated tasks
            filtered: Tasks dropped by the idempotency filter
            outcomes: Dispatcher outcomes in dispatch order
        """
        summary = cls(
            total=total,
            skipped=filtered,
            already_present=filtered,
            outcomes=list(outcomes)
        )
        for outcome in outcomes:
            if outcome.status == OutcomeStatus.SUCCESS:
                summary.processed += 1
            elif outcome.status == OutcomeStatus.SKIPPED_EXISTS:
                summary.skipped += 1
            else:
                summary.failed += 1
                if summary.first_failure is None:
                    summary.first_failure = outcome
        return summary

    def raise_for_failure(self) -> None:
        """Raise MigrationFailedError chained to the first failure, if any."""
        if self.first_failure is None:
            return
        raise MigrationFailedError(
            f"{self.failed} of {self.total} item(s) failed; first: "
            f"{self.first_failure.message}",
            summary=self
        ) from self.first_failure.error

    def describe(self) -> str:
        """One-line human-readable summary."""
        return (
            f"total={self.total} skipped={self.skipped} "
            f"processed={self.processed} failed={self.failed}"
        )


class ReportStatus(Enum):
    """Status values for CSV report (human-readable)."""
    MOVED = "MOVED"                    # Moved or created at destination
    SKIPPED_EXISTS = "SKIPPED_EXISTS"  # Already at destination
    ERROR = "ERROR"                    # Operation failed
    FOUND_DRYRUN = "FOUND_DRYRUN"      # Would move (dry run)

    @classmethod
    def from_outcome_status(cls, status: OutcomeStatus) -> "ReportStatus":
        """Convert OutcomeStatus to ReportStatus."""
        mapping = {
            OutcomeStatus.SUCCESS: cls.MOVED,
            OutcomeStatus.SKIPPED_EXISTS: cls.SKIPPED_EXISTS,
            OutcomeStatus.ERROR: cls.ERROR,
        }
        return mapping.get(status, cls.ERROR)


@dataclass
class ReportEntry:
    """Entry for the CSV report."""
    timestamp: str
    status: str
    source_path: str
    dest_path: str
    message: str
