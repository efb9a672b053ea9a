"""
Concurrent dispatcher running the single-item mover over a task list.

This module is responsible for:
- Running move_item() on a fixed-size thread pool
- Capturing per-task errors as outcomes (a worker never dies on an error)
- Advancing the progress reporter under a lock
- Returning outcomes in dispatch order once every task has finished
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from .errors import MigrationError, TransferError
from .mover import move_item
from .progress import NullProgress, ProgressReporter
from .types import MoveTask, OutcomeStatus, TaskOutcome

# Suits a fast source (SSD) feeding a slower destination (HDD)
DEFAULT_WORKERS = 3

logger = logging.getLogger(__name__)


class MigrationDispatcher:
    """
    Runs move tasks in parallel with a bounded worker pool.

    Each instance owns its pool size, so several dispatchers (e.g. in
    tests) never interfere with one another.

    Failure policy: every dispatched task runs to completion, nothing is
    cancelled and nothing is rolled back. Callers that need one error
    should take the first ERROR outcome in the returned order, which is
    dispatch order rather than the order failures happened in.
    """

    def __init__(
        self,
        workers: int = DEFAULT_WORKERS,
        progress: Optional[ProgressReporter] = None
    ):
        """
        Initialize the dispatcher.

        Args:
            workers: Number of worker threads (must be >= 1)
            progress: Optional reporter for per-item progress and warnings
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        self.workers = workers
        self.progress = progress or NullProgress()
        self._lock = threading.Lock()

    def _warn(self, message: str) -> None:
        with self._lock:
            self.progress.warning(message)

    def _run_task(self, task: MoveTask) -> TaskOutcome:
        """Run one task, converting any failure into an ERROR outcome."""
        try:
            status = move_item(task, on_warning=self._warn)
        except (MigrationError, OSError) as e:
            message = f"Failed to move {task.source_path} -> {task.dest_path}: {e}"
            logger.error(message)
            error = e
            if not isinstance(e, MigrationError):
                error = TransferError(f"Unexpected filesystem error: {e}")
                error.__cause__ = e
            return TaskOutcome(
                task=task,
                status=OutcomeStatus.ERROR,
                message=message,
                error=error
            )

        with self._lock:
            self.progress.advance(1)

        if status == OutcomeStatus.SKIPPED_EXISTS:
            message = "Destination already exists"
        else:
            message = "Moved"
        return TaskOutcome(task=task, status=status, message=message)

    def run(self, tasks: List[MoveTask]) -> List[TaskOutcome]:
        """
        Move all tasks and wait for every one of them to finish.

        Args:
            tasks: Tasks to process (already filtered)

        Returns:
            One TaskOutcome per task, in the same order as tasks
        """
        logger.info(f"Dispatching {len(tasks)} tasks to {self.workers} workers")

        with ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="tree-mover"
        ) as pool:
            outcomes = list(pool.map(self._run_task, tasks))

        failed = sum(1 for outcome in outcomes if outcome.failed)
        logger.info(f"Dispatch complete: {len(outcomes) - failed} ok, {failed} failed")
        return outcomes
