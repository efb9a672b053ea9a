"""
Progress reporting interface used by the migration engine.

The engine only ever calls these hooks; rendering is up to the host
program. The dispatcher serializes calls to advance() with its own lock.
"""

import sys
import time
from typing import Optional, TextIO


class ProgressReporter:
    """
    Receives progress signals from a migration run.

    Subclasses override whichever hooks they need. The base class does
    nothing, so the engine behaves identically without a reporter.
    """

    def start(self, total: int) -> None:
        """Called once before dispatch with the number of items to process."""
        pass

    def advance(self, count: int = 1) -> None:
        """Called after each item reaches a non-error outcome."""
        pass

    def warning(self, message: str) -> None:
        """Called for non-fatal problems (e.g. a source file left behind)."""
        pass

    def finish(self, message: str) -> None:
        """Called once at the end of the run with a short status message."""
        pass


class NullProgress(ProgressReporter):
    """Reporter that discards every signal."""
    pass


class ConsoleProgress(ProgressReporter):
    """
    Reporter that prints a progress line to a text stream.

    On a terminal the line is redrawn in place; otherwise a line is
    written every `every` items so logs stay readable.
    """

    def __init__(self, stream: Optional[TextIO] = None, every: int = 100):
        self.stream = stream if stream is not None else sys.stdout
        self.every = every
        self.total = 0
        self.done = 0
        self._start_time = 0.0
        self._interactive = hasattr(self.stream, "isatty") and self.stream.isatty()

    def start(self, total: int) -> None:
        self.total = total
        self.done = 0
        self._start_time = time.monotonic()
        self._draw()

    def advance(self, count: int = 1) -> None:
        self.done += count
        if self._interactive or self.done % self.every == 0 or self.done == self.total:
            self._draw()

    def warning(self, message: str) -> None:
        if self._interactive:
            self.stream.write("\n")
        self.stream.write(f"  Warning: {message}\n")
        self.stream.flush()

    def finish(self, message: str) -> None:
        if self._interactive and self.total:
            self.stream.write("\n")
        self.stream.write(f"  {message}\n")
        self.stream.flush()

    def _draw(self) -> None:
        elapsed = time.monotonic() - self._start_time
        percent = (self.done * 100 // self.total) if self.total else 100
        line = f"  [{elapsed:7.1f}s] {self.done}/{self.total} ({percent}%)"
        if self._interactive:
            self.stream.write("\r" + line)
        else:
            self.stream.write(line + "\n")
        self.stream.flush()
