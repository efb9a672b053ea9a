"""
Exception types raised by the migration engine.

Fatal errors derive from MigrationError. CleanupWarning is a warning
category only; the engine logs it and never raises it.
"""


class MigrationError(Exception):
    """Base class for all migration failures."""
    pass


class InvalidSourceError(MigrationError):
    """Raised when the source root is missing or is not a directory."""
    pass


class EnumerationError(MigrationError):
    """Raised when the source tree cannot be walked completely."""
    pass


class DirectoryCreateError(MigrationError):
    """Raised when a directory cannot be created for a reason other than existing."""
    pass


class TransferError(MigrationError):
    """Raised when a file cannot be moved or copied to its destination."""
    pass


class MigrationFailedError(MigrationError):
    """Raised when at least one task of a run failed."""

    def __init__(self, message: str, summary=None):
        super().__init__(message)
        self.summary = summary


class CleanupWarning(UserWarning):
    """The source root could not be removed after a successful run."""
    pass
