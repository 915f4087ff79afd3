"""
Custom exception hierarchy for tidydesk.

Every error carries the offending path (and, where useful, the operation)
so callers can render a specific message.
"""
from typing import List, Optional


class TidyDeskError(Exception):
    """Base exception for all tidydesk errors."""

    def __init__(self, message: str, path: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None
        self.operation = operation


class EntryNotFoundError(TidyDeskError):
    """Raised when a path or stored record does not exist."""
    pass


class AlreadyExistsError(TidyDeskError):
    """Raised when a destination is taken and no strategy resolves it."""
    pass


class NotADirError(TidyDeskError):
    """Raised when a directory was expected."""
    pass


class NotAFileError(TidyDeskError):
    """Raised when a regular file was expected."""
    pass


class FileOperationError(TidyDeskError):
    """Raised when a copy/move/rename/delete fails on disk."""
    pass


class FileHashError(FileOperationError):
    """Raised when a file cannot be fingerprinted."""
    pass


class InvalidPatternError(TidyDeskError):
    """Raised when a regular expression supplied by the user does not compile."""
    pass


class UnsupportedActionError(TidyDeskError):
    """Raised for rule actions the executor does not know."""
    pass


class AlreadyUndoneError(TidyDeskError):
    """Raised when undo is requested twice for the same history entry."""
    pass


class CannotUndoError(TidyDeskError):
    """Raised when a history entry cannot be reversed (e.g. permanent delete)."""
    pass


class TreeBuildError(TidyDeskError):
    """Raised when a folder tree cannot be built."""
    pass


class DatabaseError(TidyDeskError):
    """Raised when database operations fail."""
    pass


class PartialFailureError(TidyDeskError):
    """Raised when a batch completed some items and failed others."""

    def __init__(self, message: str, errors: List[str], succeeded: int = 0,
                 path: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message, path=path, operation=operation)
        self.errors = list(errors)
        self.succeeded = succeeded
