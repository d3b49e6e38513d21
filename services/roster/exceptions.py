"""
Roster Import Exceptions

Errors raised while reading an uploaded client file. Both kinds abort the
import before anything is written; row-level persistence failures are not
exceptions at this level, they are collected in the reconcile summary.
"""


class RosterImportError(Exception):
    """Base exception for client file import errors."""
    pass


class StructuralImportError(RosterImportError):
    """
    Raised when the file itself is unusable.

    Covers a missing file, fewer than two non-empty lines, and header rows
    that do not name every required column.
    """
    pass


class RowValidationError(RosterImportError):
    """
    Raised for the first data row that fails validation.

    The message cites the 1-based line number and all messages collected
    for that row.
    """
    def __init__(self, line_number: int, messages: list):
        self.line_number = line_number
        self.messages = list(messages)
        super().__init__(f"Satır {line_number}: {', '.join(self.messages)}")
