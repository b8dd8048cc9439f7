"""
Exceptions raised by the sizing engine.
"""

from typing import Optional


class SizingError(Exception):
    """Base class for forecasting and allocation failures."""


class InsufficientHistoryError(SizingError):
    """Raised when a storage history has fewer than two samples."""

    def __init__(self, sample_count: int):
        super().__init__(
            f"Insufficient history: {sample_count} sample(s) found, at least 2 are required"
        )
        self.sample_count = sample_count


class EmptyFilteredSetError(SizingError):
    """Raised when a membership filter matches none of the usage records."""

    def __init__(self, identifier_field: str, filter_size: int, record_count: int):
        super().__init__(
            f"No usage records matched the membership filter ({filter_size} identifiers "
            f"compared on '{identifier_field}' against {record_count} records). "
            "The report identifiers are probably concealed: disable identifier masking "
            "in the admin center reports settings, or check identifier_field."
        )
        self.identifier_field = identifier_field
        self.filter_size = filter_size
        self.record_count = record_count


class LicenseSolverUnavailable(SizingError):
    """Raised by a license solver that cannot produce a pack mix."""


class MalformedRecordError(SizingError, ValueError):
    """Raised when a report row is missing or carries an unparseable field."""

    def __init__(self, source: str, row: int, column: str, reason: Optional[str] = None):
        message = f"{source}, row {row}: column '{column}'"
        message += f" {reason}" if reason else " is missing"
        super().__init__(message)
        self.source = source
        self.row = row
        self.column = column
