from enum import Enum


class DatabaseError(Exception):
    """Base class for hot-store related errors."""


class DatabaseConnectionError(DatabaseError):
    """Raised when a database connection cannot be established."""


class QueryError(DatabaseError):
    """Raised when a query execution fails."""


class CircuitBreakerOpenError(DatabaseError):
    """Raised when the circuit breaker is open and operations are blocked."""


class ArchiveError(Exception):
    """Base class for archival errors."""


class ArchiveWriteError(ArchiveError):
    """Raised when an archive file could not be durably written."""


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    DATABASE = "database"
    ARCHIVE_WRITE = "archive_write"
    UNKNOWN = "unknown"


def categorize_exception(exc: Exception) -> ErrorCategory:
    if isinstance(exc, DatabaseError):
        return ErrorCategory.DATABASE
    if isinstance(exc, ArchiveWriteError):
        return ErrorCategory.ARCHIVE_WRITE
    if isinstance(exc, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN
