"""
Importer Exceptions

Errors raised by the table-copy engine. Unsupported column types and
empty tables are handled where they occur and never surface here.
"""

from typing import Any, Dict, Optional


class ImporterError(Exception):
    """Base class for all importer errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'error': self.__class__.__name__,
            'message': self.message,
        }
        if self.details:
            result['details'] = self.details
        return result


class ConnectionFailedError(ImporterError):
    """Source or target database could not be reached or rejected the login."""

    def __init__(self, side: str, cause: Exception):
        super().__init__(
            f"Couldn't connect to {side} DB",
            details=str(cause).strip(),
        )
        self.side = side
        self.cause = cause


class QueryExecutionError(ImporterError):
    """A statement failed on the source or target database."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(
            f"Couldn't execute {operation}",
            details=str(cause).strip(),
        )
        self.operation = operation
        self.cause = cause


class WorkerFailedError(ImporterError):
    """
    A partition worker failed during a parallel import.

    Raised after every sibling worker has stopped. The target table keeps
    whatever rows were committed before the failure.
    """

    def __init__(
        self,
        table: str,
        worker_id: int,
        offset: int,
        limit: int,
        rows_moved: int,
        cause: Exception,
    ):
        super().__init__(
            f"Worker {worker_id} failed importing {table} "
            f"(rows {offset:,} to {offset + limit:,}, {rows_moved:,} rows moved by all workers)",
            details=str(cause).strip(),
        )
        self.table = table
        self.worker_id = worker_id
        self.offset = offset
        self.limit = limit
        self.rows_moved = rows_moved
        self.cause = cause


class BatchFileError(ImporterError):
    """A batch job file is missing or malformed."""
