"""Tests for importer exceptions."""

import psycopg2
from pg_data_importer.exceptions import (
    BatchFileError,
    ConnectionFailedError,
    ImporterError,
    QueryExecutionError,
    WorkerFailedError,
)


class TestImporterError:
    """Test cases for the ImporterError base class."""

    def test_basic(self):
        error = ImporterError("Test error message")
        assert error.message == "Test error message"
        assert error.details is None
        assert str(error) == "Test error message"

    def test_to_dict_without_details(self):
        assert ImporterError("Test error message").to_dict() == {
            'error': 'ImporterError',
            'message': 'Test error message',
        }

    def test_to_dict_with_details(self):
        assert BatchFileError("Bad batch", "line 3").to_dict() == {
            'error': 'BatchFileError',
            'message': 'Bad batch',
            'details': 'line 3',
        }


class TestSpecificErrors:
    """Messages name the side, operation or worker that failed."""

    def test_connection_failed(self):
        error = ConnectionFailedError('target', psycopg2.OperationalError("password authentication failed\n"))
        assert error.message == "Couldn't connect to target DB"
        assert error.details == "password authentication failed"
        assert error.side == 'target'
        assert isinstance(error, ImporterError)

    def test_query_execution(self):
        error = QueryExecutionError('truncate of sales.orders', psycopg2.ProgrammingError("permission denied"))
        assert error.message == "Couldn't execute truncate of sales.orders"
        assert error.details == "permission denied"

    def test_worker_failed(self):
        cause = RuntimeError("boom")
        error = WorkerFailedError('sales.orders', 3, 7500, 2500, 9000, cause)
        assert error.message == (
            "Worker 3 failed importing sales.orders (rows 7,500 to 10,000, 9,000 rows moved by all workers)"
        )
        assert error.cause is cause
