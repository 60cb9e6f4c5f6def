"""
Single-Stream Fallback

Copies a whole table over one source/target connection pair when it can't be
split safely (no unique constraint, or a single worker). One unbounded COPY
TO STDOUT is read from the source; its output is re-batched into complete
lines and loaded into the target with COPY FROM STDIN every ``max_batch``
rows, committing after each batch.
"""

from typing import Callable, Optional
import logging

import psycopg2

from pg_data_importer.connections import open_connections
from pg_data_importer.exceptions import QueryExecutionError
from pg_data_importer.models import ImportJob, RowRange
from pg_data_importer.progress import ProgressSink, TransferProgress
from pg_data_importer.transfer import build_copy_out_query, copy_into_target

logger = logging.getLogger(__name__)


class BatchingWriter:
    """
    File-like sink for ``copy_expert`` that hands out complete lines in batches.

    COPY text format writes one line per row, so a batch of ``max_batch``
    lines is a batch of ``max_batch`` rows. Partial lines stay buffered
    until the rest of the row arrives.
    """

    def __init__(self, max_batch: int, flush_func: Callable[[bytes, int], None]):
        if max_batch < 1:
            raise ValueError(f"max_batch must be >= 1 (got {max_batch})")
        self.max_batch = max_batch
        self.flush_func = flush_func
        self._buffer = bytearray()
        self._buffered_rows = 0

    def _batch_end(self, rows: int) -> int:
        end = -1
        for _ in range(rows):
            end = self._buffer.index(b'\n', end + 1)
        return end + 1

    def write(self, data) -> int:
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._buffer.extend(data)
        self._buffered_rows += data.count(b'\n')

        while self._buffered_rows >= self.max_batch:
            end = self._batch_end(self.max_batch)
            batch = bytes(self._buffer[:end])
            del self._buffer[:end]
            self._buffered_rows -= self.max_batch
            self.flush_func(batch, self.max_batch)

        return len(data)

    def close(self) -> None:
        """Flush whatever is left once the stream has ended."""
        if self._buffer:
            batch = bytes(self._buffer)
            rows = self._buffered_rows
            self._buffer.clear()
            self._buffered_rows = 0
            self.flush_func(batch, rows)


class SingleStreamFallback:
    """Whole-table copy over a single connection pair."""

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        connection_factory: Callable = open_connections,
    ):
        self.sink = sink or ProgressSink()
        self.connection_factory = connection_factory

    def run(self, job: ImportJob, total_rows: int, max_batch: int) -> int:
        """
        Copy every filtered row of ``job``.

        Args:
            job: Table to copy; its order key, if any, is not used
            total_rows: Filtered row count, used for progress reporting only
            max_batch: Rows per target COPY/commit

        Returns:
            Rows moved
        """
        progress = TransferProgress(0, RowRange(0, total_rows), self.sink)

        with self.connection_factory(job) as connections:
            def flush(data: bytes, rows: int) -> None:
                copy_into_target(job, connections.target, data)
                progress.advance(rows)

            writer = BatchingWriter(max_batch, flush)
            try:
                with connections.source.cursor() as cursor:
                    cursor.copy_expert(build_copy_out_query(job), writer)
            except psycopg2.Error as e:
                raise QueryExecutionError(f"bulk export from {job.qualified_name}", e) from e
            writer.close()

        progress.finish()
        logger.info(f"Single stream moved {progress.rows_moved:,} rows of {job.qualified_name}")
        return progress.rows_moved
