"""
Transfer Progress

Per-worker row counters and the sinks that report them. Each counter is
written only by its own worker; sinks read them without locking; values
only grow, so a stale read is behind but never wrong.
"""

from typing import Optional
import logging
import time

from pg_data_importer.models import RowRange

logger = logging.getLogger(__name__)


class TransferProgress:
    """Rows moved so far by one worker."""

    def __init__(self, worker_id: int, row_range: RowRange, sink: Optional["ProgressSink"] = None):
        self.worker_id = worker_id
        self.row_range = row_range
        self.rows_moved = 0
        self.chunks_processed = 0
        self.started_at = time.time()
        self._sink = sink

    @property
    def expected_rows(self) -> int:
        return self.row_range.limit

    def advance(self, rows: int) -> None:
        """Record ``rows`` more rows moved and notify the sink."""
        if rows < 0:
            raise ValueError(f"Progress can't go backwards (got {rows})")
        self.rows_moved += rows
        self.chunks_processed += 1
        if self._sink is not None:
            self._sink.on_progress(self, rows)

    def finish(self) -> None:
        if self._sink is not None:
            self._sink.on_finished(self)


class ProgressSink:
    """Receives progress events from workers. The default implementation ignores them."""

    def on_progress(self, progress: TransferProgress, delta: int) -> None:
        pass

    def on_finished(self, progress: TransferProgress) -> None:
        pass


class LoggingProgressSink(ProgressSink):
    """Reports every chunk through the logging system."""

    def on_progress(self, progress: TransferProgress, delta: int) -> None:
        elapsed = time.time() - progress.started_at
        rows_per_second = progress.rows_moved / elapsed if elapsed > 0 else 0
        logger.info(
            f"Worker {progress.worker_id} chunk {progress.chunks_processed}: "
            f"Transferred {delta:,} rows "
            f"({progress.rows_moved:,}/{progress.expected_rows:,} total) "
            f"at {rows_per_second:,.0f} rows/sec"
        )

    def on_finished(self, progress: TransferProgress) -> None:
        logger.info(
            f"Worker {progress.worker_id} finished reading rows from "
            f"{progress.row_range.offset:,} to {progress.row_range.end:,}"
        )
