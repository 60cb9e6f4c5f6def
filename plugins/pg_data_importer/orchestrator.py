"""
Parallel Copy Orchestrator

Copies one table with several worker threads. The filtered, ordered row set
is split into one contiguous RowRange per worker; each worker walks its range
in chunks of at most ``max_batch`` rows and hands every chunk to the transfer
strategy.

Workers share only the immutable ImportJob, the strategy and the cancel
event. Each opens and closes its own source/target connection pair.

When a worker fails the first error is kept, the cancel event is set and the
remaining workers stop at their next chunk boundary. Once every worker has
returned, WorkerFailedError is raised. Rows committed before the failure stay
in the target table.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, List, Optional, Sequence
import logging
import threading

from pg_data_importer.connections import open_connections
from pg_data_importer.exceptions import WorkerFailedError
from pg_data_importer.models import ImportJob, RowRange
from pg_data_importer.partitioning import iter_chunks, plan_partitions
from pg_data_importer.progress import ProgressSink, TransferProgress
from pg_data_importer.transfer import TableTransfer

logger = logging.getLogger(__name__)


class ParallelCopyOrchestrator:
    """Runs one table copy across a fresh pool of worker threads."""

    def __init__(
        self,
        strategy: TableTransfer,
        sink: Optional[ProgressSink] = None,
        connection_factory: Callable = open_connections,
    ):
        """
        Args:
            strategy: Transfer strategy applied to every chunk
            sink: Receives per-chunk progress events
            connection_factory: Context manager factory yielding a worker's
                DBConnections for a job
        """
        self.strategy = strategy
        self.sink = sink or ProgressSink()
        self.connection_factory = connection_factory
        self.cancel_event = threading.Event()
        self.error: Optional[Exception] = None
        self._failed: Optional[TransferProgress] = None
        self._error_lock = threading.Lock()

    def _set_error(self, progress: TransferProgress, error: Exception) -> None:
        """Thread-safe error setter; only the first error is kept."""
        with self._error_lock:
            if self.error is None:
                self.error = error
                self._failed = progress
                self.cancel_event.set()

    def _worker(self, job: ImportJob, progress: TransferProgress, max_batch: int) -> None:
        try:
            with self.connection_factory(job) as connections:
                for chunk in iter_chunks(progress.row_range, max_batch):
                    if self.cancel_event.is_set():
                        logger.info(f"Worker {progress.worker_id} cancelled at row {chunk.offset:,}")
                        return
                    rows = self.strategy.transfer(job, connections, chunk)
                    progress.advance(rows)
            progress.finish()
        except Exception as e:
            logger.error(f"Worker {progress.worker_id} error: {e}")
            self._set_error(progress, e)

    def run(
        self,
        job: ImportJob,
        total_rows: int,
        worker_count: int,
        stable_order_key: Sequence[str],
        max_batch: int,
    ) -> int:
        """
        Copy ``total_rows`` filtered rows of ``job`` with ``worker_count`` workers.

        Args:
            job: Table to copy
            total_rows: Filtered row count of the source table
            worker_count: Number of partitions/threads
            stable_order_key: Unique constraint columns used for ORDER BY
            max_batch: Maximum rows per chunk

        Returns:
            Total rows moved by all workers

        Raises:
            WorkerFailedError: If any worker failed
        """
        if not stable_order_key:
            raise ValueError(f"A stable order key is required to partition {job.qualified_name}")

        job = replace(job, order_key=tuple(stable_order_key))
        partitions = plan_partitions(total_rows, worker_count)
        if not partitions:
            return 0

        self.cancel_event.clear()
        self.error = None
        self._failed = None

        logger.info(
            f"Importing {job.qualified_name} with {len(partitions)} workers "
            f"using the {self.strategy.name} transfer"
        )
        progresses: List[TransferProgress] = []

        with ThreadPoolExecutor(max_workers=len(partitions)) as executor:
            for worker_id, row_range in enumerate(partitions):
                logger.info(
                    f"Starting worker {worker_id + 1}/{len(partitions)} "
                    f"for rows {row_range.offset:,}-{row_range.end:,}"
                )
                progress = TransferProgress(worker_id, row_range, self.sink)
                progresses.append(progress)
                executor.submit(self._worker, job, progress, max_batch)

        rows_moved = sum(p.rows_moved for p in progresses)

        if self.error is not None:
            failed_range: RowRange = self._failed.row_range
            raise WorkerFailedError(
                table=job.qualified_name,
                worker_id=self._failed.worker_id,
                offset=failed_range.offset,
                limit=failed_range.limit,
                rows_moved=rows_moved,
                cause=self.error,
            ) from self.error

        return rows_moved
