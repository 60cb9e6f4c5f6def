"""
Copy Supervisor

Per-table entry point of the importer. For each table it optionally
truncates the target, counts the filtered source rows, looks for a unique
constraint to order by, and then hands the table to either the parallel
orchestrator or the single-stream fallback.

Tables are always imported one after another; parallelism happens only
inside a table.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence
import logging
import time

from pg_data_importer.catalog import SourceCatalog, truncate_table
from pg_data_importer.config import ImportConfig
from pg_data_importer.models import ImportJob, ImportResult
from pg_data_importer.orchestrator import ParallelCopyOrchestrator
from pg_data_importer.progress import LoggingProgressSink, ProgressSink
from pg_data_importer.single_stream import SingleStreamFallback
from pg_data_importer.transfer import build_transfer_strategy

logger = logging.getLogger(__name__)


class CopySupervisor:
    """Imports tables from the source to the target database of an ImportConfig."""

    def __init__(
        self,
        config: ImportConfig,
        sink: Optional[ProgressSink] = None,
        catalog: Optional[SourceCatalog] = None,
    ):
        self.config = config
        self.sink = sink or LoggingProgressSink()
        self.catalog = catalog or SourceCatalog(config.source)

    def _orchestrator(self) -> ParallelCopyOrchestrator:
        return ParallelCopyOrchestrator(build_transfer_strategy(self.config), self.sink)

    def _fallback(self) -> SingleStreamFallback:
        return SingleStreamFallback(self.sink)

    def import_table(
        self,
        schema: str,
        table: str,
        where_clause: Optional[str] = None,
        truncate: bool = False,
        cascade: bool = False,
    ) -> ImportResult:
        """
        Import one table.

        Args:
            schema: Schema name (same on source and target)
            table: Table name (same on source and target)
            where_clause: Optional SQL predicate applied on the source
            truncate: Empty the target table first
            cascade: Truncate with CASCADE

        Returns:
            ImportResult with rows moved and elapsed time

        Raises:
            ImporterError: If a connection, a statement or a worker fails
        """
        job = ImportJob(
            schema=schema,
            table=table,
            source=self.config.source,
            target=self.config.target,
            strategy=self.config.strategy,
            where_clause=where_clause or None,
        )

        logger.info(f"Importing table {job.qualified_name} ...")
        start_time = time.time()

        if truncate:
            logger.info(f"TRUNCATING table {job.qualified_name}{' CASCADE' if cascade else ''}...")
            truncate_table(self.config.target, schema, table, cascade)

        total_rows = self.catalog.count_rows(schema, table, job.where_clause)
        if total_rows == 0:
            logger.warning(f"Table {job.qualified_name} has no rows to import, skipping")
            return self._result(job, 0, 0, start_time, 'skipped')

        logger.info(f"{total_rows:,} rows to insert in total")

        order_key = self.catalog.get_unique_constraint_columns(schema, table)
        worker_count = self.config.worker_count

        if worker_count >= 2 and order_key:
            mode = 'parallel'
            rows_moved = self._orchestrator().run(
                job,
                total_rows,
                worker_count,
                order_key,
                self.config.rows_for_select,
            )
        else:
            if not order_key:
                logger.info(
                    f"Table {job.qualified_name} has no primary key or unique constraint, "
                    f"importing it in a single stream"
                )
            else:
                logger.info(f"Only one worker configured, importing {job.qualified_name} in a single stream")
            mode = 'single_stream'
            rows_moved = self._fallback().run(job, total_rows, self.config.rows_for_select)

        result = self._result(job, total_rows, rows_moved, start_time, mode)
        logger.info(
            f"Finished importing {result.rows_moved:,} rows from table {job.qualified_name} "
            f"in {result.elapsed_seconds:.2f} secs ({result.rows_per_second:,.0f} rows/sec)"
        )
        if rows_moved != total_rows:
            logger.warning(
                f"Table {job.qualified_name}: counted {total_rows:,} rows but moved {rows_moved:,}; "
                f"the source may have changed during the import"
            )
        return result

    def import_tables(
        self,
        schema: str,
        tables: Sequence[str],
        where_clause: Optional[str] = None,
        truncate: bool = False,
        cascade: bool = False,
    ) -> List[ImportResult]:
        """Import several tables of one schema, one after another."""
        return [
            self.import_table(schema, table, where_clause, truncate, cascade)
            for table in tables
        ]

    @staticmethod
    def _result(job: ImportJob, total_rows: int, rows_moved: int, start_time: float, mode: str) -> ImportResult:
        return ImportResult(
            schema=job.schema,
            table=job.table,
            total_rows=total_rows,
            rows_moved=rows_moved,
            elapsed_seconds=time.time() - start_time,
            mode=mode,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
