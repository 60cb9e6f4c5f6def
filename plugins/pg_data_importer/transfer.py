"""
Transfer Strategies

Moves the rows of one bounded sub-range from source to target. Two
interchangeable strategies share the same contract:

- StreamTransfer: COPY ... TO STDOUT on the source, COPY ... FROM STDIN on
  the target. No per-row work; source and target column layouts must match.
- TranscodingTransfer: SELECT on the source, per-value literal conversion,
  multi-row INSERT with explicit column names on the target. Slower, but
  tolerates column reordering and escapes every value.

The strategy is chosen once per run from ImportConfig.strategy.
"""

from abc import ABC, abstractmethod
from io import BytesIO
from typing import List, Optional
import logging

import psycopg2
from psycopg2 import sql

from pg_data_importer.config import ImportConfig, TransferStrategyType
from pg_data_importer.exceptions import QueryExecutionError
from pg_data_importer.models import DBConnections, ImportJob, RowRange
from pg_data_importer.value_transcoder import to_literal

logger = logging.getLogger(__name__)


def table_identifier(job: ImportJob) -> sql.Composed:
    return sql.SQL('{}.{}').format(sql.Identifier(job.schema), sql.Identifier(job.table))


def build_select_query(job: ImportJob, row_range: Optional[RowRange] = None) -> sql.Composed:
    """
    Build the SELECT for a job, optionally restricted to a row range.

    The filter is operator-supplied SQL and is passed through verbatim,
    wrapped in parentheses. ORDER BY is added when the job has an order key.
    """
    parts = [sql.SQL('SELECT * FROM {}').format(table_identifier(job))]

    if job.has_filter:
        parts.append(sql.SQL('WHERE ({})').format(sql.SQL(job.where_clause.strip())))

    if job.order_key:
        parts.append(sql.SQL('ORDER BY {}').format(
            sql.SQL(', ').join([sql.Identifier(col) for col in job.order_key])
        ))

    if row_range is not None:
        parts.append(sql.SQL('OFFSET {} LIMIT {}').format(
            sql.Literal(row_range.offset),
            sql.Literal(row_range.limit),
        ))

    return sql.SQL(' ').join(parts)


def build_copy_out_query(job: ImportJob, row_range: Optional[RowRange] = None) -> sql.Composed:
    return sql.SQL('COPY ({}) TO STDOUT').format(build_select_query(job, row_range))


def build_copy_in_query(job: ImportJob) -> sql.Composed:
    return sql.SQL('COPY {} FROM STDIN').format(table_identifier(job))


def copy_into_target(job: ImportJob, target_conn, data: bytes) -> None:
    """Bulk-load COPY text-format ``data`` into the job's target table and commit."""
    try:
        with target_conn.cursor() as cursor:
            cursor.copy_expert(build_copy_in_query(job), BytesIO(data))
        target_conn.commit()
    except psycopg2.Error as e:
        raise QueryExecutionError(f"bulk import into {job.qualified_name}", e) from e


class TableTransfer(ABC):
    """Moves the rows of one sub-range of a table."""

    name = ''

    @abstractmethod
    def transfer(self, job: ImportJob, connections: DBConnections, sub_range: RowRange) -> int:
        """
        Copy the rows of ``sub_range`` from source to target.

        Returns:
            Number of rows moved
        """


class StreamTransfer(TableTransfer):
    """Byte-level COPY export/import of a sub-range."""

    name = 'stream'

    def transfer(self, job: ImportJob, connections: DBConnections, sub_range: RowRange) -> int:
        if sub_range.limit == 0:
            return 0

        buffer = BytesIO()
        copy_out_query = build_copy_out_query(job, sub_range)
        try:
            with connections.source.cursor() as cursor:
                cursor.copy_expert(copy_out_query, buffer)
        except psycopg2.Error as e:
            raise QueryExecutionError(f"bulk export from {job.qualified_name}", e) from e

        data = buffer.getvalue()
        if not data:
            return 0

        copy_into_target(job, connections.target, data)
        # COPY text format writes exactly one line per row
        return data.count(b'\n')


class TranscodingTransfer(TableTransfer):
    """Row-by-row SELECT, literal conversion and batched multi-row INSERT."""

    name = 'transcode'

    def __init__(self, rows_for_insert: int):
        if rows_for_insert < 1:
            raise ValueError(f"rows_for_insert must be >= 1 (got {rows_for_insert})")
        self.rows_for_insert = rows_for_insert

    def transfer(self, job: ImportJob, connections: DBConnections, sub_range: RowRange) -> int:
        if sub_range.limit == 0:
            return 0

        select_query = build_select_query(job, sub_range)
        rows_moved = 0

        try:
            with connections.source.cursor() as cursor:
                cursor.execute(select_query)
                column_names = [desc[0] for desc in cursor.description]
                column_types = [desc[1] for desc in cursor.description]
                insert_prefix = sql.SQL('INSERT INTO {} ({}) VALUES ').format(
                    table_identifier(job),
                    sql.SQL(', ').join([sql.Identifier(col) for col in column_names]),
                )

                pending: List[str] = []
                for row in cursor:
                    values = [to_literal(value, type_code) for value, type_code in zip(row, column_types)]
                    pending.append(f"({','.join(values)})")

                    if len(pending) >= self.rows_for_insert:
                        self._insert(job, connections.target, insert_prefix, pending)
                        rows_moved += len(pending)
                        pending = []

                if pending:
                    self._insert(job, connections.target, insert_prefix, pending)
                    rows_moved += len(pending)
        except psycopg2.Error as e:
            raise QueryExecutionError(f"select on {job.qualified_name}", e) from e

        connections.target.commit()
        return rows_moved

    def _insert(self, job: ImportJob, target_conn, insert_prefix: sql.Composed, tuples: List[str]) -> None:
        query = insert_prefix + sql.SQL(','.join(tuples))
        try:
            with target_conn.cursor() as cursor:
                cursor.execute(query)
        except psycopg2.Error as e:
            raise QueryExecutionError(f"insert into {job.qualified_name}", e) from e


def build_transfer_strategy(config: ImportConfig) -> TableTransfer:
    if config.strategy is TransferStrategyType.TRANSCODE:
        return TranscodingTransfer(config.rows_for_insert)
    return StreamTransfer()
