"""
PostgreSQL to PostgreSQL Data Importer

This package copies table data between two PostgreSQL databases, splitting
each table into row ranges that are copied by parallel worker threads.

Modules:
- supervisor: Per-table import flow (truncate, count, parallel or single stream)
- orchestrator: Parallel copy of one table across worker threads
- single_stream: Whole-table copy when a table can't be split safely
- transfer: COPY stream and INSERT transcoding transfer strategies
- partitioning: Row range and chunk planning
- value_transcoder: Python values to SQL literals
- catalog: Schema/table/constraint discovery, row counts, connection check
- batch: YAML batch jobs
- config: Connection and tuning settings

Performance Options:
- MAX_THREADS=N: Worker threads per table
- ROWS_FOR_SELECT=N: Rows requested at once from the source DB
- ROWS_FOR_INSERT=N: Rows per INSERT statement (TRANSCODE importer)
- IMPORTER_IMPL=STREAM|TRANSCODE: How rows are moved
"""

__version__ = "0.4.0"

# Core modules
from pg_data_importer import config
from pg_data_importer import models
from pg_data_importer import partitioning
from pg_data_importer import value_transcoder
from pg_data_importer import transfer
from pg_data_importer import orchestrator
from pg_data_importer import single_stream
from pg_data_importer import catalog
from pg_data_importer import supervisor

# Job files
from pg_data_importer import batch

__all__ = [
    "config",
    "models",
    "partitioning",
    "value_transcoder",
    "transfer",
    "orchestrator",
    "single_stream",
    "catalog",
    "supervisor",
    "batch",
]
