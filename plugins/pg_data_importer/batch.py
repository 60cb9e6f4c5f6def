"""
Batch Jobs

Runs a list of schema imports described in YAML:

    imports:
      - schema: sales
        tables: [orders, order_lines]
        where_clause: "created_at >= '2024-01-01'"
        truncate: true
      - schema: public
        tables: [customers]
        where_clause: ~

``where_clause`` may be omitted, null (``~``) or empty for no filter.
``truncate`` and ``cascade`` default to false. The same structure is
accepted as a DAG param.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple
import logging

import yaml

from pg_data_importer.exceptions import BatchFileError
from pg_data_importer.models import ImportResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaImport:
    """One job of a batch: some tables of one schema, with a shared filter."""

    schema: str
    tables: Tuple[str, ...]
    where_clause: Optional[str] = None
    truncate: bool = False
    cascade: bool = False


def _parse_flag(job: dict, key: str, index: int) -> bool:
    value = job.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise BatchFileError(f"Job {index}: '{key}' must be true or false", details=repr(value))
    return value


def _parse_job(job: Any, index: int) -> SchemaImport:
    if not isinstance(job, dict):
        raise BatchFileError(f"Job {index} must be a mapping", details=repr(job))

    schema = job.get('schema')
    if not isinstance(schema, str) or not schema.strip():
        raise BatchFileError(f"Job {index}: 'schema' is required")

    tables = job.get('tables')
    if not isinstance(tables, list) or not tables:
        raise BatchFileError(f"Job {index}: 'tables' must be a non-empty list")
    if not all(isinstance(t, str) and t.strip() for t in tables):
        raise BatchFileError(f"Job {index}: every table name must be a non-empty string", details=repr(tables))

    where_clause = job.get('where_clause')
    if where_clause is not None and not isinstance(where_clause, str):
        raise BatchFileError(f"Job {index}: 'where_clause' must be a string", details=repr(where_clause))
    # A literal "~" in a quoted string means no filter too
    if where_clause is not None and where_clause.strip() in ('', '~'):
        where_clause = None

    return SchemaImport(
        schema=schema.strip(),
        tables=tuple(t.strip() for t in tables),
        where_clause=where_clause,
        truncate=_parse_flag(job, 'truncate', index),
        cascade=_parse_flag(job, 'cascade', index),
    )


def parse_batch(data: Any) -> List[SchemaImport]:
    """
    Validate an already-loaded batch structure.

    Accepts either the whole document (a mapping with ``imports``) or the
    list of jobs itself.

    Raises:
        BatchFileError: If the structure is malformed
    """
    if isinstance(data, dict):
        if 'imports' not in data:
            raise BatchFileError("Batch must contain an 'imports' list")
        data = data['imports']

    if not isinstance(data, list):
        raise BatchFileError("Batch 'imports' must be a list", details=repr(data))

    return [_parse_job(job, i) for i, job in enumerate(data)]


def load_batch_file(path: str) -> List[SchemaImport]:
    """
    Read and validate a YAML batch file.

    Raises:
        BatchFileError: If the file can't be read or parsed
    """
    logger.info(f"Processing batch file {path}...")
    try:
        with open(path, encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise BatchFileError(f"Couldn't open batch file {path}", details=str(e)) from e
    except yaml.YAMLError as e:
        raise BatchFileError(f"Error parsing batch file {path}", details=str(e)) from e

    return parse_batch(data)


def run_batch(supervisor, imports: List[SchemaImport]) -> List[ImportResult]:
    """Run batch jobs in order; tables within a job are imported one at a time."""
    results: List[ImportResult] = []
    for i, schema_import in enumerate(imports):
        logger.info(f"Job {i}: Importing schema {schema_import.schema}...")
        results.extend(supervisor.import_tables(
            schema_import.schema,
            schema_import.tables,
            where_clause=schema_import.where_clause,
            truncate=schema_import.truncate,
            cascade=schema_import.cascade,
        ))
    return results
