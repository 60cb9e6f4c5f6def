"""
Source Catalog

Catalog queries against the source database (schemas, tables, unique
constraints, row counts), TRUNCATE on the target, and the connectivity
check run before any import starts.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple
import logging

import psycopg2
from psycopg2 import sql

from pg_data_importer.config import ConnectionParams, ImportConfig
from pg_data_importer.connections import close_quietly, open_connection
from pg_data_importer.exceptions import QueryExecutionError

logger = logging.getLogger(__name__)

SCHEMAS_QUERY = """
SELECT schema_name
FROM information_schema.schemata
WHERE schema_name NOT LIKE 'pg_%'
  AND schema_name <> 'information_schema'
ORDER BY schema_name
"""

# Base tables only; partitions are reached through their parent table
TABLES_QUERY = """
SELECT DISTINCT ist.table_name
FROM information_schema.tables ist
JOIN pg_catalog.pg_namespace pgn ON pgn.nspname = ist.table_schema
JOIN pg_catalog.pg_class pgc ON pgc.relname = ist.table_name AND pgc.relnamespace = pgn.oid
WHERE ist.table_schema = %s
  AND ist.table_type = 'BASE TABLE'
  AND NOT pgc.relispartition
ORDER BY ist.table_name
"""

# Primary key first, then unique constraints by name; columns in constraint order
UNIQUE_CONSTRAINT_QUERY = """
SELECT tc.constraint_name, kcu.column_name
FROM information_schema.table_constraints tc
JOIN information_schema.key_column_usage kcu
  ON kcu.constraint_name = tc.constraint_name
 AND kcu.constraint_schema = tc.constraint_schema
 AND kcu.table_schema = tc.table_schema
 AND kcu.table_name = tc.table_name
WHERE tc.table_schema = %s
  AND tc.table_name = %s
  AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
ORDER BY CASE tc.constraint_type WHEN 'PRIMARY KEY' THEN 0 ELSE 1 END,
         tc.constraint_name,
         kcu.ordinal_position
"""

COLUMNS_QUERY = """
SELECT column_name
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""


class SourceCatalog:
    """Read-only catalog queries on the source database."""

    def __init__(self, params: ConnectionParams):
        self.params = params

    @contextmanager
    def _cursor(self) -> Iterator:
        conn = open_connection(self.params, 'source')
        try:
            with conn.cursor() as cursor:
                yield cursor
        finally:
            close_quietly(conn)

    def _fetch(self, operation: str, query, parameters: Optional[Tuple] = None) -> List[Tuple]:
        try:
            with self._cursor() as cursor:
                cursor.execute(query, parameters)
                return cursor.fetchall()
        except psycopg2.Error as e:
            raise QueryExecutionError(operation, e) from e

    def get_available_schemas(self) -> List[str]:
        """User schemas of the source database (pg_* and information_schema excluded)."""
        rows = self._fetch('schema discovery', SCHEMAS_QUERY)
        return [row[0] for row in rows]

    def get_available_tables(self, schema: str) -> List[str]:
        """Base tables of ``schema`` that are not partitions of another table."""
        rows = self._fetch(f"table discovery in {schema}", TABLES_QUERY, (schema,))
        return [row[0] for row in rows]

    def get_unique_constraint_columns(self, schema: str, table: str) -> Optional[Tuple[str, ...]]:
        """
        Columns of one unique constraint of the table, in constraint order.

        The primary key is preferred; otherwise the first UNIQUE constraint
        by name. Returns None when the table has neither.
        """
        rows = self._fetch(
            f"unique constraint discovery on {schema}.{table}",
            UNIQUE_CONSTRAINT_QUERY,
            (schema, table),
        )
        if not rows:
            return None

        constraint_name = rows[0][0]
        columns = tuple(column for name, column in rows if name == constraint_name)
        logger.debug(f"Using constraint {constraint_name} {columns} to order {schema}.{table}")
        return columns

    def get_table_columns(self, schema: str, table: str) -> List[str]:
        rows = self._fetch(f"column discovery on {schema}.{table}", COLUMNS_QUERY, (schema, table))
        return [row[0] for row in rows]

    def count_rows(self, schema: str, table: str, where_clause: Optional[str] = None) -> int:
        """Row count of the table after applying ``where_clause``."""
        query = sql.SQL('SELECT count(1) FROM {}.{}').format(
            sql.Identifier(schema),
            sql.Identifier(table),
        )
        if where_clause and where_clause.strip():
            query = sql.SQL('{} WHERE ({})').format(query, sql.SQL(where_clause.strip()))

        rows = self._fetch(f"row count on {schema}.{table}", query)
        return (rows[0][0] or 0) if rows else 0


def truncate_table(params: ConnectionParams, schema: str, table: str, cascade: bool = False) -> None:
    """
    Remove every row of the target table.

    Args:
        params: Target connection
        schema: Schema name
        table: Table name
        cascade: Also truncate tables that reference this one
    """
    query = sql.SQL('TRUNCATE TABLE {}.{}').format(sql.Identifier(schema), sql.Identifier(table))
    if cascade:
        query = sql.SQL('{} CASCADE').format(query)

    conn = open_connection(params, 'target')
    try:
        with conn.cursor() as cursor:
            cursor.execute(query)
        conn.commit()
    except psycopg2.Error as e:
        raise QueryExecutionError(f"truncate of {schema}.{table}", e) from e
    finally:
        close_quietly(conn)


def check_connection(params: ConnectionParams, label: str) -> bool:
    """
    Check that a server accepts connections and answers a trivial query.

    Returns:
        True if the server is reachable
    """
    conn = None
    try:
        conn = psycopg2.connect(**params.connect_kwargs())
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        logger.info(f"Checking {label} DB server {params.host}:{params.port} ... OK")
        return True
    except psycopg2.Error as e:
        logger.error(f"Checking {label} DB server {params.host}:{params.port} ... FAILED: {str(e).strip()}")
        return False
    finally:
        close_quietly(conn)


def check_source_target_servers(config: ImportConfig) -> bool:
    """Check both servers; both are always checked so every problem is reported."""
    source_ok = check_connection(config.source, 'source')
    target_ok = check_connection(config.target, 'target')
    return source_ok and target_ok
