"""
Shared fixtures for plugin tests: mocked psycopg2 connections and a
renderer for psycopg2.sql objects that needs no live connection.
"""

from unittest.mock import MagicMock

import pytest
from psycopg2 import sql

from pg_data_importer.config import ConnectionParams
from pg_data_importer.models import DBConnections, ImportJob


def render(query) -> str:
    """Render a psycopg2.sql composable to text without a database connection."""
    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return ''.join(render(part) for part in query.seq)
    if isinstance(query, sql.Identifier):
        return '.'.join(f'"{s}"' for s in query.strings)
    if isinstance(query, sql.Literal):
        return repr(query.wrapped)
    if isinstance(query, sql.SQL):
        return query.string
    raise TypeError(f"Can't render {query!r}")


def make_connection():
    """A mocked psycopg2 connection and the cursor its context manager yields."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.closed = 0
    return conn, cursor


@pytest.fixture
def source_params():
    return ConnectionParams.from_url("postgres:secret@source-db:5432/sales")


@pytest.fixture
def target_params():
    return ConnectionParams.from_url("postgres:secret@target-db:5555/sales")


@pytest.fixture
def job(source_params, target_params):
    return ImportJob(schema='public', table='orders', source=source_params, target=target_params)


@pytest.fixture
def mock_connections():
    """DBConnections of mocked source/target connections plus their cursors."""
    source_conn, source_cursor = make_connection()
    target_conn, target_cursor = make_connection()
    return DBConnections(source=source_conn, target=target_conn), source_cursor, target_cursor
