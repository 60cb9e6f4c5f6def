"""
Database Connections

Opens psycopg2 connections for a worker. Connections are never pooled or
shared: every worker opens its own source/target pair and closes it when it
is done.
"""

from typing import Iterator
import contextlib
import logging

import psycopg2

from pg_data_importer.config import ConnectionParams
from pg_data_importer.exceptions import ConnectionFailedError
from pg_data_importer.models import DBConnections, ImportJob

logger = logging.getLogger(__name__)


def open_connection(params: ConnectionParams, side: str):
    """
    Open a connection for a long-running transfer.

    Statement timeouts are disabled and the session time zone is UTC, so
    timestamp literals written in UTC are read back unchanged.

    Raises:
        ConnectionFailedError: If the server can't be reached or rejects the login
    """
    try:
        conn = psycopg2.connect(**params.connect_kwargs())
    except psycopg2.Error as e:
        raise ConnectionFailedError(side, e) from e

    try:
        with conn.cursor() as cursor:
            cursor.execute("SET statement_timeout = 0")
            cursor.execute("SET TIME ZONE 'UTC'")
        conn.commit()
    except psycopg2.Error as e:
        conn.close()
        raise ConnectionFailedError(side, e) from e

    return conn


def close_quietly(conn) -> None:
    if conn is None:
        return
    try:
        conn.close()
    except psycopg2.Error:
        logger.exception("Exception occurred while closing PostgreSQL connection")


@contextlib.contextmanager
def open_connections(job: ImportJob) -> Iterator[DBConnections]:
    """Open the exclusive source/target pair for one worker."""
    source = open_connection(job.source, 'source')
    target = None
    try:
        target = open_connection(job.target, 'target')
        yield DBConnections(source=source, target=target)
    finally:
        if target is not None and not target.closed:
            try:
                target.rollback()
            except psycopg2.Error:
                logger.exception("Exception occurred during PostgreSQL connection rollback")
        close_quietly(target)
        close_quietly(source)
