"""
End-to-end import tests against live PostgreSQL servers.

Skipped unless PG_IMPORTER_IT_SOURCE and PG_IMPORTER_IT_TARGET are set to
connection URLs (user[:password]@host:port[/dbname]). The tests create and
drop their own schema on both servers.
"""

import os
from decimal import Decimal

import psycopg2
import pytest
from pg_data_importer.config import ConnectionParams, ImportConfig, TransferStrategyType
from pg_data_importer.supervisor import CopySupervisor

SOURCE_URL = os.environ.get('PG_IMPORTER_IT_SOURCE')
TARGET_URL = os.environ.get('PG_IMPORTER_IT_TARGET')

pytestmark = pytest.mark.skipif(
    not (SOURCE_URL and TARGET_URL),
    reason="PG_IMPORTER_IT_SOURCE and PG_IMPORTER_IT_TARGET not set",
)

SCHEMA = 'importer_it'

TABLE_DDL = """
CREATE TABLE {schema}.{table} (
    id integer {key},
    name text,
    amount numeric(12, 4),
    ratio double precision,
    active boolean,
    created_at timestamptz
)
"""

POPULATE = """
INSERT INTO {schema}.{table}
SELECT g,
       'name ' || g || CASE WHEN mod(g, 10) = 0 THEN ' O''Brien' ELSE '' END,
       g * 1.2345,
       g / 7.0,
       mod(g, 2) = 0,
       timestamptz '2024-01-01 00:00:00+00' + g * interval '1 second'
FROM generate_series(1, %s) AS g
"""

CHECKSUM = """
SELECT count(*), md5(string_agg(t::text, '|' ORDER BY id))
FROM {schema}.{table} t
"""


def _execute(params, statements):
    conn = psycopg2.connect(**params.connect_kwargs())
    try:
        with conn.cursor() as cursor:
            for statement, args in statements:
                cursor.execute(statement, args)
        conn.commit()
    finally:
        conn.close()


def _checksum(params, table):
    conn = psycopg2.connect(**params.connect_kwargs())
    try:
        with conn.cursor() as cursor:
            cursor.execute("SET TIME ZONE 'UTC'")
            cursor.execute(CHECKSUM.format(schema=SCHEMA, table=table))
            return cursor.fetchone()
    finally:
        conn.close()


@pytest.fixture(scope="module")
def servers():
    source = ConnectionParams.from_url(SOURCE_URL)
    target = ConnectionParams.from_url(TARGET_URL)

    for params, populate in ((source, True), (target, False)):
        statements = [
            (f"DROP SCHEMA IF EXISTS {SCHEMA} CASCADE", None),
            (f"CREATE SCHEMA {SCHEMA}", None),
            (TABLE_DDL.format(schema=SCHEMA, table='keyed', key='PRIMARY KEY'), None),
            (TABLE_DDL.format(schema=SCHEMA, table='unkeyed', key=''), None),
        ]
        if populate:
            statements += [
                (POPULATE.format(schema=SCHEMA, table='keyed'), (10000,)),
                (POPULATE.format(schema=SCHEMA, table='unkeyed'), (2345,)),
            ]
        _execute(params, statements)

    yield source, target

    for params in (source, target):
        _execute(params, [(f"DROP SCHEMA IF EXISTS {SCHEMA} CASCADE", None)])


def _supervisor(source, target, strategy=TransferStrategyType.STREAM):
    config = ImportConfig(
        source=source,
        target=target,
        worker_count=4,
        rows_for_select=2000,
        rows_for_insert=300,
        strategy=strategy,
    )
    return CopySupervisor(config)


@pytest.mark.parametrize("strategy", [TransferStrategyType.STREAM, TransferStrategyType.TRANSCODE])
def test_parallel_import_is_exact_and_idempotent(servers, strategy):
    source, target = servers
    supervisor = _supervisor(source, target, strategy)

    result = supervisor.import_table(SCHEMA, 'keyed', truncate=True)
    assert result.mode == 'parallel'
    assert result.rows_moved == 10000
    assert _checksum(target, 'keyed') == _checksum(source, 'keyed')

    # Importing again with truncate leaves the same contents
    supervisor.import_table(SCHEMA, 'keyed', truncate=True)
    assert _checksum(target, 'keyed') == _checksum(source, 'keyed')


def test_table_without_unique_key_uses_single_stream(servers):
    source, target = servers

    result = _supervisor(source, target).import_table(SCHEMA, 'unkeyed', truncate=True)

    assert result.mode == 'single_stream'
    assert result.rows_moved == 2345
    assert _checksum(target, 'unkeyed')[0] == 2345


def test_filtered_import(servers):
    source, target = servers

    result = _supervisor(source, target).import_table(SCHEMA, 'keyed', where_clause="id <= 100", truncate=True)

    assert result.total_rows == 100
    conn = psycopg2.connect(**target.connect_kwargs())
    try:
        with conn.cursor() as cursor:
            cursor.execute(f"SELECT max(id), sum(amount) FROM {SCHEMA}.keyed")
            max_id, total = cursor.fetchone()
    finally:
        conn.close()
    assert max_id == 100
    assert total == sum(Decimal(i) * Decimal('1.2345') for i in range(1, 101))
