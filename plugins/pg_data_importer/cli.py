"""
Command-line entry point: ``pg-data-import``.

Examples:
    pg-data-import --schema sales --table orders --table order_lines --truncate
    pg-data-import --batch-filename imports.yaml --max-threads 4
    pg-data-import --list-tables --schema sales
    pg-data-import --list-tables --schema sales --table orders
"""

from typing import List
import json
import logging

import click
import psycopg2

from pg_data_importer.batch import load_batch_file, run_batch
from pg_data_importer.catalog import SourceCatalog, check_source_target_servers
from pg_data_importer.config import resolve_import_config
from pg_data_importer.exceptions import ImporterError
from pg_data_importer.logging_config import configure_logging, enable_error_log
from pg_data_importer.models import ImportResult
from pg_data_importer.supervisor import CopySupervisor

logger = logging.getLogger(__name__)


def _print_summary(results: List[ImportResult]) -> None:
    total_rows = sum(r.rows_moved for r in results)
    click.echo(f"Imported {len(results)} table(s), {total_rows:,} rows")
    for r in results:
        click.echo(
            f"  {r.schema}.{r.table}: {r.rows_moved:,}/{r.total_rows:,} rows "
            f"in {r.elapsed_seconds:.2f}s [{r.mode}]"
        )


def _error_message(error: Exception) -> str:
    if isinstance(error, ImporterError):
        message = error.message
        if error.details:
            message += f". Error: {error.details}"
        return message
    return f"Database error: {str(error).strip()}"


@click.command(name='pg-data-import')
@click.option('--source', help='Source DB as user[:password]@host:port[/dbname]')
@click.option('--target', help='Target DB as user[:password]@host:port[/dbname]')
@click.option('--max-threads', type=int, help='Worker threads per table')
@click.option('--rows-insert', type=int, help='Rows per INSERT statement (TRANSCODE importer)')
@click.option('--rows-select', type=int, help='Rows requested at once from the source DB')
@click.option('--error-log/--no-error-log', default=None, help='Also write errors to a pgimport_errors_*.log file')
@click.option('--importer-impl', type=click.Choice(['STREAM', 'TRANSCODE', 'COPY', 'QUERY'], case_sensitive=False),
              help='How rows are moved: STREAM (COPY) or TRANSCODE (INSERT)')
@click.option('--batch-filename', envvar='BATCH_FILENAME', type=click.Path(dir_okay=False),
              help='YAML batch file of imports to run')
@click.option('--schema', help='Schema of the tables to import')
@click.option('--table', 'tables', multiple=True, help='Table to import (repeatable; default: all tables of the schema)')
@click.option('--where', 'where_clause', help='SQL filter applied to every table')
@click.option('--truncate', is_flag=True, help='TRUNCATE target tables before importing (removes all their rows)')
@click.option('--cascade', is_flag=True, help='Use TRUNCATE ... CASCADE')
@click.option('--list-tables', is_flag=True, help='List source schemas, the tables of --schema, or the columns of each --table, and exit')
@click.option('--show-config', is_flag=True, help='Print the resolved configuration and exit')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, source, target, max_threads, rows_insert, rows_select, error_log, importer_impl,
        batch_filename, schema, tables, where_clause, truncate, cascade, list_tables, show_config, verbose):
    """Copy table data from a source PostgreSQL database to a target one."""
    configure_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        config = resolve_import_config({
            'source': source,
            'target': target,
            'worker_count': max_threads,
            'rows_for_insert': rows_insert,
            'rows_for_select': rows_select,
            'strategy': importer_impl,
            'error_log_enabled': error_log,
        })
    except ValueError as e:
        raise click.UsageError(str(e))

    if show_config:
        click.echo(json.dumps(config.describe(), indent=2))
        return

    if not batch_filename and not schema and not list_tables:
        raise click.UsageError("Provide --schema, --batch-filename or --list-tables")

    if config.error_log_enabled:
        enable_error_log()

    if not check_source_target_servers(config):
        click.echo("Couldn't connect to source and target DB servers, check the connection settings", err=True)
        ctx.exit(1)

    try:
        if list_tables:
            catalog = SourceCatalog(config.source)
            if schema and tables:
                for table in tables:
                    columns = catalog.get_table_columns(schema, table)
                    click.echo(f"{schema}.{table}: {', '.join(columns)}")
                return
            names = catalog.get_available_tables(schema) if schema else catalog.get_available_schemas()
            for name in names:
                click.echo(name)
            return

        supervisor = CopySupervisor(config)
        if batch_filename:
            results = run_batch(supervisor, load_batch_file(batch_filename))
        else:
            table_names = list(tables) or SourceCatalog(config.source).get_available_tables(schema)
            if not table_names:
                click.echo(f"Schema {schema} doesn't contain any table")
                return
            results = supervisor.import_tables(schema, table_names, where_clause, truncate, cascade)
    except (ImporterError, psycopg2.Error) as e:
        logger.error(_error_message(e))
        click.echo(_error_message(e), err=True)
        ctx.exit(1)

    _print_summary(results)


def main():
    cli()


if __name__ == '__main__':
    main()
