"""
PostgreSQL to PostgreSQL Data Import DAG

This DAG copies table data from a source PostgreSQL database into existing
tables of a target PostgreSQL database. It handles:
1. Connectivity check of both servers
2. Optional TRUNCATE of each target table
3. Parallel, partitioned copy of tables that have a primary key or unique
   constraint; single-stream copy of the others
4. Row count reporting

Tables are imported one after another. Target tables must already exist with
the same columns as the source (schema migration is out of scope).
"""

from airflow.sdk import dag, task
from airflow.models.param import Param
from pendulum import datetime
from typing import List, Dict, Any
import logging

from pg_data_importer.batch import parse_batch, run_batch
from pg_data_importer.catalog import check_source_target_servers
from pg_data_importer.config import ConnectionParams, resolve_import_config
from pg_data_importer.logging_config import enable_error_log
from pg_data_importer.supervisor import CopySupervisor

logger = logging.getLogger(__name__)


def _build_config(params: Dict[str, Any]):
    return resolve_import_config({
        'source': ConnectionParams.from_airflow_connection(params["source_conn_id"]),
        'target': ConnectionParams.from_airflow_connection(params["target_conn_id"]),
        'worker_count': params.get("worker_count"),
        'rows_for_select': params.get("rows_for_select"),
        'rows_for_insert': params.get("rows_for_insert"),
        'strategy': params.get("importer_impl"),
        'error_log_enabled': params.get("error_log"),
    })


@dag(
    start_date=datetime(2025, 1, 1),
    schedule=None,  # Run manually or trigger via API
    catchup=False,
    max_active_runs=1,
    doc_md=__doc__,
    default_args={
        "owner": "data-team",
        # A failed import leaves partial rows behind; re-run with truncate instead
        "retries": 0,
    },
    params={
        "source_conn_id": Param(
            default="postgres_source",
            type="string",
            description="Source PostgreSQL connection ID"
        ),
        "target_conn_id": Param(
            default="postgres_target",
            type="string",
            description="Target PostgreSQL connection ID"
        ),
        "imports": Param(
            default=[],
            type="array",
            description=(
                "Import jobs: [{schema, tables: [...], where_clause, truncate, cascade}]"
            )
        ),
        "worker_count": Param(
            default=8,
            type="integer",
            minimum=1,
            maximum=64,
            description="Worker threads per table"
        ),
        "rows_for_select": Param(
            default=10000,
            type="integer",
            minimum=1,
            description="Rows requested at once from the source DB"
        ),
        "rows_for_insert": Param(
            default=1000,
            type="integer",
            minimum=1,
            description="Rows per INSERT statement (TRANSCODE importer only)"
        ),
        "importer_impl": Param(
            default="STREAM",
            type="string",
            enum=["STREAM", "TRANSCODE"],
            description="STREAM moves rows with COPY; TRANSCODE converts values and INSERTs them"
        ),
        "error_log": Param(
            default=False,
            type="boolean",
            description="Also write errors to a pgimport_errors_*.log file in the worker's cwd"
        ),
    },
    tags=["import", "postgres", "etl"],
)
def pg_data_import():
    """
    DAG for PostgreSQL to PostgreSQL table data import.
    """

    @task
    def check_connections(**context) -> None:
        """Fail fast when either server is unreachable."""
        config = _build_config(context["params"])
        if not check_source_target_servers(config):
            raise RuntimeError("Couldn't connect to source and target DB servers")

    @task
    def run_imports(**context) -> List[Dict[str, Any]]:
        """
        Run every import job, table by table.

        Returns:
            ImportResult dicts, one per table
        """
        params = context["params"]
        imports = parse_batch(params["imports"])
        if not imports:
            logger.warning("No import jobs given, nothing to do")
            return []

        config = _build_config(params)
        logger.info(f"Import settings: {config.describe()}")
        if config.error_log_enabled:
            enable_error_log()

        results = run_batch(CopySupervisor(config), imports)
        return [r.to_dict() for r in results]

    @task
    def report_results(results: List[Dict[str, Any]]) -> str:
        """Log a summary; fail if any table moved fewer rows than it counted."""
        total_rows = sum(r["rows_moved"] for r in results)
        for r in results:
            logger.info(
                f"{r['table']}: {r['rows_moved']:,}/{r['total_rows']:,} rows "
                f"in {r['elapsed_seconds']:.2f}s [{r['mode']}]"
            )

        short = [r["table"] for r in results if r["rows_moved"] < r["total_rows"]]
        if short:
            raise ValueError(f"Tables with missing rows: {', '.join(short)}")

        status = f"Imported {len(results)} tables, {total_rows:,} rows"
        logger.info(status)
        return status

    connections_ok = check_connections()
    results = run_imports()
    connections_ok >> results
    report_results(results)


# Instantiate the DAG
pg_data_import()
