"""
Tests for the pg_data_import DAG

Checks that the DAG loads, exposes the expected params and wires its tasks
in order.
"""

import os
import sys
import pytest

# Add parent directories to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..', 'plugins')))

from airflow.models import DagBag

DAGS_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..', 'dags'))


@pytest.fixture(scope="module")
def dag_bag():
    """Create a DagBag for testing."""
    return DagBag(dag_folder=DAGS_DIR, include_examples=False)


@pytest.fixture(scope="module")
def dag(dag_bag):
    return dag_bag.get_dag("pg_data_import")


class TestPgDataImportDag:
    """Test DAG structure and parameters."""

    def test_no_import_errors(self, dag_bag):
        errors = {path: err for path, err in dag_bag.import_errors.items() if 'pg_data_import' in path}
        assert errors == {}

    def test_dag_loaded(self, dag):
        assert dag is not None

    def test_dag_has_expected_params(self, dag):
        expected_params = [
            "source_conn_id",
            "target_conn_id",
            "imports",
            "worker_count",
            "rows_for_select",
            "rows_for_insert",
            "importer_impl",
        ]
        for param in expected_params:
            assert param in dag.params, f"Missing expected parameter: {param}"

    def test_task_order(self, dag):
        task_ids = {task.task_id for task in dag.tasks}
        assert task_ids == {"check_connections", "run_imports", "report_results"}

        assert "run_imports" in dag.get_task("check_connections").downstream_task_ids
        assert "report_results" in dag.get_task("run_imports").downstream_task_ids

    def test_no_retries(self, dag):
        """A failed import leaves partial data; it must not be retried blindly."""
        assert dag.get_task("run_imports").retries == 0
