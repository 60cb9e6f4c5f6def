"""
Tests for the Single-Stream Fallback

Re-batching of COPY output into complete lines and the whole-table copy
flow over one mocked connection pair.
"""

from contextlib import contextmanager

import psycopg2
import pytest
from pg_data_importer.exceptions import QueryExecutionError
from pg_data_importer.single_stream import BatchingWriter, SingleStreamFallback

from .conftest import render


class TestBatchingWriter:
    """Test line-complete batching of a COPY stream."""

    def _writer(self, max_batch):
        flushed = []
        return BatchingWriter(max_batch, lambda data, rows: flushed.append((data, rows))), flushed

    def test_flushes_every_max_batch_rows(self):
        writer, flushed = self._writer(2)
        for i in range(5):
            writer.write(f"{i}\tv{i}\n".encode())
        writer.close()

        assert [rows for _, rows in flushed] == [2, 2, 1]
        assert b''.join(data for data, _ in flushed) == b''.join(
            f"{i}\tv{i}\n".encode() for i in range(5)
        )

    def test_partial_lines_kept_together(self):
        """A row split across writes is never cut in two."""
        writer, flushed = self._writer(1)
        writer.write(b"1\tab")
        assert flushed == []
        writer.write(b"c\n2\t")
        writer.write(b"d\n")
        writer.close()

        assert flushed == [(b"1\tabc\n", 1), (b"2\td\n", 1)]

    def test_many_rows_in_one_write(self):
        writer, flushed = self._writer(3)
        writer.write(b"".join(b"%d\n" % i for i in range(7)))
        writer.close()

        assert [rows for _, rows in flushed] == [3, 3, 1]

    def test_close_without_data(self):
        writer, flushed = self._writer(10)
        writer.close()
        assert flushed == []

    def test_text_writes_encoded(self):
        writer, flushed = self._writer(1)
        writer.write("é\n")
        assert flushed == [("é\n".encode('utf-8'), 1)]

    def test_invalid_batch(self):
        with pytest.raises(ValueError):
            BatchingWriter(0, lambda data, rows: None)


class TestSingleStreamFallback:
    """Whole-table copy over a single connection pair."""

    def _factory(self, connections):
        opened = []

        @contextmanager
        def factory(job):
            opened.append(job)
            yield connections

        return factory, opened

    def test_whole_table_copied_in_batches(self, job, mock_connections):
        connections, source_cursor, target_cursor = mock_connections

        def export(query, writer):
            for i in range(2500):
                writer.write(b"%d\trow\n" % i)

        source_cursor.copy_expert.side_effect = export
        loaded = []
        target_cursor.copy_expert.side_effect = lambda query, buf: loaded.append(buf.read().count(b"\n"))

        factory, opened = self._factory(connections)
        rows = SingleStreamFallback(connection_factory=factory).run(job, 2500, 1000)

        assert rows == 2500
        assert loaded == [1000, 1000, 500]
        assert connections.target.commit.call_count == 3
        assert len(opened) == 1

    def test_export_query_is_unbounded(self, job, mock_connections):
        connections, source_cursor, _ = mock_connections
        factory, _ = self._factory(connections)

        SingleStreamFallback(connection_factory=factory).run(job, 0, 1000)

        query = render(source_cursor.copy_expert.call_args[0][0])
        assert query == 'COPY (SELECT * FROM "public"."orders") TO STDOUT'

    def test_export_error_wrapped(self, job, mock_connections):
        connections, source_cursor, _ = mock_connections
        source_cursor.copy_expert.side_effect = psycopg2.OperationalError("terminating connection")
        factory, _ = self._factory(connections)

        with pytest.raises(QueryExecutionError) as exc_info:
            SingleStreamFallback(connection_factory=factory).run(job, 10, 5)

        assert 'bulk export from public.orders' in exc_info.value.message
