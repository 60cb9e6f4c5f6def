"""
Row Range Planning

Splits a table's filtered row set into one contiguous range per worker and
splits each worker range into bounded fetches. Both planners assume the rows
are read with a stable ORDER BY; without one, OFFSET/LIMIT windows may
overlap or miss rows.
"""

from typing import Iterator, List

from pg_data_importer.models import RowRange


def plan_partitions(total_rows: int, worker_count: int) -> List[RowRange]:
    """
    Divide ``total_rows`` into ``worker_count`` disjoint, ordered ranges.

    Every worker but the last gets ``total_rows // worker_count`` rows; the
    last one absorbs the remainder. With a large ``worker_count`` and a
    remainder close to it, the last range can be almost twice the others.

    Args:
        total_rows: Number of rows matching the import filter
        worker_count: Number of parallel workers

    Returns:
        List of RowRange, empty when there is nothing to import

    Raises:
        ValueError: If total_rows is negative or worker_count is below 1

    Examples:
        >>> [(r.offset, r.limit) for r in plan_partitions(10, 3)]
        [(0, 3), (3, 3), (6, 4)]
    """
    if total_rows < 0:
        raise ValueError(f"total_rows must be >= 0 (got {total_rows})")
    if worker_count < 1:
        raise ValueError(f"worker_count must be >= 1 (got {worker_count})")

    if total_rows == 0:
        return []

    rows_per_worker = total_rows // worker_count
    partitions = []
    offset = 0

    for worker_num in range(worker_count):
        if worker_num == worker_count - 1:
            limit = total_rows - offset
        else:
            limit = rows_per_worker
        partitions.append(RowRange(offset=offset, limit=limit))
        offset += limit

    return partitions


def iter_chunks(row_range: RowRange, max_batch: int) -> Iterator[RowRange]:
    """
    Lazily yield sub-ranges of ``row_range`` holding at most ``max_batch`` rows.

    Sub-ranges come out in ascending offset order and never run past the end
    of the parent range. Call again for a fresh sequence.

    Examples:
        >>> [(c.offset, c.limit) for c in iter_chunks(RowRange(100, 25), 10)]
        [(100, 10), (110, 10), (120, 5)]
    """
    if max_batch <= 0:
        raise ValueError(f"max_batch must be > 0 (got {max_batch})")

    offset = row_range.offset
    end = row_range.end
    while offset < end:
        limit = min(max_batch, end - offset)
        yield RowRange(offset=offset, limit=limit)
        offset += limit
