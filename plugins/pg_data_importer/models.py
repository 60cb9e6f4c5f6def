"""
Import Data Model

Immutable descriptors shared between the supervisor and its workers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Optional, Tuple

from pg_data_importer.config import ConnectionParams, TransferStrategyType


@dataclass(frozen=True)
class RowRange:
    """Contiguous slice [offset, offset + limit) of the filtered, ordered row set."""

    offset: int
    limit: int

    def __post_init__(self):
        if self.offset < 0 or self.limit < 0:
            raise ValueError(
                f"RowRange offset and limit must be >= 0 (got offset={self.offset}, limit={self.limit})"
            )

    @property
    def end(self) -> int:
        return self.offset + self.limit


@dataclass(frozen=True)
class ImportJob:
    """
    Everything a worker needs to copy one table.

    Built once per table and shared read-only by all workers. ``order_key``
    holds the columns of a unique constraint when one is known; it is bound
    with ``dataclasses.replace`` before any worker starts.
    """

    schema: str
    table: str
    source: ConnectionParams
    target: ConnectionParams
    strategy: TransferStrategyType = TransferStrategyType.STREAM
    where_clause: Optional[str] = None
    order_key: Optional[Tuple[str, ...]] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"

    @property
    def has_filter(self) -> bool:
        return bool(self.where_clause and self.where_clause.strip())


class DBConnections(NamedTuple):
    """Source/target psycopg2 connection pair owned by a single worker."""

    source: Any
    target: Any


@dataclass(frozen=True)
class ImportResult:
    """Outcome of one table import."""

    schema: str
    table: str
    total_rows: int
    rows_moved: int
    elapsed_seconds: float
    mode: str
    timestamp: str = field(default='')

    @property
    def rows_per_second(self) -> float:
        return self.rows_moved / self.elapsed_seconds if self.elapsed_seconds > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'table': f"{self.schema}.{self.table}",
            'total_rows': self.total_rows,
            'rows_moved': self.rows_moved,
            'elapsed_seconds': self.elapsed_seconds,
            'avg_rows_per_second': self.rows_per_second,
            'mode': self.mode,
            'timestamp': self.timestamp,
        }
