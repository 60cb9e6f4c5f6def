"""
Importer Configuration

Resolves the settings of an import run once, at startup. Values are taken
from, in increasing priority:

1. Defaults defined in this module
2. Legacy per-field environment variables (SOURCE_DB_HOST, TARGET_DB_PORT, ...)
3. Connection URL environment variables (SOURCE_DB_CONNECTION, TARGET_DB_CONNECTION)
   and the tuning variables (MAX_THREADS, ROWS_FOR_INSERT, ROWS_FOR_SELECT,
   ERROR_LOG, IMPORTER_IMPL)
4. Explicit overrides (CLI flags or DAG params)

The resolved ImportConfig is immutable and is passed explicitly to every
component that needs it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional
import logging
import os
import re

logger = logging.getLogger(__name__)

# Default connections: [user[:password]@][host][:port][/dbname]
SOURCE_DB_CONNECTION = "postgres@localhost:5432/postgres"
TARGET_DB_CONNECTION = "postgres@localhost:5555/postgres"

DEFAULT_MAX_THREADS = 8
DEFAULT_ROWS_FOR_INSERT = 1000
DEFAULT_ROWS_FOR_SELECT = 10000
DEFAULT_ERROR_LOG_ENABLED = False
DEFAULT_IMPORTER_IMPL = "STREAM"

# Seconds to wait when opening a connection
CONNECT_TIMEOUT = 10

_CONNECTION_URL_PATTERN = re.compile(r'^([^@:]+)(:[^@]+)?@([^:/]+):([^/]+)(/.+)?$')

_TRUE_VALUES = ('true', '1', 'yes', 'on')
_FALSE_VALUES = ('false', '0', 'no', 'off')


class TransferStrategyType(Enum):
    """How rows are moved from source to target."""

    STREAM = "STREAM"
    TRANSCODE = "TRANSCODE"

    @classmethod
    def parse(cls, value: Any) -> "TransferStrategyType":
        """
        Parse a strategy name, case-insensitive.

        COPY and QUERY are accepted as aliases of STREAM and TRANSCODE.
        """
        if isinstance(value, cls):
            return value

        name = str(value).strip().upper()
        aliases = {'COPY': cls.STREAM, 'QUERY': cls.TRANSCODE}
        if name in aliases:
            return aliases[name]
        try:
            return cls(name)
        except ValueError:
            raise ValueError(
                f"Invalid importer implementation '{value}': "
                f"expected one of STREAM, TRANSCODE (or COPY, QUERY)"
            )


@dataclass(frozen=True)
class ConnectionParams:
    """Connection descriptor for one PostgreSQL server."""

    user: str
    password: str
    host: str
    port: int
    dbname: str

    @classmethod
    def from_url(cls, url: str) -> "ConnectionParams":
        """
        Parse ``user[:password]@host:port[/dbname]``.

        Examples:
            >>> ConnectionParams.from_url("postgres:secret@db:5432/sales").host
            'db'
        """
        match = _CONNECTION_URL_PATTERN.match(url.strip())
        if not match:
            raise ValueError(f"Connection URL is invalid: {url}")

        user, password, host, port, dbname = match.groups()
        if not port.isdigit():
            raise ValueError(f"Connection URL is invalid: {url} (port must be numeric)")

        return cls(
            user=user,
            password=password[1:] if password else '',
            host=host,
            port=int(port),
            dbname=dbname[1:] if dbname else 'postgres',
        )

    @classmethod
    def from_airflow_connection(cls, conn_id: str) -> "ConnectionParams":
        """
        Build connection params from an Airflow connection.

        Airflow stores the PostgreSQL database name in the connection's
        ``schema`` field.
        """
        from airflow.providers.postgres.hooks.postgres import PostgresHook

        conn = PostgresHook.get_connection(conn_id)
        return cls(
            user=conn.login or 'postgres',
            password=conn.password or '',
            host=conn.host or 'localhost',
            port=int(conn.port or 5432),
            dbname=conn.schema or conn.login or 'postgres',
        )

    def connect_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``psycopg2.connect``."""
        return {
            'host': self.host,
            'port': self.port,
            'dbname': self.dbname,
            'user': self.user,
            'password': self.password,
            'connect_timeout': CONNECT_TIMEOUT,
        }

    def masked(self) -> str:
        """Render the connection for logs with the password hidden."""
        password = '**HIDDEN**' if self.password else ''
        return (
            f"host='{self.host}' port='{self.port}' dbname='{self.dbname}' "
            f"user='{self.user}' password='{password}'"
        )

    def __repr__(self) -> str:
        return f"ConnectionParams({self.masked()})"


@dataclass(frozen=True)
class ImportConfig:
    """Resolved settings shared by every table import of a run."""

    source: ConnectionParams
    target: ConnectionParams
    worker_count: int = DEFAULT_MAX_THREADS
    rows_for_select: int = DEFAULT_ROWS_FOR_SELECT
    rows_for_insert: int = DEFAULT_ROWS_FOR_INSERT
    strategy: TransferStrategyType = TransferStrategyType.STREAM
    error_log_enabled: bool = DEFAULT_ERROR_LOG_ENABLED

    def __post_init__(self):
        for name in ('worker_count', 'rows_for_select', 'rows_for_insert'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{name} must be an integer >= 1 (got {value!r})")

    def describe(self) -> Dict[str, Any]:
        """Summary safe for logging (passwords hidden)."""
        return {
            'source': self.source.masked(),
            'target': self.target.masked(),
            'worker_count': self.worker_count,
            'rows_for_select': self.rows_for_select,
            'rows_for_insert': self.rows_for_insert,
            'strategy': self.strategy.value,
            'error_log_enabled': self.error_log_enabled,
        }


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Couldn't parse the value of env var {key}={raw} as an integer")


def _env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or raw == '':
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Couldn't parse the value of env var {key}={raw} as a boolean")


def _legacy_connection(environ: Mapping[str, str], prefix: str, default_url: str) -> ConnectionParams:
    """Apply the legacy <PREFIX>_DB_HOST/PORT/USER/PASS/DATABASE variables over a default URL."""
    base = ConnectionParams.from_url(default_url)
    port = _env_int(environ, f"{prefix}_DB_PORT", base.port)
    return ConnectionParams(
        user=environ.get(f"{prefix}_DB_USER", base.user),
        password=environ.get(f"{prefix}_DB_PASS", base.password),
        host=environ.get(f"{prefix}_DB_HOST", base.host),
        port=port,
        dbname=environ.get(f"{prefix}_DB_DATABASE", base.dbname),
    )


def _resolve_connection(
    environ: Mapping[str, str],
    prefix: str,
    default_url: str,
    override: Optional[Any],
) -> ConnectionParams:
    if isinstance(override, ConnectionParams):
        return override
    if override:
        return ConnectionParams.from_url(override)

    url = environ.get(f"{prefix}_DB_CONNECTION")
    if url:
        return ConnectionParams.from_url(url)

    return _legacy_connection(environ, prefix, default_url)


def resolve_import_config(
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ImportConfig:
    """
    Build the ImportConfig for this run.

    Args:
        overrides: Explicit values (keys: source, target, worker_count,
            rows_for_select, rows_for_insert, strategy, error_log_enabled).
            None values are ignored.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Resolved, validated ImportConfig

    Raises:
        ValueError: If any value is malformed or out of range
    """
    environ = os.environ if environ is None else environ
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    config = ImportConfig(
        source=_resolve_connection(environ, 'SOURCE', SOURCE_DB_CONNECTION, overrides.get('source')),
        target=_resolve_connection(environ, 'TARGET', TARGET_DB_CONNECTION, overrides.get('target')),
        worker_count=overrides.get(
            'worker_count', _env_int(environ, 'MAX_THREADS', DEFAULT_MAX_THREADS)),
        rows_for_select=overrides.get(
            'rows_for_select', _env_int(environ, 'ROWS_FOR_SELECT', DEFAULT_ROWS_FOR_SELECT)),
        rows_for_insert=overrides.get(
            'rows_for_insert', _env_int(environ, 'ROWS_FOR_INSERT', DEFAULT_ROWS_FOR_INSERT)),
        strategy=TransferStrategyType.parse(
            overrides.get('strategy', environ.get('IMPORTER_IMPL') or DEFAULT_IMPORTER_IMPL)),
        error_log_enabled=overrides.get(
            'error_log_enabled', _env_bool(environ, 'ERROR_LOG', DEFAULT_ERROR_LOG_ENABLED)),
    )

    logger.debug(f"Resolved import config: {config.describe()}")
    return config
