"""Uniform, promise-like SQL interface over SQLite, PostgreSQL and MySQL."""

from sqli.capability import Capability, ErrorTranslator, IsolationLevel
from sqli.connection import ConnectionPromise, ConnectionState
from sqli.cursor import ResultCursor
from sqli.errors import (
    ConnectFailedError,
    ConnectionUnavailableError,
    CursorConsumedError,
    InvalidStatementError,
    NotPausedError,
    PoolClosedError,
    SqliError,
    StatementError,
    UsageError,
)
from sqli.pool import ConnectionPool, PoolSettings
from sqli.registry import Driver, DriverLoadResult, get_driver, load_drivers, register

READ_UNCOMMITTED = IsolationLevel.READ_UNCOMMITTED
READ_COMMITTED = IsolationLevel.READ_COMMITTED
REPEATABLE_READ = IsolationLevel.REPEATABLE_READ
SERIALIZABLE = IsolationLevel.SERIALIZABLE

__all__ = [
    "READ_COMMITTED",
    "READ_UNCOMMITTED",
    "REPEATABLE_READ",
    "SERIALIZABLE",
    "Capability",
    "ConnectFailedError",
    "ConnectionPool",
    "ConnectionPromise",
    "ConnectionState",
    "ConnectionUnavailableError",
    "CursorConsumedError",
    "Driver",
    "DriverLoadResult",
    "ErrorTranslator",
    "InvalidStatementError",
    "IsolationLevel",
    "NotPausedError",
    "PoolClosedError",
    "PoolSettings",
    "ResultCursor",
    "SqliError",
    "StatementError",
    "UsageError",
    "get_driver",
    "load_drivers",
    "register",
]
