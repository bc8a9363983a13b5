"""SQLite adapter over aiosqlite.

The connection string is the database filename (or ``:memory:``). No SQL
translation is needed: SQLite natively uses ``?`` placeholders.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import aiosqlite

from sqli.adapters.bridge import AsyncDriverBridge
from sqli.capability import IsolationLevel, Row

logger = logging.getLogger(__name__)


class SQLiteCapability(AsyncDriverBridge):
    """SQLite implementation of the Capability protocol.

    Connections are opened in autocommit mode (``isolation_level=None``) so
    the only transactions are the ones started by ``begin``.
    """

    async def _open(self, connection_string: str) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(connection_string, isolation_level=None)
        try:
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys=ON")
        except Exception:
            await conn.close()
            raise
        logger.debug("Opened SQLite database %s", connection_string)
        return conn

    async def _stream(
        self,
        connection: aiosqlite.Connection,
        sql: str,
        params: Sequence[Any],
        on_row: Callable[[Row], None],
    ) -> None:
        async with connection.execute(sql, params) as cursor:
            async for row in cursor:
                on_row(dict(row))

    async def _shutdown(self, connection: aiosqlite.Connection) -> None:
        await connection.close()

    def begin(self, isolation: IsolationLevel | int | None) -> str:
        """Return the BEGIN statement for an isolation level.

        SQLite transactions are always serializable; the stronger levels map
        to taking the write lock early.
        """
        if isolation == IsolationLevel.REPEATABLE_READ:
            return "BEGIN IMMEDIATE TRANSACTION"
        if isolation == IsolationLevel.SERIALIZABLE:
            return "BEGIN EXCLUSIVE TRANSACTION"
        return "BEGIN TRANSACTION"

    def rollback(self, savepoint: str | None = None) -> str:
        if not savepoint:
            return "ROLLBACK"
        return f"ROLLBACK TO {savepoint}"


def create_capability() -> SQLiteCapability:
    """Create the capability registered as the ``sqlite`` driver."""
    return SQLiteCapability()
