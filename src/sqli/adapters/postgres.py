"""PostgreSQL adapter over asyncpg.

Application SQL uses ``?`` placeholders; this adapter translates them to
``$N`` at execute time. asyncpg returns results eagerly for plain queries, so
rows are forwarded once the query completes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

import asyncpg

from sqli.adapters.bridge import AsyncDriverBridge, isolation_keyword, rewrite_placeholders
from sqli.capability import IsolationLevel, Row

logger = logging.getLogger(__name__)


def replace_qmarks(sql: str) -> str:
    """Convert ``?`` placeholders to ``$1, $2, ...``, skipping quoted literals."""
    return rewrite_placeholders(sql, lambda index: f"${index}")


class PostgresCapability(AsyncDriverBridge):
    """PostgreSQL implementation of the Capability protocol."""

    async def _open(self, connection_string: str) -> asyncpg.Connection:
        conn = await asyncpg.connect(connection_string)
        logger.debug("Opened PostgreSQL connection")
        return conn

    async def _stream(
        self,
        connection: asyncpg.Connection,
        sql: str,
        params: Sequence[Any],
        on_row: Callable[[Row], None],
    ) -> None:
        for record in await connection.fetch(replace_qmarks(sql), *params):
            on_row(dict(record))

    async def _shutdown(self, connection: asyncpg.Connection) -> None:
        await connection.close()

    def begin(self, isolation: IsolationLevel | int | None) -> str:
        return f"START TRANSACTION ISOLATION LEVEL {isolation_keyword(isolation)}"

    def get_error_msg(self, error: BaseException) -> str:
        """Render an asyncpg error with its SQLSTATE code."""
        message = str(error) or type(error).__name__
        sqlstate = getattr(error, "sqlstate", None)
        if sqlstate:
            return f"{message} (SQLSTATE {sqlstate})"
        return message


def create_capability() -> PostgresCapability:
    """Create the capability registered as the ``postgres`` driver."""
    return PostgresCapability()
