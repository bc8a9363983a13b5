"""Bridge from asyncio database drivers to the callback capability interface.

Adapters implement three coroutines (open, stream, shutdown) and the SQL
generators; the bridge runs the coroutines as tasks and reports their outcome
through the capability callbacks.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Coroutine, Sequence
from typing import Any

from sqli.capability import ConnectCallback, IsolationLevel, Row

logger = logging.getLogger(__name__)

# A single-quoted literal (possibly unterminated) or a bare placeholder
_LITERAL_OR_QMARK_RE = re.compile(r"'[^']*(?:'|$)|\?")

ISOLATION_KEYWORDS = {
    IsolationLevel.READ_UNCOMMITTED: "READ UNCOMMITTED",
    IsolationLevel.READ_COMMITTED: "READ COMMITTED",
    IsolationLevel.REPEATABLE_READ: "REPEATABLE READ",
    IsolationLevel.SERIALIZABLE: "SERIALIZABLE",
}


def isolation_keyword(isolation: IsolationLevel | int | None) -> str:
    """Return the SQL keyword for an isolation level, READ COMMITTED by default."""
    if isolation is None:
        return "READ COMMITTED"
    return ISOLATION_KEYWORDS.get(isolation, "READ COMMITTED")


def rewrite_placeholders(sql: str, placeholder: Callable[[int], str]) -> str:
    """Replace each ``?`` with ``placeholder(n)``, numbering from 1.

    Question marks inside single-quoted string literals are left alone.
    Escaped quotes inside literals are not understood.
    """
    counter = 0

    def _replace(match: re.Match[str]) -> str:
        nonlocal counter
        if match.group() != "?":
            return match.group()
        counter += 1
        return placeholder(counter)

    return _LITERAL_OR_QMARK_RE.sub(_replace, sql)


class AsyncDriverBridge:
    """Base for adapters wrapping an asyncio driver.

    Subclasses implement ``_open``, ``_stream`` and ``_shutdown`` plus
    ``begin``. Savepoint, commit and rollback SQL default to the standard
    syntax.
    """

    def __init__(self) -> None:
        """Initialize with no background tasks."""
        self._tasks: set[asyncio.Task[Any]] = set()

    def _spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        callback: Callable[[BaseException | None, Any], None],
    ) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                callback(asyncio.CancelledError(), None)
                return
            error = finished.exception()
            if error is not None:
                callback(error, None)
            else:
                callback(None, finished.result())

        task.add_done_callback(_done)

    async def join(self) -> None:
        """Wait for every outstanding driver task, including closes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- capability interface --

    def connect(self, connection_string: str, callback: ConnectCallback) -> None:
        """Open a connection in the background."""
        self._spawn(self._open(connection_string), callback)

    def close(self, connection: Any) -> None:
        """Close a connection in the background."""

        def _closed(error: BaseException | None, _result: Any) -> None:
            if error is not None:
                logger.warning("Error closing connection: %s", error)

        self._spawn(self._shutdown(connection), _closed)

    def execute(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any],
        on_row: Callable[[Row], None],
        on_end: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        """Run a statement in the background, streaming rows to ``on_row``."""

        def _finished(error: BaseException | None, _result: Any) -> None:
            if error is not None:
                on_error(error)
            else:
                on_end()

        self._spawn(self._stream(connection, sql, params, on_row), _finished)

    def save(self, savepoint: str) -> str:
        return f"SAVEPOINT {savepoint}"

    def commit(self) -> str:
        return "COMMIT"

    def rollback(self, savepoint: str | None = None) -> str:
        if not savepoint:
            return "ROLLBACK"
        return f"ROLLBACK TO SAVEPOINT {savepoint}"

    # -- driver specifics --

    async def _open(self, connection_string: str) -> Any:
        raise NotImplementedError

    async def _stream(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any],
        on_row: Callable[[Row], None],
    ) -> None:
        raise NotImplementedError

    async def _shutdown(self, connection: Any) -> None:
        raise NotImplementedError
