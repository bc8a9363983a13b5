"""Driver capability protocol: the contract a database adapter implements.

The connection core programs against these protocols. Each adapter (SQLite,
Postgres, MySQL) provides a concrete implementation. SQL dialect differences
(placeholders, transaction syntax) are handled inside the adapter, not in the
core.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]
ConnectCallback = Callable[[BaseException | None, Any], None]


class IsolationLevel(IntEnum):
    """Transaction isolation levels accepted by ``begin``.

    The DBMS may not support all of them; adapters map unsupported levels to
    the closest one they have.
    """

    READ_UNCOMMITTED = 0
    READ_COMMITTED = 1
    REPEATABLE_READ = 2
    SERIALIZABLE = 3


@runtime_checkable
class Capability(Protocol):
    """Callback-style access to one database family."""

    def connect(self, connection_string: str, callback: ConnectCallback) -> None:
        """Start opening a connection; call ``callback(error, connection)`` when done."""
        ...

    def close(self, connection: Any) -> None:
        """Tear down a connection without waiting."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: Sequence[Any],
        on_row: Callable[[Row], None],
        on_end: Callable[[], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        """Run one statement, streaming rows to ``on_row``.

        Exactly one of ``on_end`` / ``on_error`` is called when the statement
        finishes.
        """
        ...

    def begin(self, isolation: IsolationLevel | int | None) -> str | Sequence[str]:
        """Return the SQL that starts a transaction."""
        ...

    def save(self, savepoint: str) -> str:
        """Return the SQL that creates a savepoint."""
        ...

    def commit(self) -> str:
        """Return the SQL that commits the current transaction."""
        ...

    def rollback(self, savepoint: str | None = None) -> str:
        """Return the SQL that rolls back the transaction or to a savepoint."""
        ...


@runtime_checkable
class ErrorTranslator(Protocol):
    """Optional capability extension rendering driver errors for humans."""

    def get_error_msg(self, error: BaseException) -> str:
        """Return a readable message for a driver error."""
        ...


def render_error(capability: Capability, error: BaseException) -> str:
    """Render a driver error, preferring the adapter's own translation."""
    if isinstance(capability, ErrorTranslator):
        return capability.get_error_msg(error)
    return str(error) or type(error).__name__
