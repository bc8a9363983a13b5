"""Connection promise: a usable connection whose driver handle may not exist yet.

Statements submitted to a ``ConnectionPromise`` are queued and sent to the
real connection, one at a time and in submission order, as soon as it is
available. A failing statement pauses the queue until the caller resumes it
or rolls back; only ``release()``/``close()`` make the connection unusable.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any

from sqli.capability import Capability, IsolationLevel, Row, render_error
from sqli.cursor import ResultCursor, StatementEvent
from sqli.errors import (
    ConnectFailedError,
    ConnectionUnavailableError,
    InvalidStatementError,
    NotPausedError,
    SqliError,
    StatementError,
)
from sqli.scheduler import Scheduler, default_scheduler

logger = logging.getLogger(__name__)

Disposer = Callable[[Any], None]


class ConnectionState(Enum):
    """Lifecycle of a connection promise."""

    AWAITING = "awaiting"
    READY = "ready"
    PAUSED = "paused"
    RELEASED = "released"


@dataclass(slots=True)
class Statement:
    """SQL text, its parameters and the sink receiving its events."""

    sql: str
    params: tuple[Any, ...]
    sink: Callable[[StatementEvent], None]

    @classmethod
    def create(
        cls,
        sql: str,
        params: Sequence[Any] | None,
        sink: Callable[[StatementEvent], None],
    ) -> Statement:
        """Build a statement, treating missing parameters as none."""
        return cls(sql=sql, params=tuple(params) if params else (), sink=sink)


class ConnectionPromise:
    """Future connection that can be used immediately.

    ``releaser`` is called with the driver connection to hand it back to its
    provider; ``closer`` destroys it. Exactly one of them fires, once, on the
    first ``release()`` or ``close()``. If the connection has not resolved
    yet they receive ``None`` and the provider disposes of the connection
    when it arrives.
    """

    def __init__(
        self,
        capability: Capability,
        releaser: Disposer,
        closer: Disposer,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize an unresolved promise."""
        self._capability = capability
        self._releaser = releaser
        self._closer = closer
        self._scheduler = scheduler or default_scheduler

        self._state = ConnectionState.AWAITING
        self._queue: deque[Statement] = deque()
        self._connection: Any = None
        self._connected = False
        self._resolved = False
        self._released = False
        self._error: SqliError | None = None
        self._pending: Statement | None = None
        self._drain_scheduled = False
        self._in_transaction = False
        self._disposer: Disposer | None = None

        self._ready_callback: Callable[[], Any] | None = None
        self._ready_handled = False
        self._error_callback: Callable[[SqliError], Any] | None = None
        self._error_handled = False

    # -- introspection --

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def in_transaction(self) -> bool:
        """Whether ``begin()`` was issued without a matching commit/rollback."""
        return self._in_transaction

    @property
    def current_error(self) -> SqliError | None:
        """The error pausing the connection, if any."""
        return self._error

    @property
    def queued(self) -> int:
        """Number of statements waiting behind the pending one."""
        return len(self._queue)

    # -- transitions --

    def resolve(self, error: BaseException | None, connection: Any = None) -> None:
        """Deliver the outcome of connecting. Only the first call counts."""
        if self._resolved:
            return
        self._resolved = True
        if self._released:
            return
        if error is not None:
            self._pause(ConnectFailedError(render_error(self._capability, error), error))
            logger.warning("Connection failed: %s", self._error)
            self._discard_queue(self._error)
        else:
            self._connection = connection
            self._connected = True
            self._state = ConnectionState.READY
            if self._queue:
                self._run_if_next(self._queue[0])
        self._callbacks()

    def _pause(self, error: SqliError) -> None:
        if self._released:
            return
        self._error = error
        self._error_handled = False
        self._state = ConnectionState.PAUSED

    def _unpause(self) -> None:
        self._error = None
        self._error_handled = False
        self._state = ConnectionState.READY

    def _check_state(self) -> None:
        if self._released:
            raise self._unavailable()

    def _unavailable(self) -> ConnectionUnavailableError:
        if self._error is not None:
            reason = getattr(self._error, "reason", str(self._error))
            return ConnectionUnavailableError(f"Connection is broken due to an error: {reason}")
        return ConnectionUnavailableError("Connection is no longer available")

    def _callbacks(self) -> None:
        if self._error_callback is not None and self._error is not None and not self._error_handled:
            self._error_handled = True
            self._error_callback(self._error)
        if self._ready_callback is not None and self._connected and not self._ready_handled:
            self._ready_handled = True
            self._ready_callback()

    def _discard_queue(self, error: BaseException) -> None:
        discarded = list(self._queue)
        self._queue.clear()
        if discarded:
            logger.debug("Discarding %d queued statements", len(discarded))
        for stmt in discarded:
            stmt.sink(StatementEvent.of_error(error))

    # -- queue runner --

    def _can_run(self) -> bool:
        return (
            self._pending is None
            and self._connected
            and self._error is None
            and not self._released
        )

    def _run_if_next(self, stmt: Statement) -> None:
        if self._can_run() and self._queue and self._queue[0] is stmt:
            self._run(self._queue.popleft())

    def _schedule(self) -> None:
        if self._queue and not self._drain_scheduled:
            self._drain_scheduled = True
            self._scheduler.call_soon(self._drain)

    def _drain(self) -> None:
        self._drain_scheduled = False
        if self._can_run() and self._queue:
            self._run(self._queue.popleft())

    def _run(self, stmt: Statement) -> None:
        self._pending = stmt
        logger.debug("Executing %s", stmt.sql)

        def on_row(row: Row) -> None:
            if self._pending is stmt:
                stmt.sink(StatementEvent.of_row(row))

        def on_end() -> None:
            if self._pending is not stmt:
                return
            try:
                stmt.sink(StatementEvent.of_end())
            finally:
                self._advance()

        def on_error(error: BaseException) -> None:
            if self._pending is not stmt:
                return
            failure = self._error
            if failure is None:
                reason = render_error(self._capability, error)
                failure = StatementError(stmt.sql, stmt.params, reason, error)
                if not self._released:
                    self._pause(failure)
                    logger.debug("Statement failed, pausing connection: %s", failure)
            try:
                stmt.sink(StatementEvent.of_error(failure))
            finally:
                self._advance()

        try:
            self._capability.execute(
                self._connection, stmt.sql, stmt.params, on_row, on_end, on_error
            )
        except Exception as exc:
            # raised by a result callback after the statement already finished
            if self._pending is not stmt:
                raise
            on_error(exc)

    def _advance(self) -> None:
        self._pending = None
        if self._released:
            self._dispose()
        else:
            self._schedule()
        self._callbacks()

    def _dispose(self) -> None:
        disposer, self._disposer = self._disposer, None
        if disposer is not None:
            disposer(self._connection)

    def _finish(self, disposer: Disposer) -> None:
        if self._released:
            return
        if self._in_transaction:
            logger.warning("Connection released with an open transaction")
        self._released = True
        self._state = ConnectionState.RELEASED
        self._disposer = disposer
        self._discard_queue(self._unavailable())
        # an in-flight statement keeps the connection until it finishes
        if self._pending is None:
            self._dispose()

    def _enqueue(self, sql: str, params: Sequence[Any] | None = None) -> ResultCursor:
        cursor = ResultCursor()
        stmt = Statement.create(sql, params, cursor.handle)
        self._queue.append(stmt)
        if self._resolved and not self._connected and self._error is not None:
            # never connected, so nothing can ever run
            self._discard_queue(self._error)
        else:
            self._run_if_next(stmt)
        return cursor

    # -- public API --

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> ResultCursor:
        """Schedule a SQL statement for execution.

        ``params`` are bound to the ``?`` placeholders in ``sql``. Returns a
        cursor for the statement's future result. Execution errors never
        raise here; they are delivered through the cursor and the
        connection's error callback.
        """
        self._check_state()
        if not isinstance(sql, str):
            raise InvalidStatementError(f"SQL must be a string, got {type(sql).__name__}")
        return self._enqueue(sql, params)

    def begin(self, isolation: IsolationLevel | int | None = None) -> ResultCursor:
        """Start a transaction with the given isolation level.

        Acceptable values (the DBMS may not support all): read uncommitted,
        read committed (default), repeatable read, serializable.
        """
        self._check_state()
        sql = self._capability.begin(isolation)
        statements = [sql] if isinstance(sql, str) else list(sql)
        self._in_transaction = True
        cursors = [self._enqueue(text) for text in statements]
        return cursors[-1]

    def commit(self) -> ResultCursor:
        """Commit the current transaction."""
        self._check_state()
        self._in_transaction = False
        return self._enqueue(self._capability.commit())

    def save(self, savepoint: str) -> ResultCursor:
        """Create a savepoint that ``rollback`` can revert to."""
        self._check_state()
        return self._enqueue(self._capability.save(savepoint))

    def rollback(self, savepoint: str | None = None) -> ResultCursor:
        """Revert to ``savepoint``, or the whole transaction when omitted.

        On a paused connection the statements queued before the rollback are
        abandoned and the error is cleared, so the rollback runs next.
        """
        self._check_state()
        if self._state is ConnectionState.PAUSED and self._error is not None:
            self._discard_queue(self._error)
            if self._connected:
                self._unpause()
        if savepoint is None:
            self._in_transaction = False
        return self._enqueue(self._capability.rollback(savepoint))

    def resume(self, reset: bool = False) -> None:
        """Clear the pausing error and continue the queue.

        With ``reset`` the queued statements are discarded instead.
        """
        self._check_state()
        if self._state is not ConnectionState.PAUSED or self._error is None:
            raise NotPausedError("Connection is not paused")
        if not self._connected:
            raise self._unavailable()
        error = self._error
        self._unpause()
        if reset:
            self._discard_queue(error)
        self._schedule()

    def release(self) -> None:
        """Return the connection to its pool, or close it if it has none."""
        self._finish(self._releaser)

    def close(self) -> None:
        """Close the connection."""
        self._finish(self._closer)

    def ready(self, callback: Callable[[], Any]) -> ConnectionPromise:
        """Set a handler invoked once the connection is established."""
        self._ready_callback = callback
        self._callbacks()
        return self

    def error(self, callback: Callable[[SqliError], Any]) -> ConnectionPromise:
        """Set a handler invoked for each error that pauses the connection.

        A pending error is reported immediately.
        """
        self._error_callback = callback
        self._callbacks()
        return self

    async def __aenter__(self) -> ConnectionPromise:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
