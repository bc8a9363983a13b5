"""Single-use lazy result cursors.

A statement's driver callbacks are funnelled into a tagged event channel
(row / end / error) consumed by exactly one ``ResultCursor``. The cursor
buffers rows until a consumer is attached, then streams or materializes them
depending on the consumption method.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqli.capability import Row
from sqli.errors import CursorConsumedError


class EventKind(Enum):
    """Tag of a statement event."""

    ROW = "row"
    END = "end"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StatementEvent:
    """One notification from a running statement."""

    kind: EventKind
    row: Row | None = None
    error: BaseException | None = None

    @classmethod
    def of_row(cls, row: Row) -> StatementEvent:
        return cls(EventKind.ROW, row=row)

    @classmethod
    def of_end(cls) -> StatementEvent:
        return cls(EventKind.END)

    @classmethod
    def of_error(cls, error: BaseException) -> StatementEvent:
        return cls(EventKind.ERROR, error=error)


def _noop() -> None:
    pass


class ResultCursor:
    """Future result of one statement, consumable exactly once.

    Exactly one of ``all``, ``each``, ``first``, ``scalar`` may be attached.
    ``then`` is independent and may be combined with any of them. Every
    method returns the cursor so calls can be chained.
    """

    def __init__(self) -> None:
        """Initialize an empty cursor waiting for statement events."""
        self._buffer: list[Row] | None = []
        self._error: BaseException | None = None
        self._finished = False
        self._consumer: Callable[[], None] | None = None
        self._then: Callable[[], None] | None = None
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def finished(self) -> bool:
        """Whether the statement has ended or failed."""
        return self._finished

    @property
    def error(self) -> BaseException | None:
        """The statement's error, once it has failed."""
        return self._error

    def handle(self, event: StatementEvent) -> None:
        """Apply one statement event. The statement's only event sink."""
        if self._finished:
            return
        if event.kind is EventKind.ROW:
            if self._buffer is None:
                return
            self._buffer.append(event.row or {})
        elif event.kind is EventKind.END:
            self._finished = True
        else:
            self._error = event.error
            self._finished = True
        try:
            self._flush()
        finally:
            if self._finished:
                self._wake_waiters()

    def _wake_waiters(self) -> None:
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(None)

    def _flush(self) -> None:
        if self._consumer is not None:
            self._consumer()
        if self._then is not None and self._finished:
            self._then()

    def _consume(self, consumer: Callable[[], None]) -> ResultCursor:
        if self._consumer is not None:
            raise CursorConsumedError("Result callback already set")
        self._consumer = consumer
        self._flush()
        return self

    def all(self, callback: Callable[[list[Row]], Any]) -> ResultCursor:
        """Wait for every row and pass them, in order, to ``callback``.

        The callback is not invoked when the statement fails; attach ``then``
        to observe the error.
        """

        def deliver() -> None:
            if not self._finished or self._buffer is None:
                return
            rows, self._buffer = self._buffer, None
            if self._error is None:
                callback(rows)

        return self._consume(deliver)

    def each(self, callback: Callable[[Row], Any]) -> ResultCursor:
        """Call ``callback`` with every row as soon as it is available."""

        def deliver() -> None:
            if self._buffer is None:
                return
            if self._error is not None:
                # rows still buffered when the error arrived are never delivered
                self._buffer = None
                return
            while self._buffer:
                callback(self._buffer.pop(0))

        return self._consume(deliver)

    def first(self, callback: Callable[[Row | None], Any]) -> ResultCursor:
        """Call ``callback`` with the first row and discard the rest.

        When the statement finishes without producing a row (successfully
        or not) the callback receives ``None``.
        """

        def deliver() -> None:
            if self._buffer is None:
                return
            if self._buffer:
                row = self._buffer[0]
                self._buffer = None
                callback(row)
            elif self._finished:
                self._buffer = None
                callback(None)

        return self._consume(deliver)

    def scalar(self, callback: Callable[[Any], Any]) -> ResultCursor:
        """Call ``callback`` with the first column of the first row.

        Only meaningful for single-column results; receives ``None`` when
        there is no row.
        """

        def extract(row: Row | None) -> None:
            if row is None:
                callback(None)
            else:
                callback(next(iter(row.values()), None))

        return self.first(extract)

    def then(self, callback: Callable[[BaseException | None], Any]) -> ResultCursor:
        """Call ``callback(error)`` once the statement has fully resolved."""
        if self._then is not None:
            raise CursorConsumedError("'then' callback already set")
        fired = False

        def done() -> None:
            nonlocal fired
            if not fired:
                fired = True
                callback(self._error)

        self._then = done
        self._flush()
        return self

    def cancel(self) -> None:
        """Stop row delivery; pending and future rows are discarded.

        Counts as the cursor's consumer. ``then`` still fires.
        """
        self._buffer = None
        if self._consumer is None:
            self._consumer = _noop

    # -- awaitable surface --

    def __await__(self) -> Generator[Any, None, None]:
        """Wait for the statement to resolve, raising its error."""
        return self._wait().__await__()

    async def _wait(self) -> None:
        # independent of the then slot
        if not self._finished:
            future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._waiters.append(future)
            await future
        if self._error is not None:
            raise self._error

    async def fetchall(self) -> list[Row]:
        """Wait for and return every row."""
        rows: list[Row] = []
        self.all(rows.extend)
        await self._wait()
        return rows

    async def fetchone(self) -> Row | None:
        """Return the first row, or None if there is none."""
        found: list[Row | None] = []
        self.first(found.append)
        await self._wait()
        return found[0] if found else None

    async def fetchval(self) -> Any:
        """Return the first column of the first row, or None."""
        found: list[Any] = []
        self.scalar(found.append)
        await self._wait()
        return found[0] if found else None
