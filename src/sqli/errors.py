"""Exception hierarchy.

Execution failures (``ConnectFailedError``, ``StatementError``) are delivered
asynchronously through result cursors and connection error callbacks. Usage
errors are raised synchronously at the call site.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class SqliError(Exception):
    """Base class for every error raised by sqli."""


class ConnectFailedError(SqliError):
    """The driver could not open a connection."""

    def __init__(self, reason: str, cause: BaseException | None = None) -> None:
        """Initialize with a rendered reason and the driver's error."""
        super().__init__(f"Could not connect: {reason}")
        self.reason = reason
        self.__cause__ = cause


class StatementError(SqliError):
    """A statement failed while executing on the driver.

    Carries the failing SQL text and parameters; the driver's error is
    chained as ``__cause__``.
    """

    def __init__(
        self,
        sql: str,
        params: Sequence[Any],
        reason: str,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize with statement context and the driver's error."""
        super().__init__(f"{reason} (while executing {sql!r} with params {tuple(params)!r})")
        self.sql = sql
        self.params = tuple(params)
        self.reason = reason
        self.__cause__ = cause


class UsageError(SqliError, RuntimeError):
    """The API was misused; raised synchronously, never queued."""


class ConnectionUnavailableError(UsageError):
    """Work was submitted to a released or closed connection."""


class CursorConsumedError(UsageError):
    """A second consumer was attached to a single-use result cursor."""


class NotPausedError(UsageError):
    """``resume()`` was called on a connection that is not paused."""


class InvalidStatementError(UsageError, TypeError):
    """The SQL text passed to ``execute()`` is not a string."""


class PoolClosedError(SqliError):
    """A connection was requested from a closed pool."""
