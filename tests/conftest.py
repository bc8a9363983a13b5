"""Shared test fixtures."""

from collections import deque

import pytest
import pytest_asyncio

from sqli.adapters.sqlite import SQLiteCapability
from sqli.connection import ConnectionPromise
from sqli.registry import Driver


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler: nothing runs until the test says so."""

    def __init__(self):
        self.now = 0.0
        self._soon = deque()
        self._timers = []

    def call_soon(self, callback):
        self._soon.append(callback)

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    def time(self):
        return self.now

    @property
    def pending(self):
        return len(self._soon)

    def run_pending(self):
        while self._soon:
            self._soon.popleft()()

    def advance(self, seconds):
        self.now += seconds
        while True:
            due = [t for t in self._timers if t.when <= self.now and not t.cancelled]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            timer.callback()
        self.run_pending()


class FakeExecution:
    """One statement handed to the fake driver, completed by the test."""

    def __init__(self, connection, sql, params, on_row, on_end, on_error):
        self.connection = connection
        self.sql = sql
        self.params = params
        self.on_row = on_row
        self.on_end = on_end
        self.on_error = on_error

    def end(self, *rows):
        for row in rows:
            self.on_row(row)
        self.on_end()

    def fail(self, error=None, rows=()):
        for row in rows:
            self.on_row(row)
        self.on_error(error or RuntimeError("syntax error"))


class FakeCapability:
    """Capability whose connects and statements complete only on request."""

    def __init__(self):
        self.connects = []
        self.closed = []
        self.executions = []

    def connect(self, connection_string, callback):
        self.connects.append((connection_string, callback))

    def finish_connect(self, index=0, connection="conn-1", error=None):
        _, callback = self.connects[index]
        callback(error, None if error else connection)

    def close(self, connection):
        self.closed.append(connection)

    def execute(self, connection, sql, params, on_row, on_end, on_error):
        self.executions.append(FakeExecution(connection, sql, params, on_row, on_end, on_error))

    @property
    def executed(self):
        return [execution.sql for execution in self.executions]

    @property
    def last(self):
        return self.executions[-1]

    def begin(self, isolation):
        return "BEGIN"

    def save(self, savepoint):
        return f"SAVEPOINT {savepoint}"

    def commit(self):
        return "COMMIT"

    def rollback(self, savepoint=None):
        return f"ROLLBACK TO {savepoint}" if savepoint else "ROLLBACK"


class TranslatingFakeCapability(FakeCapability):
    def get_error_msg(self, error):
        return f"fake: {error}"


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def capability():
    return FakeCapability()


@pytest.fixture
def disposals():
    """(action, connection) pairs recorded by the promise fixture."""
    return []


@pytest.fixture
def promise(capability, scheduler, disposals):
    """Unresolved connection promise over the fake capability."""
    return ConnectionPromise(
        capability,
        lambda conn: disposals.append(("release", conn)),
        lambda conn: disposals.append(("close", conn)),
        scheduler,
    )


@pytest.fixture
def ready_promise(promise, capability):
    """Connection promise whose connection has resolved."""
    capability.connect("fake", promise.resolve)
    capability.finish_connect()
    return promise


@pytest_asyncio.fixture
async def sqlite_capability():
    cap = SQLiteCapability()
    yield cap
    await cap.join()


@pytest_asyncio.fixture
async def sqlite_conn(sqlite_capability):
    """In-memory SQLite connection with a fresh ``test`` table."""
    conn = Driver("sqlite", sqlite_capability).connect(":memory:")
    conn.execute(
        "CREATE TABLE test (id INTEGER PRIMARY KEY, blobcol BLOB, stringcol TEXT)"
    )
    yield conn
    conn.release()
