"""Tests for connection pooling."""

import pytest
from pydantic import ValidationError

from sqli.connection import ConnectionState
from sqli.errors import ConnectFailedError, PoolClosedError
from sqli.pool import ConnectionPool, PoolSettings


@pytest.fixture
def pool(capability, scheduler):
    settings = PoolSettings(max_size=1, idle_timeout=30.0, reap_interval=1.0)
    return ConnectionPool(capability, "fake://db", settings, scheduler)


class TestSettings:
    def test_defaults_from_env(self, monkeypatch):
        monkeypatch.setenv("SQLI_POOL_MAX", "3")
        monkeypatch.setenv("SQLI_POOL_IDLE_TIMEOUT", "5")
        settings = PoolSettings.from_env()
        assert settings.max_size == 3
        assert settings.idle_timeout == 5.0

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("SQLI_POOL_MAX", "3")
        settings = PoolSettings.from_env(max_size=7, idle_timeout=None)
        assert settings.max_size == 7
        assert settings.idle_timeout == 30.0

    def test_max_size_must_be_positive(self):
        with pytest.raises(ValidationError):
            PoolSettings(max_size=0)


class TestGet:
    def test_get_resolves_when_connected(self, pool, capability):
        conn = pool.get()
        assert conn.state is ConnectionState.AWAITING
        assert capability.connects[0][0] == "fake://db"
        capability.finish_connect()
        assert conn.state is ConnectionState.READY
        conn.execute("SELECT 1")
        assert capability.last.connection == "conn-1"

    def test_get_waits_at_capacity(self, pool, capability, scheduler):
        first = pool.get()
        second = pool.get()
        assert len(capability.connects) == 1
        assert pool.waiting == 1

        capability.finish_connect()
        second.execute("SELECT 2")
        first.release()
        scheduler.run_pending()

        assert second.state is ConnectionState.READY
        assert capability.last.sql == "SELECT 2"
        assert capability.last.connection == "conn-1"
        assert pool.size == 1

    def test_closing_frees_capacity(self, pool, capability, scheduler):
        first = pool.get()
        second = pool.get()
        capability.finish_connect()
        first.close()

        assert capability.closed == ["conn-1"]
        assert len(capability.connects) == 2
        capability.finish_connect(index=1, connection="conn-2")
        assert second.state is ConnectionState.READY

    def test_connect_failure_reaches_promise(self, pool, capability):
        conn = pool.get()
        capability.finish_connect(error=OSError("refused"))
        assert conn.state is ConnectionState.PAUSED
        assert isinstance(conn.current_error, ConnectFailedError)
        assert pool.size == 0


class TestEarlyRelease:
    def test_release_before_resolution_returns_connection(self, pool, capability):
        conn = pool.get()
        conn.release()
        capability.finish_connect()
        assert conn.state is ConnectionState.RELEASED
        assert pool.available == 1
        assert capability.closed == []

    def test_close_before_resolution_destroys_connection(self, pool, capability):
        conn = pool.get()
        conn.close()
        capability.finish_connect()
        assert capability.closed == ["conn-1"]
        assert pool.size == 0

    def test_released_connection_is_reused(self, pool, capability, scheduler):
        pool.get().release()
        capability.finish_connect()
        again = pool.get()
        scheduler.run_pending()
        assert again.state is ConnectionState.READY
        assert len(capability.connects) == 1


class TestIdleReaping:
    def test_idle_connection_is_closed(self, pool, capability, scheduler):
        conn = pool.get()
        capability.finish_connect()
        conn.release()

        scheduler.advance(29)
        assert capability.closed == []
        scheduler.advance(2)
        assert capability.closed == ["conn-1"]
        assert pool.size == 0
        assert pool.available == 0

    def test_reuse_restarts_idle_clock(self, pool, capability, scheduler):
        conn = pool.get()
        capability.finish_connect()
        conn.release()
        scheduler.advance(20)

        again = pool.get()
        scheduler.run_pending()
        scheduler.advance(20)
        again.release()
        scheduler.advance(20)
        assert capability.closed == []
        scheduler.advance(15)
        assert capability.closed == ["conn-1"]


class TestClose:
    def test_close_destroys_idle_and_fails_waiters(self, capability, scheduler):
        pool = ConnectionPool(capability, "fake://db", PoolSettings(max_size=1), scheduler)
        holder = pool.get()
        capability.finish_connect()
        waiter = pool.get()

        pool.close()
        scheduler.run_pending()
        assert waiter.state is ConnectionState.PAUSED
        assert isinstance(waiter.current_error.__cause__, PoolClosedError)

        holder.release()
        assert capability.closed == ["conn-1"]
        with pytest.raises(PoolClosedError):
            pool.get()
