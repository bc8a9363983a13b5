"""Connection pooling.

``ResourcePool`` bounds the number of open driver connections, hands idle
ones out again and reaps connections that stay idle for too long.
``ConnectionPool`` hands out ``ConnectionPromise`` objects backed by it.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from pydantic import BaseModel, Field

from sqli.capability import Capability
from sqli.config import get_pool_idle_timeout, get_pool_max_size, get_pool_reap_interval
from sqli.connection import ConnectionPromise
from sqli.errors import PoolClosedError
from sqli.scheduler import Scheduler, TimerHandle, default_scheduler

logger = logging.getLogger(__name__)

AcquireCallback = Callable[[BaseException | None, Any], None]


class PoolSettings(BaseModel):
    """Limits of a connection pool."""

    max_size: int = Field(default=10, ge=1)
    idle_timeout: float = Field(default=30.0, gt=0.0)
    reap_interval: float = Field(default=1.0, gt=0.0)

    @classmethod
    def from_env(cls, **overrides: Any) -> PoolSettings:
        """Build settings from SQLI_POOL_* variables; non-None overrides win."""
        values: dict[str, Any] = {
            "max_size": get_pool_max_size(),
            "idle_timeout": get_pool_idle_timeout(),
            "reap_interval": get_pool_reap_interval(),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass(slots=True)
class _IdleConnection:
    connection: Any
    since: float


class ResourcePool:
    """Bounded pool of driver connections created through a capability."""

    def __init__(
        self,
        capability: Capability,
        connection_string: str,
        settings: PoolSettings,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize an empty pool; connections are opened on demand."""
        self._capability = capability
        self._connection_string = connection_string
        self._settings = settings
        self._scheduler = scheduler or default_scheduler
        self._idle: deque[_IdleConnection] = deque()
        self._waiters: deque[AcquireCallback] = deque()
        self._size = 0
        self._closed = False
        self._reaper: TimerHandle | None = None

    @property
    def size(self) -> int:
        """Connections open or being opened."""
        return self._size

    @property
    def available(self) -> int:
        """Idle connections ready to be handed out."""
        return len(self._idle)

    @property
    def waiting(self) -> int:
        """Acquisitions queued because the pool is at capacity."""
        return len(self._waiters)

    @property
    def closed(self) -> bool:
        return self._closed

    def acquire(self, callback: AcquireCallback) -> None:
        """Request a connection; ``callback(error, connection)`` receives it."""
        if self._closed:
            self._scheduler.call_soon(partial(callback, PoolClosedError("Pool is closed"), None))
            return
        self._waiters.append(callback)
        self._dispense()

    def release(self, connection: Any) -> None:
        """Return a connection for reuse."""
        if self._closed:
            self.destroy(connection)
            return
        self._idle.append(_IdleConnection(connection, self._scheduler.time()))
        self._dispense()
        self._ensure_reaper()

    def destroy(self, connection: Any) -> None:
        """Close a connection and forget it."""
        self._size -= 1
        self._capability.close(connection)
        if not self._closed:
            self._dispense()

    def close(self) -> None:
        """Close idle connections and refuse further acquisitions.

        Connections currently in use are destroyed when they come back.
        """
        if self._closed:
            return
        self._closed = True
        if self._reaper is not None:
            self._reaper.cancel()
            self._reaper = None
        while self._idle:
            self.destroy(self._idle.popleft().connection)
        while self._waiters:
            callback = self._waiters.popleft()
            self._scheduler.call_soon(partial(callback, PoolClosedError("Pool is closed"), None))
        logger.info("Pool closed")

    def _dispense(self) -> None:
        while self._waiters:
            if self._idle:
                # most recently returned first, so stale ones age out
                item = self._idle.pop()
                callback = self._waiters.popleft()
                logger.debug("Reusing idle connection")
                self._scheduler.call_soon(partial(callback, None, item.connection))
            elif self._size < self._settings.max_size:
                self._create(self._waiters.popleft())
            else:
                logger.debug("Pool at capacity, %d waiting", len(self._waiters))
                break

    def _create(self, callback: AcquireCallback) -> None:
        self._size += 1
        logger.debug("Opening pooled connection %d/%d", self._size, self._settings.max_size)

        def on_connect(error: BaseException | None, connection: Any) -> None:
            if error is not None:
                self._size -= 1
                callback(error, None)
                self._dispense()
            elif self._closed:
                self.destroy(connection)
                callback(PoolClosedError("Pool is closed"), None)
            else:
                callback(None, connection)

        self._capability.connect(self._connection_string, on_connect)

    def _ensure_reaper(self) -> None:
        if self._reaper is None and self._idle and not self._closed:
            self._reaper = self._scheduler.call_later(self._settings.reap_interval, self._reap)

    def _reap(self) -> None:
        self._reaper = None
        cutoff = self._scheduler.time() - self._settings.idle_timeout
        keep: deque[_IdleConnection] = deque()
        for item in self._idle:
            if item.since < cutoff:
                logger.debug("Closing connection idle for more than %ss", self._settings.idle_timeout)
                self._size -= 1
                self._capability.close(item.connection)
            else:
                keep.append(item)
        self._idle = keep
        self._ensure_reaper()


class ConnectionPool:
    """Manages and limits connections to one database."""

    def __init__(
        self,
        capability: Capability,
        connection_string: str,
        settings: PoolSettings | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Initialize with the capability and connection string to pool."""
        self._capability = capability
        self._scheduler = scheduler or default_scheduler
        self.settings = settings or PoolSettings.from_env()
        self._resources = ResourcePool(
            capability, connection_string, self.settings, self._scheduler
        )
        logger.info(
            "Created pool (max %d connections, idle timeout %ss)",
            self.settings.max_size,
            self.settings.idle_timeout,
        )

    @property
    def size(self) -> int:
        return self._resources.size

    @property
    def available(self) -> int:
        return self._resources.available

    @property
    def waiting(self) -> int:
        return self._resources.waiting

    def get(self) -> ConnectionPromise:
        """Start resolving a pooled connection and return a promise for it."""
        if self._resources.closed:
            raise PoolClosedError("Pool is closed")
        release_requested = False
        destroy_requested = False

        def releaser(connection: Any) -> None:
            nonlocal release_requested
            if connection is None:
                # release as soon as it is available
                release_requested = True
            else:
                self._resources.release(connection)

        def closer(connection: Any) -> None:
            nonlocal destroy_requested
            if connection is None:
                # destroy as soon as it is available
                destroy_requested = True
            else:
                self._resources.destroy(connection)

        promise = ConnectionPromise(self._capability, releaser, closer, self._scheduler)

        def on_acquire(error: BaseException | None, connection: Any) -> None:
            if connection is not None and destroy_requested:
                self._resources.destroy(connection)
            elif connection is not None and release_requested:
                self._resources.release(connection)
            else:
                promise.resolve(error, connection)

        self._resources.acquire(on_acquire)
        return promise

    def close(self) -> None:
        """Close the pool; see ``ResourcePool.close``."""
        self._resources.close()
