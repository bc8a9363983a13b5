"""Process-wide registry of named drivers."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from sqli.capability import Capability
from sqli.config import get_enabled_drivers
from sqli.connection import ConnectionPromise
from sqli.pool import ConnectionPool, PoolSettings
from sqli.scheduler import Scheduler, default_scheduler

logger = logging.getLogger(__name__)

# driver name -> adapter module exposing create_capability()
ADAPTER_MODULES = {
    "sqlite": "sqli.adapters.sqlite",
    "postgres": "sqli.adapters.postgres",
    "mysql": "sqli.adapters.mysql",
}


@dataclass(frozen=True)
class Driver:
    """Main interface used to interact with one database family."""

    name: str
    capability: Capability
    scheduler: Scheduler = field(default=default_scheduler, compare=False, repr=False)

    def connect(self, connection_string: str) -> ConnectionPromise:
        """Start connecting and return a promise for the connection."""
        close_requested = False

        def closer(connection: Any) -> None:
            nonlocal close_requested
            if connection is None:
                close_requested = True
            else:
                self.capability.close(connection)

        promise = ConnectionPromise(self.capability, closer, closer, self.scheduler)

        def on_connect(error: BaseException | None, connection: Any) -> None:
            if close_requested and connection is not None:
                self.capability.close(connection)
            else:
                promise.resolve(error, connection)

        self.capability.connect(connection_string, on_connect)
        return promise

    def create_pool(
        self,
        connection_string: str,
        max_size: int | None = None,
        idle_timeout: float | None = None,
    ) -> ConnectionPool:
        """Create a pool limiting concurrent connections to the database.

        ``idle_timeout`` is the number of seconds a connection may stay idle
        before it is closed. Unset limits come from the environment.
        """
        settings = PoolSettings.from_env(max_size=max_size, idle_timeout=idle_timeout)
        return ConnectionPool(self.capability, connection_string, settings, self.scheduler)


class DriverLoadResult(BaseModel):
    """Outcome of loading one adapter at startup."""

    name: str
    loaded: bool
    error: str | None = None


_drivers: dict[str, Driver] = {}


def register(name: str, capability: Capability, scheduler: Scheduler | None = None) -> Driver:
    """Register a capability under ``name`` and return its driver."""
    driver = Driver(name, capability, scheduler or default_scheduler)
    _drivers[name] = driver
    logger.info("Registered %s driver", name)
    return driver


def get_driver(name: str) -> Driver | None:
    """Return the driver registered under ``name``, if any."""
    return _drivers.get(name)


def registered_drivers() -> list[str]:
    """Return the names of all registered drivers."""
    return sorted(_drivers)


def load_drivers(names: list[str] | None = None) -> dict[str, DriverLoadResult]:
    """Load and register database adapters, reporting the outcome of each.

    A driver whose native library is not installed is reported as not
    loaded rather than aborting the others.
    """
    results: dict[str, DriverLoadResult] = {}
    for name in names if names is not None else get_enabled_drivers():
        module_name = ADAPTER_MODULES.get(name)
        if module_name is None:
            logger.warning("Unknown driver %s", name)
            results[name] = DriverLoadResult(name=name, loaded=False, error="unknown driver")
            continue
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            logger.warning("Could not load %s driver: %s", name, exc)
            results[name] = DriverLoadResult(name=name, loaded=False, error=str(exc))
            continue
        register(name, module.create_capability())
        results[name] = DriverLoadResult(name=name, loaded=True)
    return results
