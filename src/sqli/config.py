"""Environment-variable-based configuration."""

import os


def get_pool_max_size() -> int:
    """Return the maximum number of pooled connections from SQLI_POOL_MAX."""
    return int(os.environ.get("SQLI_POOL_MAX", "10"))


def get_pool_idle_timeout() -> float:
    """Return the idle connection timeout in seconds from SQLI_POOL_IDLE_TIMEOUT."""
    return float(os.environ.get("SQLI_POOL_IDLE_TIMEOUT", "30.0"))


def get_pool_reap_interval() -> float:
    """Return the idle reaper period in seconds from SQLI_POOL_REAP_INTERVAL."""
    return float(os.environ.get("SQLI_POOL_REAP_INTERVAL", "1.0"))


def get_enabled_drivers() -> list[str]:
    """Return the driver names to load at startup from SQLI_DRIVERS."""
    raw = os.environ.get("SQLI_DRIVERS", "sqlite,postgres,mysql")
    return [name.strip() for name in raw.split(",") if name.strip()]


def get_log_level() -> str:
    """Return the logging level from SQLI_LOG_LEVEL."""
    return os.environ.get("SQLI_LOG_LEVEL", "WARNING")
