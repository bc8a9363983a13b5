"""Run a single statement from the command line.

    python -m sqli sqlite data.db "SELECT * FROM users WHERE id = ?" 42
"""

import argparse
import asyncio
import json
import logging
import sys

from sqli.config import get_log_level
from sqli.errors import SqliError
from sqli.registry import get_driver, load_drivers


async def run(driver_name: str, connection_string: str, sql: str, params: list[str]) -> int:
    """Execute ``sql`` and print each row as a JSON line."""
    driver = get_driver(driver_name)
    if driver is None:
        print(f"Error: driver {driver_name!r} is not available", file=sys.stderr)
        return 1

    conn = driver.connect(connection_string)
    try:
        rows = await conn.execute(sql, params).fetchall()
    except SqliError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        conn.release()
        join = getattr(driver.capability, "join", None)
        if join is not None:
            await join()

    for row in rows:
        print(json.dumps(row, default=str))
    return 0


def main() -> None:
    """Parse arguments, load drivers and run the statement."""
    parser = argparse.ArgumentParser(prog="sqli", description="Run one SQL statement")
    parser.add_argument("--drivers", action="store_true", help="List driver load results and exit")
    parser.add_argument("driver", nargs="?", help="Driver name (sqlite, postgres, mysql)")
    parser.add_argument("connection_string", nargs="?", help="Database filename or URL")
    parser.add_argument("sql", nargs="?", help="Statement with ? placeholders")
    parser.add_argument("params", nargs="*", help="Values bound to the placeholders")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    results = load_drivers()
    if args.drivers:
        for result in results.values():
            status = "loaded" if result.loaded else f"unavailable ({result.error})"
            print(f"{result.name}: {status}")
        return

    if not (args.driver and args.connection_string and args.sql):
        parser.error("driver, connection_string and sql are required")

    sys.exit(asyncio.run(run(args.driver, args.connection_string, args.sql, args.params)))


if __name__ == "__main__":
    main()
