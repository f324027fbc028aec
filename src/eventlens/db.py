"""PostgreSQL access helpers via psycopg3.

Connections use the dict row factory, so every helper hands back plain dicts
keyed by column name.
"""

from typing import Any

import psycopg
from psycopg.rows import dict_row

from eventlens.config import Settings


def get_connection(settings: Settings | None = None) -> psycopg.Connection:
    """Open a synchronous connection to the events database."""
    if settings is None:
        from eventlens.config import get_settings
        settings = get_settings()

    return psycopg.connect(settings.database_url, row_factory=dict_row)


def execute_query(conn: psycopg.Connection, query: str, params: tuple = ()) -> list[dict]:
    """Run *query* and return its rows; statements without a result give ``[]``."""
    with conn.cursor() as cur:
        cur.execute(query, params)
        if cur.description:
            return cur.fetchall()
        return []


def fetch_value(conn: psycopg.Connection, query: str, params: tuple = (), default: Any = None) -> Any:
    """Return the first column of the first row, or *default* when there is none."""
    rows = execute_query(conn, query, params)
    if not rows:
        return default
    return next(iter(rows[0].values()))


def execute_many(conn: psycopg.Connection, query: str, params_list: list[tuple]) -> int:
    """Run *query* once per parameter tuple.  An empty list is a no-op."""
    if not params_list:
        return 0
    with conn.cursor() as cur:
        cur.executemany(query, params_list)
        return cur.rowcount
