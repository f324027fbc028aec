"""Storage operations for events, match edges and display rows.

Events are written by the ingestion layer; this module only reads them
(plus the venue enrichment backfill).  Match edges and display rows are
owned here and are always replaced wholesale.  All database interaction uses
raw SQL via psycopg3.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass

import psycopg
import structlog

from eventlens.db import execute_many, execute_query, fetch_value
from eventlens.dedup.materialize import AlternateLink, DisplayRow
from eventlens.dedup.matcher import CONFIDENCE_TIERS, MatchEdge, confidence_rank, dedupe_edges
from eventlens.events import StoredEvent

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS events (
    id          BIGSERIAL PRIMARY KEY,
    event_id    TEXT UNIQUE NOT NULL,
    title       TEXT NOT NULL,
    url         TEXT NOT NULL,
    location    TEXT,
    date        TEXT NOT NULL,
    start_time  TEXT,
    start_date  TEXT,
    end_date    TEXT,
    latitude    DOUBLE PRECISION,
    longitude   DOUBLE PRECISION,
    city        TEXT,
    image_url   TEXT,
    categories  TEXT NOT NULL DEFAULT '[]',
    source      TEXT NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_events_date ON events (date);
CREATE INDEX IF NOT EXISTS idx_events_source ON events (source);

CREATE TABLE IF NOT EXISTS event_matches (
    id          BIGSERIAL PRIMARY KEY,
    event_id_1  TEXT NOT NULL REFERENCES events (event_id) ON DELETE CASCADE,
    event_id_2  TEXT NOT NULL REFERENCES events (event_id) ON DELETE CASCADE,
    score       DOUBLE PRECISION NOT NULL,
    confidence  TEXT NOT NULL,
    reasons     JSONB NOT NULL DEFAULT '[]'::jsonb,
    match_type  TEXT NOT NULL DEFAULT 'auto',
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (event_id_1, event_id_2)
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_event_matches_unordered
    ON event_matches (LEAST(event_id_1, event_id_2), GREATEST(event_id_1, event_id_2));

CREATE TABLE IF NOT EXISTS display_events (
    event_id    TEXT PRIMARY KEY,
    sort_order  INTEGER NOT NULL,
    title       TEXT NOT NULL,
    url         TEXT NOT NULL,
    location    TEXT,
    date        TEXT NOT NULL,
    start_time  TEXT,
    start_date  TEXT,
    end_date    TEXT,
    latitude    DOUBLE PRECISION,
    longitude   DOUBLE PRECISION,
    city        TEXT,
    image_url   TEXT,
    categories  TEXT NOT NULL DEFAULT '[]',
    source      TEXT NOT NULL,
    created_at  TEXT,
    updated_at  TEXT,
    alt_url     TEXT,
    alt_source  TEXT,
    alternates  JSONB NOT NULL DEFAULT '[]'::jsonb
);
CREATE INDEX IF NOT EXISTS idx_display_events_sort ON display_events (sort_order);
"""

_EVENT_COLUMNS = """
    event_id, title, url, location, date, start_time, start_date, end_date,
    latitude, longitude, city, image_url, categories, source,
    created_at::text AS created_at, updated_at::text AS updated_at
"""


def ensure_schema(conn: psycopg.Connection) -> None:
    """Create the events, event_matches and display_events tables if absent."""
    with conn.cursor() as cur:
        cur.execute(SCHEMA_SQL)


# ---------------------------------------------------------------------------
# Events (read-only apart from enrichment)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EventLink:
    """Canonical URL and source of one stored event."""

    url: str
    source: str


def list_sources(conn: psycopg.Connection) -> list[str]:
    """Return every distinct source that has stored events."""
    rows = execute_query(conn, "SELECT DISTINCT source FROM events ORDER BY source")
    return [r["source"] for r in rows]


def get_events_by_source(conn: psycopg.Connection, source: str) -> list[StoredEvent]:
    """All events for *source*, in date/time order (untimed events last)."""
    rows = execute_query(
        conn,
        f"""
        SELECT {_EVENT_COLUMNS}
        FROM events
        WHERE source = %s
        ORDER BY date ASC, start_time ASC NULLS LAST, id ASC
        """,
        (source,),
    )
    return [StoredEvent.from_row(r) for r in rows]


def get_all_events(conn: psycopg.Connection) -> list[StoredEvent]:
    """All events in insertion order, the tie-break for display ordering."""
    rows = execute_query(conn, f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY id ASC")
    return [StoredEvent.from_row(r) for r in rows]


def get_event_link(conn: psycopg.Connection, event_id: str) -> EventLink | None:
    """Look up the canonical URL and source for *event_id*.

    Returns ``None`` if no such event is stored.
    """
    rows = execute_query(
        conn,
        "SELECT url, source FROM events WHERE event_id = %s LIMIT 1",
        (event_id,),
    )
    if rows:
        return EventLink(url=rows[0]["url"], source=rows[0]["source"])
    return None


def update_event_locations(conn: psycopg.Connection, events: Sequence[StoredEvent]) -> int:
    """Persist location backfill for *events*.  Returns the row count."""
    return execute_many(
        conn,
        """
        UPDATE events
        SET location = %s, city = %s, latitude = %s, longitude = %s, updated_at = now()
        WHERE event_id = %s
        """,
        [(e.location, e.city, e.latitude, e.longitude, e.event_id) for e in events],
    )


def get_total_count(conn: psycopg.Connection) -> int:
    return fetch_value(conn, "SELECT COUNT(*) FROM events", default=0)


# ---------------------------------------------------------------------------
# Match edges
# ---------------------------------------------------------------------------

def replace_matches(conn: psycopg.Connection, edges: Sequence[MatchEdge]) -> int:
    """Replace every stored match edge with *edges*.

    Edges are collapsed to one per unordered id pair (best score kept)
    before writing.
    """
    edges = dedupe_edges(edges)
    with conn.transaction():
        execute_query(conn, "DELETE FROM event_matches")
        written = execute_many(
            conn,
            """
            INSERT INTO event_matches
                (event_id_1, event_id_2, score, confidence, reasons, match_type)
            VALUES (%s, %s, %s, %s, %s::jsonb, %s)
            ON CONFLICT (event_id_1, event_id_2) DO UPDATE SET
                score = EXCLUDED.score,
                confidence = EXCLUDED.confidence,
                reasons = EXCLUDED.reasons,
                match_type = EXCLUDED.match_type
            """,
            [
                (
                    e.event_id_1,
                    e.event_id_2,
                    e.score,
                    e.confidence,
                    json.dumps(list(e.reasons)),
                    e.match_type,
                )
                for e in edges
            ],
        )
    logger.info("match_edges_replaced", count=len(edges))
    return written


def get_matches(
    conn: psycopg.Connection,
    min_confidence: str | None = None,
) -> list[MatchEdge]:
    """Stored edges, best score first, optionally at or above *min_confidence*."""
    query = "SELECT event_id_1, event_id_2, score, confidence, reasons, match_type FROM event_matches"
    params: tuple = ()
    if min_confidence:
        allowed = list(CONFIDENCE_TIERS[confidence_rank(min_confidence):])
        query += " WHERE confidence = ANY(%s)"
        params = (allowed,)
    query += " ORDER BY score DESC"

    rows = execute_query(conn, query, params)
    return [
        MatchEdge(
            event_id_1=r["event_id_1"],
            event_id_2=r["event_id_2"],
            score=r["score"],
            confidence=r["confidence"],
            reasons=tuple(r["reasons"] or ()),
            match_type=r["match_type"],
        )
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Display rows
# ---------------------------------------------------------------------------

_DISPLAY_INSERT = """
    INSERT INTO display_events (
        event_id, sort_order, title, url, location, date, start_time,
        start_date, end_date, latitude, longitude, city, image_url,
        categories, source, created_at, updated_at, alt_url, alt_source,
        alternates
    ) VALUES (
        %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
        %s, %s, %s::jsonb
    )
"""


def _display_params(row: DisplayRow, sort_order: int) -> tuple:
    return (
        row.event_id,
        sort_order,
        row.title,
        row.url,
        row.location,
        row.date,
        row.start_time,
        row.start_date,
        row.end_date,
        row.latitude,
        row.longitude,
        row.city,
        row.image_url,
        row.categories,
        row.source,
        row.created_at,
        row.updated_at,
        row.alt_url,
        row.alt_source,
        json.dumps(
            [{"event_id": a.event_id, "url": a.url, "source": a.source} for a in row.alternates]
        ),
    )


def _display_row_from_db(row: dict) -> DisplayRow:
    alternates = tuple(AlternateLink(**a) for a in (row.get("alternates") or ()))
    values = {k: v for k, v in row.items() if k not in ("alternates", "sort_order")}
    return DisplayRow(**values, alternates=alternates)


def replace_display_events(conn: psycopg.Connection, rows: Sequence[DisplayRow]) -> int:
    """Atomically replace the display set with *rows*, preserving their order.

    The delete and the inserts share one transaction, so readers see either
    the old set or the new one.
    """
    with conn.transaction():
        execute_query(conn, "DELETE FROM display_events")
        execute_many(
            conn,
            _DISPLAY_INSERT,
            [_display_params(row, i) for i, row in enumerate(rows)],
        )
    logger.info("display_events_replaced", count=len(rows))
    return len(rows)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def query_display_events(
    conn: psycopg.Connection,
    query: str = "",
    limit: int = 25,
    offset: int = 0,
    sort_dir: str = "asc",
) -> tuple[list[DisplayRow], int]:
    """Search display rows by title or location.

    Returns ``(rows, total)`` where *total* counts every match, not just
    the returned page.

    Raises:
        ValueError: If *sort_dir* is not ``asc`` or ``desc``.
    """
    if sort_dir not in ("asc", "desc"):
        msg = f"sort_dir must be 'asc' or 'desc', got {sort_dir!r}"
        raise ValueError(msg)

    where = ""
    params: tuple = ()
    if query.strip():
        pattern = f"%{_escape_like(query.strip())}%"
        where = "WHERE title ILIKE %s OR location ILIKE %s"
        params = (pattern, pattern)

    total = fetch_value(
        conn,
        f"SELECT COUNT(*) FROM display_events {where}",
        params,
        default=0,
    )
    rows = execute_query(
        conn,
        f"""
        SELECT * FROM display_events
        {where}
        ORDER BY sort_order {sort_dir.upper()}
        LIMIT %s OFFSET %s
        """,
        (*params, limit, offset),
    )
    return [_display_row_from_db(r) for r in rows], total


def get_display_count(conn: psycopg.Connection) -> int:
    return fetch_value(conn, "SELECT COUNT(*) FROM display_events", default=0)
