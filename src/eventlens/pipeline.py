"""Deduplication pipeline orchestrator.

Reads every source's events, finds cross-source matches, stores the match
edges and rebuilds the display set.  Edges and display rows are committed
together, so a failed run leaves the previous state in place.
"""

from __future__ import annotations

from collections import Counter

import psycopg
import structlog

from eventlens.config import Settings
from eventlens.dedup.materialize import rebuild_display_events
from eventlens.dedup.matcher import dedupe_edges, find_cross_source_matches
from eventlens.enrichment.venues import enrich_venue_locations
from eventlens.storage import (
    get_all_events,
    get_events_by_source,
    list_sources,
    replace_display_events,
    replace_matches,
    update_event_locations,
)

logger = structlog.get_logger(__name__)


def run_venue_enrichment(conn: psycopg.Connection, *, overwrite: bool = False) -> int:
    """Backfill known venue locations.  Returns the number of events updated."""
    updated = enrich_venue_locations(get_all_events(conn), overwrite=overwrite)
    if updated:
        update_event_locations(conn, updated)
    return len(updated)


def run_dedup_pipeline(conn: psycopg.Connection, settings: Settings) -> dict[str, int]:
    """Recompute every match edge and rebuild the display set.

    Returns
    -------
    dict
        ``{"events": int, "matches": int, "high": int, "medium": int,
          "low": int, "display_rows": int, "duplicates": int}``
    """
    events_by_source = {
        source: get_events_by_source(conn, source) for source in list_sources(conn)
    }
    logger.info(
        "events_loaded",
        counts={source: len(events) for source, events in events_by_source.items()},
    )

    matches = find_cross_source_matches(
        events_by_source,
        settings.source_priority,
        settings.min_match_score,
    )
    edges = dedupe_edges([m.to_edge() for m in matches])
    by_confidence = Counter(edge.confidence for edge in edges)

    all_events = get_all_events(conn)
    rows = rebuild_display_events(
        all_events,
        edges,
        strategy=settings.dedup_strategy,
        source_priority=settings.source_priority,
    )

    with conn.transaction():
        replace_matches(conn, edges)
        replace_display_events(conn, rows)

    stats = {
        "events": len(all_events),
        "matches": len(edges),
        "high": by_confidence["high"],
        "medium": by_confidence["medium"],
        "low": by_confidence["low"],
        "display_rows": len(rows),
        "duplicates": len(all_events) - len(rows),
    }
    logger.info("dedup_pipeline_complete", **stats)
    return stats
