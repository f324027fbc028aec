#!/usr/bin/env python3
"""CLI script to find cross-source duplicates and rebuild the display set."""

from __future__ import annotations

import structlog
import typer

from eventlens.config import get_settings
from eventlens.db import get_connection
from eventlens.dedup.validation import find_chain_conflicts
from eventlens.pipeline import run_dedup_pipeline, run_venue_enrichment
from eventlens.storage import ensure_schema, get_event_link, get_matches

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    strategy: str | None = typer.Option(
        None, "--strategy", help="Override the dedup strategy (pairwise or components)"
    ),
    min_score: float | None = typer.Option(
        None, "--min-score", help="Override the minimum total score for a kept match"
    ),
    enrich: bool = typer.Option(
        True, "--enrich/--no-enrich", help="Backfill known venue locations first"
    ),
    samples: int = typer.Option(5, help="Number of high-confidence matches to print"),
) -> None:
    """Recompute match edges across every source pair and rebuild display rows."""
    settings = get_settings()
    if strategy is not None:
        settings.dedup_strategy = strategy
    if min_score is not None:
        settings.min_match_score = min_score

    conn = get_connection(settings)

    try:
        ensure_schema(conn)

        if enrich:
            enriched = run_venue_enrichment(conn)
            logger.info("venue_enrichment_complete", updated=enriched)

        stats = run_dedup_pipeline(conn, settings)
        conn.commit()

        high_matches = get_matches(conn, min_confidence="high")[:samples]
        for edge in high_matches:
            secondary = get_event_link(conn, edge.event_id_1)
            primary = get_event_link(conn, edge.event_id_2)
            typer.echo(f"Match (score: {edge.score:.2f}):")
            typer.echo(f"  [secondary] {secondary.url if secondary else edge.event_id_1}")
            typer.echo(f"  [primary]   {primary.url if primary else edge.event_id_2}")
            typer.echo(f"  Reasons: {', '.join(edge.reasons)}")

        conflicts = find_chain_conflicts(get_matches(conn, min_confidence="medium"))
        if conflicts:
            logger.warning("chained_matches_found", count=len(conflicts), sample=conflicts[:5])

        typer.echo(
            f"Events: {stats['events']}  Display rows: {stats['display_rows']}  "
            f"Duplicates: {stats['duplicates']}"
        )

    finally:
        conn.close()


if __name__ == "__main__":
    app()
