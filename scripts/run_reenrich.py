#!/usr/bin/env python3
"""CLI script to re-apply venue rules without refetching, then rebuild matches.

Use after correcting coordinates or addresses in the venue rules so the
change reaches stored events and the display set immediately.
"""

from __future__ import annotations

import structlog
import typer

from eventlens.config import get_settings
from eventlens.db import get_connection
from eventlens.pipeline import run_dedup_pipeline, run_venue_enrichment

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main() -> None:
    """Overwrite venue data for every rule match and rebuild the display set."""
    settings = get_settings()
    conn = get_connection(settings)

    try:
        updated = run_venue_enrichment(conn, overwrite=True)
        logger.info("venue_locations_reapplied", updated=updated)

        stats = run_dedup_pipeline(conn, settings)
        conn.commit()
        logger.info("reenrich_complete", **stats)

    finally:
        conn.close()


if __name__ == "__main__":
    app()
