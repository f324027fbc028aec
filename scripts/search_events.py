#!/usr/bin/env python3
"""CLI script to search the deduplicated display set."""

from __future__ import annotations

import typer

from eventlens.config import get_settings
from eventlens.db import get_connection
from eventlens.dedup.normalize import decode_html_entities
from eventlens.storage import query_display_events

app = typer.Typer()


def _format_time(start_time: str | None) -> str:
    if not start_time:
        return ""
    hour, minute = (int(part) for part in start_time.split(":")[:2])
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


@app.command()
def main(
    query: str = typer.Argument("", help="Text to find in titles or locations"),
    page: int = typer.Option(1, min=1),
    page_size: int = typer.Option(25, min=1, max=100),
    sort: str = typer.Option("asc", help="asc or desc"),
) -> None:
    """Print one page of matching display rows."""
    conn = get_connection(get_settings())

    try:
        rows, total = query_display_events(
            conn, query, limit=page_size, offset=(page - 1) * page_size, sort_dir=sort
        )
        typer.echo(f'Search results for "{query}" ({total} found)')
        for i, row in enumerate(rows, start=(page - 1) * page_size + 1):
            year, month, day = row.date.split("-")
            location = decode_html_entities(row.location) if row.location else "TBD"
            typer.echo(f"{i}. {decode_html_entities(row.title)}")
            typer.echo(f"   {location}")
            typer.echo(f"   {int(month)}/{int(day)}/{year} {_format_time(row.start_time)}")
            typer.echo(f"   {row.url}")
            for alternate in row.alternates:
                typer.echo(f"   {alternate.url} (alt, {alternate.source})")

    finally:
        conn.close()


if __name__ == "__main__":
    app()
