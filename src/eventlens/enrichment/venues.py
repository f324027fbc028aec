"""Known-venue enrichment rules.

Some sources post events without venue details.  When an event title names
a venue we already know, its location, city and coordinates are backfilled
so the venue and geo matching dimensions have something to work with.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from eventlens.events import StoredEvent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VenueRule:
    """Location data for one venue, keyed by a title pattern."""

    title_pattern: re.Pattern[str]
    location: str
    city: str
    latitude: float
    longitude: float


VENUE_RULES: list[VenueRule] = [
    VenueRule(
        title_pattern=re.compile(r"paradox", re.IGNORECASE),
        location="Paradox Comics & Games, 242 Broadway N",
        city="Fargo",
        latitude=46.877,
        longitude=-96.789,
    ),
]


def match_venue_rule(
    title: str,
    rules: Sequence[VenueRule] = VENUE_RULES,
) -> VenueRule | None:
    """Return the first rule whose title pattern matches *title*."""
    for rule in rules:
        if rule.title_pattern.search(title):
            return rule
    return None


def enrich_venue_locations(
    events: Sequence[StoredEvent],
    rules: Sequence[VenueRule] = VENUE_RULES,
    *,
    overwrite: bool = False,
) -> list[StoredEvent]:
    """Apply venue rules and return only the events whose data changed.

    By default only events with no location are filled.  With *overwrite*
    every title match is reset to the rule's current data, which is how
    corrected coordinates reach events enriched by an older rule.
    """
    updated: list[StoredEvent] = []
    for event in events:
        if event.location and not overwrite:
            continue
        rule = match_venue_rule(event.title, rules)
        if rule is None:
            continue

        enriched = dataclasses.replace(
            event,
            location=rule.location,
            city=rule.city,
            latitude=rule.latitude,
            longitude=rule.longitude,
        )
        if enriched != event:
            updated.append(enriched)

    if updated:
        logger.info("venue_enrichment_applied", updated=len(updated), overwrite=overwrite)
    return updated
