"""Display materialisation: one canonical row per real-world event.

Consumes every stored event plus the match edges and produces the display
set the query layer serves.  Only ``medium`` and ``high`` edges take part;
``low`` edges are informational.

Two strategies are available:

``pairwise`` (default)
    The original convention.  The first id of every usable edge is a
    duplicate and is dropped; the second id keeps the row and links to the
    dropped listing as its alternate.  Chains across three or more sources
    can leave duplicate rows or orphaned alternates.

``components``
    Opt-in.  Union-find over ids joined by usable edges.  Each connected
    component elects one canonical member (source priority first) and every
    other member becomes an alternate on that row.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass

import structlog

from eventlens.dedup.matcher import MatchEdge, confidence_rank, source_rank
from eventlens.events import StoredEvent, sort_chronologically

logger = structlog.get_logger(__name__)

STRATEGIES = ("pairwise", "components")
_MIN_USABLE_RANK = confidence_rank("medium")


@dataclass(frozen=True)
class AlternateLink:
    """A duplicate listing folded into a display row."""

    event_id: str
    url: str
    source: str


@dataclass(frozen=True)
class DisplayRow:
    """Query-facing row for one real-world event."""

    event_id: str
    title: str
    url: str
    date: str
    source: str
    start_time: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    image_url: str | None = None
    categories: str = "[]"
    created_at: str | None = None
    updated_at: str | None = None
    alt_url: str | None = None
    alt_source: str | None = None
    alternates: tuple[AlternateLink, ...] = ()

    @classmethod
    def from_event(
        cls,
        event: StoredEvent,
        alternates: Sequence[AlternateLink] = (),
    ) -> DisplayRow:
        first = alternates[0] if alternates else None
        return cls(
            **asdict(event),
            alt_url=first.url if first else None,
            alt_source=first.source if first else None,
            alternates=tuple(alternates),
        )


def _link(event: StoredEvent) -> AlternateLink:
    return AlternateLink(event_id=event.event_id, url=event.url, source=event.source)


def usable_edges(
    edges: Sequence[MatchEdge],
    events_by_id: dict[str, StoredEvent],
) -> list[MatchEdge]:
    """Filter to medium/high edges whose two ids both name known events.

    Dangling edges are logged and dropped so one bad edge cannot empty the
    display set.
    """
    usable: list[MatchEdge] = []
    for edge in edges:
        if confidence_rank(edge.confidence) < _MIN_USABLE_RANK:
            continue
        missing = [
            event_id
            for event_id in (edge.event_id_1, edge.event_id_2)
            if event_id not in events_by_id
        ]
        if missing:
            logger.warning(
                "dangling_match_edge",
                event_id_1=edge.event_id_1,
                event_id_2=edge.event_id_2,
                missing=missing,
            )
            continue
        if edge.event_id_1 == edge.event_id_2:
            logger.warning("self_match_edge", event_id=edge.event_id_1)
            continue
        usable.append(edge)
    return usable


# ---------------------------------------------------------------------------
# Pairwise (legacy) strategy
# ---------------------------------------------------------------------------

def _pairwise_alternates(
    edges: Sequence[MatchEdge],
    events_by_id: dict[str, StoredEvent],
) -> tuple[set[str], dict[str, list[AlternateLink]]]:
    excluded = {edge.event_id_1 for edge in edges}

    # Best edge per primary: highest tier, then highest score, first seen on ties
    best: dict[str, MatchEdge] = {}
    for edge in edges:
        current = best.get(edge.event_id_2)
        if current is None or (
            (confidence_rank(edge.confidence), edge.score)
            > (confidence_rank(current.confidence), current.score)
        ):
            best[edge.event_id_2] = edge

    alternates = {
        primary_id: [_link(events_by_id[edge.event_id_1])]
        for primary_id, edge in best.items()
    }
    return excluded, alternates


# ---------------------------------------------------------------------------
# Connected-components strategy
# ---------------------------------------------------------------------------

class _DisjointSet:
    """Union-find with path halving."""

    def __init__(self) -> None:
        self._parent: dict[str, str] = {}

    def find(self, item: str) -> str:
        parent = self._parent
        parent.setdefault(item, item)
        while parent[item] != item:
            parent[item] = parent[parent[item]]
            item = parent[item]
        return item

    def union(self, a: str, b: str) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a != root_b:
            self._parent[root_b] = root_a

    def groups(self) -> list[list[str]]:
        members: dict[str, list[str]] = {}
        for item in self._parent:
            members.setdefault(self.find(item), []).append(item)
        return list(members.values())


def _component_alternates(
    edges: Sequence[MatchEdge],
    ordered: Sequence[StoredEvent],
    source_priority: Sequence[str],
) -> tuple[set[str], dict[str, list[AlternateLink]]]:
    position = {event.event_id: i for i, event in enumerate(ordered)}
    by_id = {event.event_id: event for event in ordered}
    primaries = {edge.event_id_2 for edge in edges}

    forest = _DisjointSet()
    for edge in edges:
        forest.union(edge.event_id_1, edge.event_id_2)

    def election_key(event_id: str) -> tuple[int, int, int]:
        return (
            source_rank(by_id[event_id].source, source_priority),
            0 if event_id in primaries else 1,
            position[event_id],
        )

    excluded: set[str] = set()
    alternates: dict[str, list[AlternateLink]] = {}
    for members in forest.groups():
        canonical, *others = sorted(members, key=election_key)
        excluded.update(others)
        alternates[canonical] = [_link(by_id[event_id]) for event_id in others]

    return excluded, alternates


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def rebuild_display_events(
    all_events: Sequence[StoredEvent],
    match_edges: Sequence[MatchEdge],
    *,
    strategy: str = "pairwise",
    source_priority: Sequence[str] = (),
) -> list[DisplayRow]:
    """Produce the deduplicated, chronologically ordered display rows.

    Pure and deterministic: the same events and edges always yield equal
    rows in the same order.

    Raises:
        ValueError: If *strategy* is unknown or an edge carries an unknown
            confidence tier.
    """
    if strategy not in STRATEGIES:
        msg = f"Unknown dedup strategy: {strategy!r} (expected one of {STRATEGIES})"
        raise ValueError(msg)

    ordered = sort_chronologically(all_events)
    events_by_id = {event.event_id: event for event in ordered}
    edges = usable_edges(match_edges, events_by_id)

    if strategy == "pairwise":
        excluded, alternates = _pairwise_alternates(edges, events_by_id)
    else:
        excluded, alternates = _component_alternates(edges, ordered, source_priority)

    rows = [
        DisplayRow.from_event(event, alternates.get(event.event_id, ()))
        for event in ordered
        if event.event_id not in excluded
    ]

    logger.info(
        "display_events_rebuilt",
        strategy=strategy,
        events=len(ordered),
        usable_edges=len(edges),
        excluded=len(excluded),
        display_rows=len(rows),
    )
    return rows
