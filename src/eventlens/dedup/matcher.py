"""Pairwise event match scoring and candidate generation.

Two listings are compared along four dimensions (title, venue, time, geo).
Each dimension is an ordered list of rules over precomputed signals; the
first rule whose predicate holds supplies the score and the reason.  The
weighted total is then classified into a confidence tier, gated by the
title score.
"""

from __future__ import annotations

import math
import re
from collections import defaultdict
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

from eventlens.dedup.geo import geo_distance_meters
from eventlens.dedup.normalize import (
    contains_substring,
    normalize_text,
    similarity,
    token_overlap,
)
from eventlens.events import StoredEvent

logger = structlog.get_logger(__name__)

S = TypeVar("S")

CONFIDENCE_TIERS = ("low", "medium", "high")
NEUTRAL_SCORE = 0.5

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


# ---------------------------------------------------------------------------
# Weights and results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchWeights:
    """Per-dimension weights for the total score.  Must sum to 1.0."""

    title: float = 0.5
    venue: float = 0.25
    time: float = 0.15
    geo: float = 0.10

    def __post_init__(self) -> None:
        total = self.title + self.venue + self.time + self.geo
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            msg = f"Match weights must sum to 1.0, got {total:.4f}"
            raise ValueError(msg)


DEFAULT_WEIGHTS = MatchWeights()


@dataclass(frozen=True)
class DimensionScore:
    """Score for one dimension plus the reason it was given."""

    score: float
    reason: str


@dataclass(frozen=True)
class MatchEdge:
    """A stored candidate duplicate relationship between two events.

    By convention ``event_id_1`` is the secondary (lower-priority) listing
    and ``event_id_2`` the primary one.
    """

    event_id_1: str
    event_id_2: str
    score: float
    confidence: str
    reasons: tuple[str, ...] = ()
    match_type: str = "auto"

    def pair_key(self) -> frozenset[str]:
        """Unordered identity of the pair."""
        return frozenset((self.event_id_1, self.event_id_2))


@dataclass(frozen=True)
class MatchResult:
    """Full scoring breakdown for one pair of events."""

    event_id_1: str
    event_id_2: str
    title_score: float
    venue_score: float
    time_score: float
    geo_score: float
    total_score: float
    confidence: str
    reasons: list[str] = field(default_factory=list)

    def to_edge(self, match_type: str = "auto") -> MatchEdge:
        return MatchEdge(
            event_id_1=self.event_id_1,
            event_id_2=self.event_id_2,
            score=self.total_score,
            confidence=self.confidence,
            reasons=tuple(self.reasons),
            match_type=match_type,
        )


def confidence_rank(confidence: str) -> int:
    """Position of *confidence* in ``low < medium < high``.

    Raises:
        ValueError: If *confidence* is not a known tier.
    """
    try:
        return CONFIDENCE_TIERS.index(confidence)
    except ValueError:
        msg = f"Unknown confidence tier: {confidence!r}"
        raise ValueError(msg) from None


# ---------------------------------------------------------------------------
# Rule machinery
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule(Generic[S]):
    """One (predicate, outcome) entry in a dimension's rule list."""

    name: str
    applies: Callable[[S], bool]
    score: Callable[[S], float]
    reason: Callable[[S], str]


def apply_rules(rules: Sequence[Rule[S]], signals: S) -> DimensionScore:
    """Evaluate *rules* in order and return the first match's outcome."""
    for rule in rules:
        if rule.applies(signals):
            return DimensionScore(score=rule.score(signals), reason=rule.reason(signals))
    msg = "No rule matched; every rule list must end with a catch-all"
    raise LookupError(msg)


def _always(_signals: object) -> bool:
    return True


# ---------------------------------------------------------------------------
# Title
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TitleSignals:
    substring: bool
    length_ratio: float  # shorter / longer, over normalised titles
    overlap: float
    similarity: float


def title_signals(title_a: str, title_b: str) -> TitleSignals:
    norm_a = normalize_text(title_a)
    norm_b = normalize_text(title_b)
    longer = max(len(norm_a), len(norm_b))
    ratio = min(len(norm_a), len(norm_b)) / longer if longer else 0.0
    return TitleSignals(
        substring=contains_substring(title_a, title_b),
        length_ratio=ratio,
        overlap=token_overlap(title_a, title_b),
        similarity=similarity(title_a, title_b),
    )


TITLE_RULES: list[Rule[TitleSignals]] = [
    Rule(
        "substring",
        lambda s: s.substring and s.length_ratio > 0.4,
        lambda s: 0.95,
        lambda s: "title substring match",
    ),
    Rule(
        "high_token_overlap",
        lambda s: s.overlap > 0.8,
        lambda s: 0.9,
        lambda s: f"high token overlap ({s.overlap:.0%})",
    ),
    Rule(
        "string_similarity",
        lambda s: s.similarity > 0.85,
        lambda s: s.similarity,
        lambda s: f"string similarity ({s.similarity:.0%})",
    ),
    Rule(
        "moderate_token_overlap",
        lambda s: s.overlap > 0.6,
        lambda s: s.overlap * 0.85,
        lambda s: f"moderate token overlap ({s.overlap:.0%})",
    ),
    Rule(
        "low_similarity",
        _always,
        lambda s: max(s.similarity, s.overlap * 0.7),
        lambda s: "low similarity",
    ),
]


def score_title(title_a: str, title_b: str) -> DimensionScore:
    return apply_rules(TITLE_RULES, title_signals(title_a, title_b))


# ---------------------------------------------------------------------------
# Venue
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VenueSignals:
    missing: bool
    substring: bool = False
    overlap: float = 0.0
    similarity: float = 0.0


def venue_signals(venue_a: str | None, venue_b: str | None) -> VenueSignals:
    if not venue_a or not venue_b:
        return VenueSignals(missing=True)
    return VenueSignals(
        missing=False,
        substring=contains_substring(venue_a, venue_b),
        overlap=token_overlap(venue_a, venue_b),
        similarity=similarity(venue_a, venue_b),
    )


VENUE_RULES: list[Rule[VenueSignals]] = [
    Rule("unknown", lambda s: s.missing, lambda s: NEUTRAL_SCORE, lambda s: "venue unknown"),
    Rule("name_match", lambda s: s.substring, lambda s: 1.0, lambda s: "venue name match"),
    Rule(
        "token_overlap",
        lambda s: s.overlap > 0.5,
        lambda s: s.overlap,
        lambda s: f"venue token overlap ({s.overlap:.0%})",
    ),
    Rule(
        "similarity",
        _always,
        lambda s: s.similarity,
        lambda s: f"venue similarity ({s.similarity:.0%})",
    ),
]


def score_venue(venue_a: str | None, venue_b: str | None) -> DimensionScore:
    return apply_rules(VENUE_RULES, venue_signals(venue_a, venue_b))


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TimeSignals:
    missing: bool
    minutes_apart: int = 0


def _minutes_since_midnight(value: str) -> int:
    """Parse ``HH:MM`` or ``HH:MM:SS``; seconds are ignored."""
    match = _TIME_PATTERN.match(value.strip())
    if match is None:
        msg = f"Malformed start time: {value!r}"
        raise ValueError(msg)
    return int(match.group(1)) * 60 + int(match.group(2))


def time_signals(time_a: str | None, time_b: str | None) -> TimeSignals:
    if not time_a or not time_b:
        return TimeSignals(missing=True)
    diff = abs(_minutes_since_midnight(time_a) - _minutes_since_midnight(time_b))
    return TimeSignals(missing=False, minutes_apart=diff)


TIME_RULES: list[Rule[TimeSignals]] = [
    Rule("unknown", lambda s: s.missing, lambda s: NEUTRAL_SCORE, lambda s: "time unknown"),
    Rule("exact", lambda s: s.minutes_apart == 0, lambda s: 1.0, lambda s: "exact time match"),
    Rule(
        "within_30_min",
        lambda s: s.minutes_apart <= 30,
        lambda s: 0.8,
        lambda s: "time within 30 min",
    ),
    Rule("different", _always, lambda s: 0.0, lambda s: "different times"),
]


def score_time(time_a: str | None, time_b: str | None) -> DimensionScore:
    return apply_rules(TIME_RULES, time_signals(time_a, time_b))


# ---------------------------------------------------------------------------
# Geo
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeoSignals:
    missing: bool
    distance: float = 0.0


def geo_signals(
    lat_a: float | None,
    lng_a: float | None,
    lat_b: float | None,
    lng_b: float | None,
) -> GeoSignals:
    if lat_a is None or lng_a is None or lat_b is None or lng_b is None:
        return GeoSignals(missing=True)
    return GeoSignals(missing=False, distance=geo_distance_meters(lat_a, lng_a, lat_b, lng_b))


GEO_RULES: list[Rule[GeoSignals]] = [
    Rule("unknown", lambda s: s.missing, lambda s: NEUTRAL_SCORE, lambda s: "geo unknown"),
    Rule(
        "same_location",
        lambda s: s.distance < 100,
        lambda s: 1.0,
        lambda s: "same location (<100m)",
    ),
    Rule("nearby", lambda s: s.distance < 500, lambda s: 0.8, lambda s: "nearby (<500m)"),
    Rule("within_1km", lambda s: s.distance < 1000, lambda s: 0.5, lambda s: "within 1km"),
    Rule(
        "far_apart",
        _always,
        lambda s: 0.0,
        lambda s: f"far apart ({s.distance:.0f}m)",
    ),
]


def score_geo(
    lat_a: float | None,
    lng_a: float | None,
    lat_b: float | None,
    lng_b: float | None,
) -> DimensionScore:
    return apply_rules(GEO_RULES, geo_signals(lat_a, lng_a, lat_b, lng_b))


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------

# (tier, minimum total, minimum title score), evaluated in order
CONFIDENCE_RULES: list[tuple[str, float, float]] = [
    ("high", 0.85, 0.8),
    ("medium", 0.70, 0.6),
]


def classify_confidence(total_score: float, title_score: float) -> str:
    """Map a total score to a tier.  The title score gates every tier above low."""
    for tier, min_total, min_title in CONFIDENCE_RULES:
        if total_score >= min_total and title_score >= min_title:
            return tier
    return "low"


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def score_match(
    event_a: StoredEvent,
    event_b: StoredEvent,
    weights: MatchWeights | None = None,
) -> MatchResult:
    """Score how likely *event_a* and *event_b* describe the same real event."""
    weights = weights or DEFAULT_WEIGHTS

    title = score_title(event_a.title, event_b.title)
    venue = score_venue(event_a.location, event_b.location)
    time = score_time(event_a.start_time, event_b.start_time)
    geo = score_geo(event_a.latitude, event_a.longitude, event_b.latitude, event_b.longitude)

    total = (
        title.score * weights.title
        + venue.score * weights.venue
        + time.score * weights.time
        + geo.score * weights.geo
    )

    return MatchResult(
        event_id_1=event_a.event_id,
        event_id_2=event_b.event_id,
        title_score=title.score,
        venue_score=venue.score,
        time_score=time.score,
        geo_score=geo.score,
        total_score=total,
        confidence=classify_confidence(total, title.score),
        reasons=[
            f"Title: {title.reason}",
            f"Venue: {venue.reason}",
            f"Time: {time.reason}",
            f"Geo: {geo.reason}",
        ],
    )


# ---------------------------------------------------------------------------
# Candidate generation
# ---------------------------------------------------------------------------

def find_matches(
    source_a_events: Sequence[StoredEvent],
    source_b_events: Sequence[StoredEvent],
    min_score: float = 0.65,
    weights: MatchWeights | None = None,
) -> list[MatchResult]:
    """Score every same-date pair across two sources and keep the good ones.

    Only events sharing the exact same ``date`` string are compared.  Pairs
    with ``total_score >= min_score`` are returned, best first.  An event may
    appear in several pairs; choosing one duplicate relationship is left to
    materialization.
    """
    b_by_date: dict[str, list[StoredEvent]] = defaultdict(list)
    for event in source_b_events:
        b_by_date[event.date].append(event)

    matches: list[MatchResult] = []
    for event_a in source_a_events:
        for event_b in b_by_date.get(event_a.date, ()):
            result = score_match(event_a, event_b, weights)
            if result.total_score >= min_score:
                matches.append(result)

    matches.sort(key=lambda m: m.total_score, reverse=True)
    return matches


def source_rank(source: str, source_priority: Sequence[str]) -> int:
    """Index of *source* in the priority list; unlisted sources rank last."""
    try:
        return list(source_priority).index(source)
    except ValueError:
        return len(source_priority)


def rank_sources(sources: Sequence[str], source_priority: Sequence[str]) -> list[str]:
    """Order *sources* highest priority first, unlisted ones by name."""
    return sorted(set(sources), key=lambda s: (source_rank(s, source_priority), s))


def find_cross_source_matches(
    events_by_source: Mapping[str, Sequence[StoredEvent]],
    source_priority: Sequence[str],
    min_score: float = 0.65,
    weights: MatchWeights | None = None,
) -> list[MatchResult]:
    """Run :func:`find_matches` over every pair of sources.

    The lower-priority source is always passed first, so every result is
    oriented ``(secondary, primary)``.
    """
    ranked = rank_sources(list(events_by_source), source_priority)

    matches: list[MatchResult] = []
    for i, primary in enumerate(ranked):
        for secondary in ranked[i + 1:]:
            pair_matches = find_matches(
                events_by_source[secondary],
                events_by_source[primary],
                min_score,
                weights,
            )
            logger.debug(
                "source_pair_matched",
                secondary=secondary,
                primary=primary,
                matches=len(pair_matches),
            )
            matches.extend(pair_matches)

    return matches


def dedupe_edges(edges: Sequence[MatchEdge]) -> list[MatchEdge]:
    """Keep one edge per unordered id pair: the highest score, first seen on ties."""
    best: dict[frozenset[str], MatchEdge] = {}
    for edge in edges:
        key = edge.pair_key()
        current = best.get(key)
        if current is None or edge.score > current.score:
            best[key] = edge
    return list(best.values())
