"""Cross-source event deduplication: scoring, matching and display materialisation."""

from __future__ import annotations

from eventlens.dedup.geo import geo_distance_meters
from eventlens.dedup.materialize import (
    AlternateLink,
    DisplayRow,
    rebuild_display_events,
)
from eventlens.dedup.matcher import (
    MatchEdge,
    MatchResult,
    MatchWeights,
    classify_confidence,
    dedupe_edges,
    find_cross_source_matches,
    find_matches,
    score_match,
)
from eventlens.dedup.normalize import (
    contains_substring,
    edit_distance,
    normalize_text,
    similarity,
    token_overlap,
    tokenize,
)
from eventlens.dedup.validation import (
    compute_match_metrics,
    find_chain_conflicts,
    generate_validation_report,
)

__all__ = [
    "AlternateLink",
    "DisplayRow",
    "MatchEdge",
    "MatchResult",
    "MatchWeights",
    "classify_confidence",
    "compute_match_metrics",
    "contains_substring",
    "dedupe_edges",
    "edit_distance",
    "find_chain_conflicts",
    "find_cross_source_matches",
    "find_matches",
    "generate_validation_report",
    "geo_distance_meters",
    "normalize_text",
    "rebuild_display_events",
    "score_match",
    "similarity",
    "token_overlap",
    "tokenize",
]
