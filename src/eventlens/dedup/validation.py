"""Precision / recall measurement for match quality.

Compares stored match edges against a hand-labelled set of event pairs, and
flags the multi-source chains where the pairwise display strategy is known
to be fragile.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from eventlens.dedup.matcher import CONFIDENCE_TIERS, MatchEdge, confidence_rank

_MIN_USABLE_RANK = confidence_rank("medium")

# (minimum F1, grade, advice), best first
_ASSESSMENTS = (
    (0.95, "EXCELLENT", "safe to merge listings automatically"),
    (0.85, "GOOD", "spot-check medium-confidence matches"),
    (0.70, "FAIR", "review title rules and thresholds"),
    (0.0, "POOR", "duplicates or wrong merges are common"),
)


def _predicted_pairs(edges: Sequence[MatchEdge]) -> set[frozenset[str]]:
    return {
        edge.pair_key()
        for edge in edges
        if confidence_rank(edge.confidence) >= _MIN_USABLE_RANK
    }


def compute_match_metrics(
    edges: Sequence[MatchEdge],
    ground_truth: list[dict],
) -> dict[str, float]:
    """Compute precision, recall, and F1 for match edges.

    Parameters
    ----------
    edges:
        Match edges as produced by a pipeline run.  Only ``medium`` and
        ``high`` edges count as a "same event" prediction.
    ground_truth:
        List of dicts each containing:
          - ``event_id_1``: str
          - ``event_id_2``: str
          - ``same_event``: bool, whether the two listings describe the same
            real-world event.

    Pair order is ignored on both sides.

    Returns
    -------
    dict
        ``{"precision": float, "recall": float, "f1": float,
          "true_positives": int, "false_positives": int,
          "false_negatives": int, "total_pairs": int}``
    """
    predicted = _predicted_pairs(edges)

    true_positives = 0
    false_positives = 0
    false_negatives = 0

    for pair in ground_truth:
        key = frozenset((pair["event_id_1"], pair["event_id_2"]))
        expected_same = pair["same_event"]
        predicted_same = key in predicted

        if predicted_same and expected_same:
            true_positives += 1
        elif predicted_same and not expected_same:
            false_positives += 1
        elif not predicted_same and expected_same:
            false_negatives += 1

    precision = (
        true_positives / (true_positives + false_positives)
        if (true_positives + false_positives) > 0
        else 0.0
    )
    recall = (
        true_positives / (true_positives + false_negatives)
        if (true_positives + false_negatives) > 0
        else 0.0
    )
    f1 = (
        2 * precision * recall / (precision + recall)
        if (precision + recall) > 0
        else 0.0
    )

    return {
        "precision": precision,
        "recall": recall,
        "f1": f1,
        "true_positives": true_positives,
        "false_positives": false_positives,
        "false_negatives": false_negatives,
        "total_pairs": len(ground_truth),
    }


def find_chain_conflicts(edges: Sequence[MatchEdge]) -> list[str]:
    """Return ids that are secondary in one usable edge and primary in another.

    Under the pairwise strategy such an id is dropped from the display set
    while also owning an alternate link, so the link is lost.
    """
    usable = [e for e in edges if confidence_rank(e.confidence) >= _MIN_USABLE_RANK]
    secondaries = {e.event_id_1 for e in usable}
    primaries = {e.event_id_2 for e in usable}
    return sorted(secondaries & primaries)


def generate_validation_report(
    metrics: dict[str, float],
    edges: Sequence[MatchEdge] = (),
) -> str:
    """Format match metrics into a human-readable report.

    When *edges* are given the report also breaks them down by confidence
    tier and lists the chained ids that the pairwise display strategy
    handles badly.
    """
    lines = [
        "Event Match Validation Report",
        "=" * 40,
        "",
        f"Labelled pairs:   {metrics.get('total_pairs', 0):.0f}",
        f"Correct merges:   {metrics.get('true_positives', 0):.0f}",
        f"Wrong merges:     {metrics.get('false_positives', 0):.0f}",
        f"Missed merges:    {metrics.get('false_negatives', 0):.0f}",
        "",
        f"Precision:  {metrics.get('precision', 0.0):.4f}",
        f"Recall:     {metrics.get('recall', 0.0):.4f}",
        f"F1 Score:   {metrics.get('f1', 0.0):.4f}",
    ]

    conflicts = find_chain_conflicts(edges)
    if edges:
        tiers = Counter(edge.confidence for edge in edges)
        lines.append("")
        lines.append(f"Match edges:  {len(edges)}")
        for tier in reversed(CONFIDENCE_TIERS):
            lines.append(f"  {tier:<8}{tiers[tier]}")

        lines.append(f"Chained ids:  {len(conflicts)}")
        if conflicts:
            lines.append("  " + ", ".join(conflicts[:10]))
            if len(conflicts) > 10:
                lines.append(f"  ... and {len(conflicts) - 10} more")

    f1 = metrics.get("f1", 0.0)
    grade, advice = next(
        (grade, advice) for floor, grade, advice in _ASSESSMENTS if f1 >= floor
    )
    lines.append(f"\nAssessment: {grade} ({advice})")
    if conflicts:
        lines.append("Chained matches found: consider the components display strategy.")

    return "\n".join(lines)
