"""Text normalisation and string-distance primitives for event matching.

Every comparison helper normalises its inputs first, so callers can pass raw
(possibly HTML-entity-encoded) titles and venue strings straight from the
source records.
"""

from __future__ import annotations

import html
import re

from rapidfuzz.distance import Levenshtein

_DASHES = re.compile(r"[–—]")
_DOUBLE_QUOTES = re.compile(r"[“”]")
_SINGLE_QUOTES = re.compile(r"[‘’]")
_WHITESPACE = re.compile(r"\s+")
# Anything but word characters, whitespace, apostrophes and hyphens
_PUNCTUATION = re.compile(r"[^\w\s'-]")


def decode_html_entities(text: str) -> str:
    """Decode named and numeric HTML entities (``&amp;``, ``&#8217;``...)."""
    return html.unescape(text)


def normalize_text(text: str) -> str:
    """Canonicalise free text for comparison.

    Steps:
      1. Decode HTML entities.
      2. Lowercase.
      3. Map en/em dashes to ``-`` and curly quotes to their ASCII forms.
      4. Collapse whitespace and strip leading/trailing spaces.
    """
    text = decode_html_entities(text).lower()
    text = _DASHES.sub("-", text)
    text = _DOUBLE_QUOTES.sub('"', text)
    text = _SINGLE_QUOTES.sub("'", text)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> list[str]:
    """Split normalised text into tokens, dropping single characters."""
    stripped = _PUNCTUATION.sub(" ", normalize_text(text))
    return [token for token in stripped.split() if len(token) > 1]


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between the normalised forms of *a* and *b*."""
    return Levenshtein.distance(normalize_text(a), normalize_text(b))


def similarity(a: str, b: str) -> float:
    """Edit-distance similarity in [0, 1].

    1.0 for identical normalised strings, 0.0 if either is empty, otherwise
    ``1 - distance / longer_length``.
    """
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)

    if norm_a == norm_b:
        return 1.0
    if not norm_a or not norm_b:
        return 0.0

    distance = Levenshtein.distance(norm_a, norm_b)
    return 1.0 - distance / max(len(norm_a), len(norm_b))


def contains_substring(a: str, b: str) -> bool:
    """True if either normalised string contains the other."""
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)
    return norm_b in norm_a or norm_a in norm_b


def token_overlap(a: str, b: str) -> float:
    """Shared tokens divided by the size of the smaller token set.

    Dividing by the smaller set keeps subset titles ("Trivia Night" vs
    "Trivia Night at Paradox") at 1.0.  Returns 0.0 if either side has no
    tokens.
    """
    tokens_a = set(tokenize(a))
    tokens_b = set(tokenize(b))

    if not tokens_a or not tokens_b:
        return 0.0

    return len(tokens_a & tokens_b) / min(len(tokens_a), len(tokens_b))
