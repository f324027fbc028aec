"""Tests for text normalisation, string distance and geo distance helpers."""

from __future__ import annotations

import pytest

from eventlens.dedup.geo import geo_distance_meters
from eventlens.dedup.normalize import (
    contains_substring,
    decode_html_entities,
    edit_distance,
    normalize_text,
    similarity,
    token_overlap,
    tokenize,
)

# Roughly 111,195 m per degree of latitude with a 6,371 km Earth radius
_METERS_PER_DEGREE_LAT = 111_194.93

# =========================================================================
# normalize_text
# =========================================================================


class TestNormalizeText:
    """Tests for free-text canonicalisation."""

    def test_lowercases(self):
        assert normalize_text("TRIVIA Night") == "trivia night"

    def test_decodes_html_entities(self):
        assert normalize_text("Rock &amp; Roll") == "rock & roll"

    def test_decodes_numeric_entities(self):
        assert normalize_text("Paradox&#8217;s Game Night") == "paradox's game night"

    def test_unifies_dashes(self):
        assert normalize_text("Fargo – Moorhead — Live") == "fargo - moorhead - live"

    def test_unifies_quotes(self):
        assert normalize_text("“Hamlet” at the ‘Fargo’") == "\"hamlet\" at the 'fargo'"

    def test_collapses_whitespace(self):
        assert normalize_text("  Art \t  Walk\n Downtown  ") == "art walk downtown"

    def test_empty_string(self):
        assert normalize_text("") == ""


# =========================================================================
# tokenize
# =========================================================================


class TestTokenize:
    """Tests for token extraction."""

    def test_strips_punctuation(self):
        assert tokenize("Trivia Night! (Ages 21+)") == ["trivia", "night", "ages", "21"]

    def test_keeps_internal_apostrophes_and_hyphens(self):
        assert tokenize("Kids' Sing-Along") == ["kids'", "sing-along"]

    def test_drops_single_characters(self):
        assert tokenize("A Night at the Museum: B Side") == ["night", "at", "the", "museum", "side"]

    def test_decodes_entities_before_splitting(self):
        assert tokenize("Beer &amp; Bingo") == ["beer", "bingo"]


# =========================================================================
# edit_distance / similarity
# =========================================================================


class TestEditDistance:
    """Tests for Levenshtein distance over normalised strings."""

    def test_identical_is_zero(self):
        assert edit_distance("Fall Art Walk", "Fall Art Walk") == 0

    def test_classic_example(self):
        assert edit_distance("kitten", "sitting") == 3

    def test_normalises_before_comparing(self):
        assert edit_distance("FALL  ART WALK", "fall art walk") == 0

    def test_against_empty(self):
        assert edit_distance("jazz", "") == 4


class TestSimilarity:
    """Tests for edit-distance similarity."""

    @pytest.mark.parametrize("text", ["", "a", "Fall Art Walk", "Rock &amp; Roll"])
    def test_self_similarity_is_one(self, text):
        assert similarity(text, text) == 1.0

    def test_either_empty_is_zero(self):
        assert similarity("Art Walk", "") == 0.0
        assert similarity("", "Art Walk") == 0.0

    def test_one_edit(self):
        # "holiday concrt" is one deletion away from 15-character "holiday concert"
        assert similarity("Holiday Concert", "Holiday Concrt") == pytest.approx(1 - 1 / 15)

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("Fall Art Walk", "Fall Art Walk Downtown"),
            ("Trivia Night", "Karaoke"),
            ("kitten", "sitting"),
        ],
    )
    def test_symmetric_and_bounded(self, a, b):
        forward = similarity(a, b)
        assert forward == similarity(b, a)
        assert 0.0 <= forward <= 1.0


# =========================================================================
# contains_substring / token_overlap
# =========================================================================


class TestContainsSubstring:
    """Tests for normalised containment."""

    def test_either_direction(self):
        assert contains_substring("Broadway", "Broadway N")
        assert contains_substring("Broadway N", "Broadway")

    def test_case_and_entities_ignored(self):
        assert contains_substring("ROCK &amp; ROLL", "rock & roll night")

    def test_unrelated(self):
        assert not contains_substring("Fargo Theatre", "Bluestem Center")


class TestTokenOverlap:
    """Tests for smaller-set token overlap."""

    def test_subset_title_is_full_overlap(self):
        assert token_overlap("Trivia Night", "Trivia Night at Paradox") == 1.0

    def test_disjoint_is_zero(self):
        assert token_overlap("Book Club", "Farmers Market") == 0.0

    def test_partial(self):
        # 3 shared tokens over the smaller set of 4
        assert token_overlap(
            "Jazz Night Live Music", "Jazz Night Live Show Downtown"
        ) == pytest.approx(0.75)

    def test_symmetric(self):
        a, b = "Jazz Night Live Music", "Live Jazz Downtown"
        assert token_overlap(a, b) == token_overlap(b, a)

    def test_empty_token_set_is_zero(self):
        assert token_overlap("A", "Trivia Night") == 0.0


# =========================================================================
# geo_distance_meters
# =========================================================================


class TestGeoDistance:
    """Tests for haversine distance."""

    def test_same_point_is_zero(self):
        assert geo_distance_meters(46.877, -96.789, 46.877, -96.789) == 0.0

    def test_fifty_meters_north(self):
        offset = 50 / _METERS_PER_DEGREE_LAT
        distance = geo_distance_meters(46.877, -96.789, 46.877 + offset, -96.789)
        assert distance == pytest.approx(50, abs=0.1)

    def test_two_kilometers_north(self):
        offset = 2000 / _METERS_PER_DEGREE_LAT
        distance = geo_distance_meters(46.877, -96.789, 46.877 + offset, -96.789)
        assert distance == pytest.approx(2000, abs=1)

    def test_symmetric(self):
        forward = geo_distance_meters(46.877, -96.789, 46.86, -96.8)
        assert forward == pytest.approx(geo_distance_meters(46.86, -96.8, 46.877, -96.789))
