"""Tests for the event record model and configuration defaults."""

from __future__ import annotations

import pytest

from eventlens.config import DEFAULT_SOURCE_PRIORITY, Settings
from eventlens.events import StoredEvent, chronological_key, sort_chronologically


class TestStoredEvent:
    def test_missing_event_id_raises(self):
        with pytest.raises(ValueError, match="event_id"):
            StoredEvent(event_id="", title="x", url="u", date="2025-10-04", source="s")

    def test_missing_date_raises(self):
        with pytest.raises(ValueError, match="missing its date"):
            StoredEvent(event_id="e1", title="x", url="u", date="", source="s")

    def test_from_row_ignores_extra_columns(self):
        row = {
            "id": 17,
            "event_id": "fm-123",
            "title": "Trivia Night",
            "url": "https://example.com/123",
            "date": "2025-10-04",
            "source": "fargomoorhead.org",
            "start_time": "19:00:00",
            "latitude": 46.877,
            "longitude": -96.789,
        }
        event = StoredEvent.from_row(row)
        assert event.event_id == "fm-123"
        assert event.start_time == "19:00:00"
        assert event.location is None
        assert event.categories == "[]"


class TestChronologicalOrdering:
    def test_untimed_sorts_after_timed(self, make_event):
        timed = make_event(start_time="23:30:00")
        untimed = make_event()
        assert chronological_key(timed) < chronological_key(untimed)

    def test_date_dominates_time(self, make_event):
        later_day = make_event(date="2025-10-05", start_time="00:30:00")
        earlier_day = make_event(date="2025-10-04")
        assert sort_chronologically([later_day, earlier_day]) == [earlier_day, later_day]


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EL_MIN_MATCH_SCORE", raising=False)
        monkeypatch.delenv("EL_DEDUP_STRATEGY", raising=False)
        settings = Settings(_env_file=None)
        assert settings.min_match_score == 0.65
        assert settings.dedup_strategy == "pairwise"
        assert settings.source_priority == DEFAULT_SOURCE_PRIORITY

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("EL_MIN_MATCH_SCORE", "0.7")
        monkeypatch.setenv("EL_DEDUP_STRATEGY", "components")
        monkeypatch.setenv("EL_SOURCE_PRIORITY", '["a.example", "b.example"]')
        settings = Settings(_env_file=None)
        assert settings.min_match_score == 0.7
        assert settings.dedup_strategy == "components"
        assert settings.source_priority == ["a.example", "b.example"]
