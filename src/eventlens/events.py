"""Event record model shared by matching, materialization and storage."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import Any


@dataclass(frozen=True)
class StoredEvent:
    """One source-published occurrence of an event.

    ``event_id`` is globally unique (prefixed per source) and ``date`` is the
    ``YYYY-MM-DD`` of the next occurrence.  Both are required; everything
    else may be missing without making the record invalid.
    """

    event_id: str
    title: str
    url: str
    date: str
    source: str
    start_time: str | None = None  # HH:MM:SS, 24-hour
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    image_url: str | None = None
    categories: str = "[]"  # serialized list
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        if not self.event_id:
            msg = "Event record is missing its event_id"
            raise ValueError(msg)
        if not self.date:
            msg = f"Event record {self.event_id!r} is missing its date"
            raise ValueError(msg)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> StoredEvent:
        """Build a record from a database row dict, ignoring unknown columns."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})


def chronological_key(event: StoredEvent) -> tuple[str, int, str]:
    """Sort key: date ascending, then time ascending with untimed events last."""
    if event.start_time:
        return (event.date, 0, event.start_time)
    return (event.date, 1, "")


def sort_chronologically(events: Sequence[StoredEvent]) -> list[StoredEvent]:
    """Return *events* in display order.

    ``sorted`` is stable, so events sharing date and time keep their input
    (insertion) order.
    """
    return sorted(events, key=chronological_key)
