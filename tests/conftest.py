"""Shared fixtures for deduplication tests."""

from __future__ import annotations

from collections.abc import Callable
from itertools import count

import pytest

from eventlens.events import StoredEvent

_ids = count(1)


def build_event(**overrides) -> StoredEvent:
    """Return a StoredEvent with sensible defaults; any field can be overridden."""
    n = next(_ids)
    values = {
        "event_id": f"test-{n}",
        "title": f"Test Event {n}",
        "url": f"https://example.com/events/{n}",
        "date": "2025-10-04",
        "source": "example.com",
        "start_date": "2025-10-04",
        "end_date": "2025-10-04",
    }
    values.update(overrides)
    return StoredEvent(**values)


@pytest.fixture()
def make_event() -> Callable[..., StoredEvent]:
    """Factory fixture for building event records."""
    return build_event


@pytest.fixture()
def art_walk_pair() -> tuple[StoredEvent, StoredEvent]:
    """The same art walk published by two sources.

    ``a1`` comes from the lower-priority source and ``b1`` from the richer
    one, so a pipeline run should keep ``b1`` and link ``a1`` as alternate.
    """
    a1 = build_event(
        event_id="a1",
        title="Fall Art Walk",
        url="https://www.fargomoorhead.org/event/fall-art-walk/a1",
        date="2025-10-04",
        location="Broadway",
        source="fargomoorhead.org",
    )
    b1 = build_event(
        event_id="b1",
        title="Fall Art Walk Downtown",
        url="https://fargounderground.com/event/fall-art-walk-downtown/",
        date="2025-10-04",
        location="Broadway N",
        source="fargounderground.com",
    )
    return a1, b1
