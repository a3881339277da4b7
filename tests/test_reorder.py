"""Tests for the ordered list synchronizer.

This module tests the optimistic in-memory update, write issuance order,
partial failure handling and idempotence of repeated reorders.
"""
import asyncio
import typing as t
from datetime import date

import pytest

from calendar_server.errors import PersistenceError, ValidationError
from calendar_server.models import Event
from calendar_server.reorder import OrderedListSynchronizer
from calendar_server.store import InMemoryEventStore


DAY = date(2026, 10, 19)


class SlowStore(InMemoryEventStore):
    """In-memory store whose updates take a per-event delay and may fail."""

    def __init__(self, delays: t.Optional[dict[str, float]] = None, failing: t.Iterable[str] = ()) -> None:
        super().__init__()
        self.delays = delays or {}
        self.failing = set(failing)
        self.issued: list[str] = []
        self.completed: list[str] = []

    async def update(self, event_id: str, fields: dict[str, t.Any]) -> None:
        self.issued.append(event_id)
        await asyncio.sleep(self.delays.get(event_id, 0))
        if event_id in self.failing:
            raise PersistenceError(f"write rejected for {event_id}")
        await super().update(event_id, fields)
        self.completed.append(event_id)


async def seed(store: InMemoryEventStore, titles: list[str], day: date = DAY) -> list[Event]:
    """Create one event per title on ``day`` and return them with ids set."""
    events = []
    for i, title in enumerate(titles):
        event = Event(owner_id="user-1", title=title, date=day, start_time=f"{9 + i:02d}:00", order=i)
        event.id = await store.create(event)
        events.append(event)
    return events


async def persisted_orders(store: InMemoryEventStore) -> dict[str, t.Optional[int]]:
    return {e.title: e.order for e in await store.query("user-1")}


@pytest.mark.asyncio
async def test_reorder_persists_new_positions() -> None:
    """[e2, e1, e3] on input [e1, e2, e3] persists e2->0, e1->1, e3->2."""
    store = SlowStore()
    e1, e2, e3 = await seed(store, ["e1", "e2", "e3"])
    working_set = [e1, e2, e3]
    sync = OrderedListSynchronizer(store, working_set)

    result = await sync.apply_reorder([e2, e1, e3])

    assert result.ok
    assert result.written == {e2.id: 0, e1.id: 1, e3.id: 2}
    assert await persisted_orders(store) == {"e2": 0, "e1": 1, "e3": 2}
    assert [e.title for e in working_set] == ["e2", "e1", "e3"]
    assert [e.order for e in working_set] == [0, 1, 2]


@pytest.mark.asyncio
async def test_working_set_updates_before_writes_complete() -> None:
    """The in-memory order changes before any positional write finishes."""
    store = SlowStore()
    e1, e2, e3 = await seed(store, ["e1", "e2", "e3"])
    store.delays = {e1.id: 0.05, e2.id: 0.05, e3.id: 0.05}
    working_set = [e1, e2, e3]
    sync = OrderedListSynchronizer(store, working_set)

    task = asyncio.create_task(sync.apply_reorder([e2, e1, e3]))
    await asyncio.sleep(0)

    assert [e.title for e in working_set] == ["e2", "e1", "e3"]
    assert store.completed == []

    await task
    assert len(store.completed) == 3


@pytest.mark.asyncio
async def test_writes_are_issued_in_sequence_order() -> None:
    """Writes start in sequence order even when they finish in reverse."""
    store = SlowStore()
    e1, e2, e3 = await seed(store, ["e1", "e2", "e3"])
    store.delays = {e3.id: 0.06, e1.id: 0.04, e2.id: 0.02}
    sync = OrderedListSynchronizer(store, [e1, e2, e3])

    await sync.apply_reorder([e3, e1, e2])

    assert store.issued == [e3.id, e1.id, e2.id]
    assert store.completed == [e2.id, e1.id, e3.id]


@pytest.mark.asyncio
async def test_failed_write_does_not_stop_siblings() -> None:
    """One rejected write is reported; the others persist and nothing rolls back."""
    store = SlowStore()
    e1, e2, e3 = await seed(store, ["e1", "e2", "e3"])
    store.failing = {e1.id}
    working_set = [e1, e2, e3]
    sync = OrderedListSynchronizer(store, working_set)

    result = await sync.apply_reorder([e3, e2, e1])

    assert not result.ok
    assert list(result.failed) == [e1.id]
    assert "write rejected" in result.failed[e1.id]
    assert result.written == {e3.id: 0, e2.id: 1}
    # e1 keeps its old persisted position
    assert await persisted_orders(store) == {"e1": 0, "e2": 1, "e3": 0}
    assert [e.title for e in working_set] == ["e3", "e2", "e1"]


@pytest.mark.asyncio
async def test_repeated_reorder_is_idempotent() -> None:
    """Applying the same sequence twice yields the same persisted orders."""
    store = SlowStore()
    e1, e2, e3 = await seed(store, ["e1", "e2", "e3"])
    sync = OrderedListSynchronizer(store, [e1, e2, e3])

    await sync.apply_reorder([e2, e3, e1])
    first = await persisted_orders(store)
    await sync.apply_reorder([e2, e3, e1])

    assert await persisted_orders(store) == first == {"e2": 0, "e3": 1, "e1": 2}


@pytest.mark.asyncio
async def test_other_days_are_untouched() -> None:
    """Reordering one day leaves events of other days in the working set."""
    store = SlowStore()
    e1, e2 = await seed(store, ["e1", "e2"])
    (other,) = await seed(store, ["other"], day=date(2026, 10, 20))
    working_set = [e1, other, e2]
    sync = OrderedListSynchronizer(store, working_set)

    await sync.apply_reorder([e2, e1])

    assert [e.title for e in working_set] == ["other", "e2", "e1"]
    assert other.id not in store.issued


@pytest.mark.asyncio
async def test_sequence_spanning_days_is_rejected() -> None:
    """A sequence must belong to a single day."""
    store = SlowStore()
    (e1,) = await seed(store, ["e1"])
    (other,) = await seed(store, ["other"], day=date(2026, 10, 20))
    working_set = [e1, other]
    sync = OrderedListSynchronizer(store, working_set)

    with pytest.raises(ValidationError):
        await sync.apply_reorder([other, e1])

    assert working_set == [e1, other]
    assert store.issued == []


@pytest.mark.asyncio
async def test_empty_sequence_is_noop() -> None:
    store = SlowStore()
    result = await OrderedListSynchronizer(store, []).apply_reorder([])

    assert result.ok and result.written == {}
    assert store.issued == []


@pytest.mark.asyncio
async def test_partial_day_sequence_is_rejected() -> None:
    """Leaving out a loaded event of the day is refused before anything changes."""
    store = SlowStore()
    e1, e2, e3 = await seed(store, ["e1", "e2", "e3"])
    working_set = [e1, e2, e3]
    sync = OrderedListSynchronizer(store, working_set)

    with pytest.raises(ValidationError, match="every event"):
        await sync.apply_reorder([e2, e1])

    assert [e.title for e in working_set] == ["e1", "e2", "e3"]
    assert store.issued == []
    assert len(store) == 3


@pytest.mark.asyncio
async def test_event_not_in_working_set_is_rejected() -> None:
    """Every event in the sequence must be one of the loaded events."""
    store = SlowStore()
    e1, e2 = await seed(store, ["e1", "e2"])
    sync = OrderedListSynchronizer(store, [e1])

    with pytest.raises(ValidationError):
        await sync.apply_reorder([e2, e1])

    assert store.issued == []
