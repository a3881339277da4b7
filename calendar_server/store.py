# -*- coding: utf-8 -*-
"""Event store interface and the in-process implementation.

The store owns durable event records. Every record belongs to exactly one
owner and queries only ever return the caller's own records.
"""
from __future__ import annotations

import dataclasses
import secrets
import string
import typing as t

from calendar_server.errors import PersistenceError
from calendar_server.models import Event


ID_LENGTH = 20

# Fields a caller may change through update(); id and owner are fixed at creation
UPDATABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(Event) if f.name not in ("id", "owner_id")
)


def generate_event_id() -> str:
    """Generate a random 20-character alphanumeric event ID."""
    return "".join(secrets.choice(string.ascii_letters + string.digits) for _ in range(ID_LENGTH))


class EventStore(t.Protocol):
    """Operations the calendar core needs from an event store."""

    async def create(self, event: Event) -> str: ...

    async def query(self, owner_id: str) -> list[Event]: ...

    async def update(self, event_id: str, fields: dict[str, t.Any]) -> None: ...

    async def delete(self, event_id: str) -> None: ...


def check_update_fields(fields: dict[str, t.Any]) -> None:
    """Reject updates that touch unknown or immutable fields."""
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise PersistenceError(f"Cannot update fields: {sorted(unknown)}")


class InMemoryEventStore:
    """Event store kept in a dict.

    In a real deployment this is replaced by the calendar service
    (see :class:`calendar_server.http_store.HttpEventStore`).
    """

    def __init__(self) -> None:
        self._records: dict[str, Event] = {}

    async def create(self, event: Event) -> str:
        """Store a copy of ``event`` under a fresh ID and return the ID."""
        event_id = generate_event_id()
        while event_id in self._records:
            event_id = generate_event_id()
        self._records[event_id] = dataclasses.replace(
            event, id=event_id, shared_with=list(event.shared_with)
        )
        return event_id

    async def get(self, event_id: str) -> t.Optional[Event]:
        record = self._records.get(event_id)
        return _copy(record) if record is not None else None

    async def query(self, owner_id: str) -> list[Event]:
        """Return copies of all events owned by ``owner_id``, in insertion order."""
        return [_copy(e) for e in self._records.values() if e.owner_id == owner_id]

    async def update(self, event_id: str, fields: dict[str, t.Any]) -> None:
        """Apply a partial update to an existing record.

        :raises PersistenceError: If the record does not exist or a field is not updatable.
        """
        record = self._records.get(event_id)
        if record is None:
            raise PersistenceError(f"Event not found: {event_id}")
        check_update_fields(fields)
        self._records[event_id] = dataclasses.replace(record, **fields)

    async def delete(self, event_id: str) -> None:
        """Remove a record. Deleting a missing record is not an error."""
        self._records.pop(event_id, None)

    def __len__(self) -> int:
        return len(self._records)


def _copy(event: Event) -> Event:
    return dataclasses.replace(event, shared_with=list(event.shared_with))
