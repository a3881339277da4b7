"""Calendar controller.

Owns the in-memory working set of the current user's events and routes
every mutation through the event store, the reminder scheduler and the
ordered list synchronizer.
"""
from __future__ import annotations

import dataclasses
import logging
import typing as t
from datetime import date

from calendar_server.clock import Clock, SystemClock
from calendar_server.models import Event, EventDraft, validate_draft, validate_email
from calendar_server.reorder import OrderedListSynchronizer, ReorderResult
from calendar_server.scheduler import ReminderScheduler
from calendar_server.store import EventStore

logger = logging.getLogger(__name__)


class CalendarController:
    """Load, edit, share and reorder one owner's events."""

    def __init__(
        self,
        store: EventStore,
        owner_id: str,
        scheduler: ReminderScheduler,
        clock: t.Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.owner_id = owner_id
        self.scheduler = scheduler
        self.clock = clock or scheduler.clock or SystemClock()
        self.events: list[Event] = []
        self.synchronizer = OrderedListSynchronizer(store, self.events)

    async def load(self) -> list[Event]:
        """Fetch the owner's events, replace the working set and re-arm reminders from scratch.

        :raises PersistenceError: If the store query fails; the working set is left as it was.
        """
        fetched = await self.store.query(self.owner_id)
        self.events[:] = fetched
        # Timers from an earlier load may describe edited or deleted events
        self.scheduler.cancel_all()
        self.scheduler.schedule_reminders(self.events, self.clock.now())
        logger.info("loaded %d event(s) for %s", len(fetched), self.owner_id)
        return list(self.events)

    def get(self, event_id: str) -> Event:
        for event in self.events:
            if event.id == event_id:
                return event
        raise KeyError(event_id)

    def events_for_day(self, day: date) -> list[Event]:
        """Events on ``day`` in display order: by ``order``, unordered events last by start time."""
        day_events = [e for e in self.events if e.date == day]
        return sorted(
            day_events,
            key=lambda e: (e.order is None, e.order if e.order is not None else 0, e.start_time),
        )

    async def save_event(self, draft: EventDraft, event_id: t.Optional[str] = None) -> Event:
        """Create a new event, or update ``event_id`` with the draft's fields.

        The event's reminder is re-evaluated after the write.

        :raises ValidationError: If the draft is invalid; nothing is written.
        :raises PersistenceError: If the store write fails; the working set is unchanged.
        :raises KeyError: If ``event_id`` is not in the working set.
        """
        validate_draft(draft)
        now = self.clock.now()
        fields = draft.fields()

        if event_id is None:
            event = Event(owner_id=self.owner_id, created_at=now, **fields)
            event.id = await self.store.create(event)
            self.events.append(event)
            logger.info("created event %s (%r)", event.id, event.title)
        else:
            current = self.get(event_id)
            fields["updated_at"] = now
            await self.store.update(event_id, fields)
            event = dataclasses.replace(current, **fields)
            self._replace(event)
            logger.info("updated event %s (%r)", event.id, event.title)

        self.scheduler.reschedule(event, now)
        return event

    async def delete_event(self, event_id: str) -> None:
        """Delete an event and cancel its reminder.

        :raises PersistenceError: If the store delete fails; the event stays loaded.
        """
        await self.store.delete(event_id)
        self.events[:] = [e for e in self.events if e.id != event_id]
        self.scheduler.cancel(event_id)
        logger.info("deleted event %s", event_id)

    async def share_event(self, event_id: str, email: str) -> Event:
        """Add a collaborator email to an event's share list.

        Sharing is advisory metadata only; it grants no access.

        :raises ValidationError: If ``email`` is not an address.
        :raises PersistenceError: If the store write fails.
        """
        email = validate_email(email)
        current = self.get(event_id)
        shared_with = list(current.shared_with)
        if email not in shared_with:
            shared_with.append(email)
        fields = {"is_shared": True, "shared_with": shared_with}
        await self.store.update(event_id, fields)
        event = dataclasses.replace(current, **fields)
        self._replace(event)
        logger.info("shared event %s with %s", event_id, email)
        return event

    async def apply_reorder(self, new_sequence: t.Sequence[Event]) -> ReorderResult:
        """Persist a reordered day. See :class:`OrderedListSynchronizer`."""
        return await self.synchronizer.apply_reorder(new_sequence)

    async def reorder_by_ids(self, event_ids: t.Sequence[str]) -> ReorderResult:
        """Reorder a day given its event ids in the new order."""
        return await self.apply_reorder([self.get(event_id) for event_id in event_ids])

    def _replace(self, event: Event) -> None:
        for i, existing in enumerate(self.events):
            if existing.id == event.id:
                self.events[i] = event
                return
        raise KeyError(event.id)
