"""Persistence of drag-reorder gestures.

A reorder replaces the day's events in the working set immediately and
then writes each event's new position to the store. Writes are issued in
sequence order but may complete in any order. A failed write is logged and
reported without rolling back earlier writes or the in-memory order, so a
partially persisted reorder is possible. Concurrent reorders from other
sessions are not merged; the last write to each record wins.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import typing as t
from dataclasses import dataclass, field

from calendar_server.errors import ValidationError
from calendar_server.models import Event
from calendar_server.store import EventStore

logger = logging.getLogger(__name__)


@dataclass
class ReorderResult:
    """Outcome of one reorder: positions written and event ids whose write failed."""
    written: dict[str, int] = field(default_factory=dict)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class OrderedListSynchronizer:
    """Reconciles a reordered day with persisted ``order`` fields.

    :param store: Store receiving the positional writes.
    :param working_set: The controller's list of loaded events, mutated in place.
    """

    def __init__(self, store: EventStore, working_set: list[Event]) -> None:
        self.store = store
        self.working_set = working_set

    async def apply_reorder(self, new_sequence: t.Sequence[Event]) -> ReorderResult:
        """Persist a full reordered sequence of one day's events.

        :param new_sequence: Every event of the displayed day, in the new order.
        :return: Which positional writes succeeded and which failed.
        :raises ValidationError: If the sequence mixes days, contains unsaved events
            or does not list every loaded event of its day.
        """
        sequence = [dataclasses.replace(event, order=i) for i, event in enumerate(new_sequence)]
        if not sequence:
            return ReorderResult()
        _check_sequence(sequence)
        self._check_covers_day(sequence)

        self._replace_day(sequence)

        tasks = [
            asyncio.ensure_future(self.store.update(event.id, {"order": i}))
            for i, event in enumerate(sequence)
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        result = ReorderResult()
        for i, (event, outcome) in enumerate(zip(sequence, outcomes)):
            if isinstance(outcome, Exception):
                logger.error("failed to persist order %d for event %s: %s", i, event.id, outcome)
                result.failed[event.id] = str(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.written[event.id] = i
        return result

    def _check_covers_day(self, sequence: list[Event]) -> None:
        day = sequence[0].date
        loaded = {e.id for e in self.working_set if e.date == day}
        given = {e.id for e in sequence}
        if given != loaded:
            missing = sorted(loaded - given)
            unknown = sorted(given - loaded)
            raise ValidationError(
                f"Reorder sequence must list every event of {day.isoformat()} exactly once "
                f"(missing: {missing}, not loaded: {unknown})"
            )

    def _replace_day(self, sequence: list[Event]) -> None:
        day = sequence[0].date
        others = [e for e in self.working_set if e.date != day]
        self.working_set[:] = others + sequence


def _check_sequence(sequence: list[Event]) -> None:
    days = {event.date for event in sequence}
    if len(days) > 1:
        raise ValidationError(f"Reorder sequence spans several days: {sorted(days)}")
    ids = [event.id for event in sequence]
    if None in ids:
        raise ValidationError("Reorder sequence contains an unsaved event")
    if len(set(ids)) != len(ids):
        raise ValidationError("Reorder sequence contains the same event twice")
