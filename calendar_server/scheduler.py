"""Reminder scheduling.

Given the events visible to the current user, the scheduler arms one
one-shot timer per event whose reminder falls inside the look-ahead
horizon. Timers live only in memory: nothing survives a process restart,
and events outside the horizon are reconsidered on the next load.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
from datetime import datetime, timedelta

from calendar_server.clock import Clock, SystemClock
from calendar_server.dispatcher import NotificationDispatcher
from calendar_server.errors import CalendarError, ValidationError
from calendar_server.models import Event, is_positive_minutes, start_instant

logger = logging.getLogger(__name__)

REMINDER_HORIZON = timedelta(hours=24)


def compute_fire_time(event: Event) -> t.Optional[datetime]:
    """Return the instant an event's reminder should fire.

    :param event: The event to inspect.
    :return: ``start - reminder_minutes``, or None when the event has no usable reminder.
    :raises ValidationError: If the event's start time is malformed or the fire time
        falls outside the representable date range.
    """
    if not event.reminder_enabled or not is_positive_minutes(event.reminder_minutes):
        return None
    start = start_instant(event)
    try:
        return start - timedelta(minutes=event.reminder_minutes)
    except OverflowError:
        raise ValidationError(
            f"Reminder {event.reminder_minutes} minutes before {start.isoformat()} is out of range"
        ) from None


def is_admissible(fire_at: datetime, now: datetime, horizon: timedelta = REMINDER_HORIZON) -> bool:
    """True when ``fire_at`` lies strictly inside ``(now, now + horizon)``."""
    return now < fire_at < now + horizon


def reminder_text(event: Event) -> tuple[str, str]:
    """Title and body of the alert shown for an event's reminder."""
    return f"Reminder: {event.title}", f"Starting in {event.reminder_minutes} minutes"


class ReminderScheduler:
    """Arms and tracks reminder timers, one per event id.

    Arming an event that already has a timer replaces the old timer, so
    repeated loads never produce duplicate alerts.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        clock: t.Optional[Clock] = None,
        horizon: timedelta = REMINDER_HORIZON,
    ) -> None:
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.horizon = horizon
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._fire_times: dict[str, datetime] = {}

    def schedule_reminders(self, events: t.Iterable[Event], now: t.Optional[datetime] = None) -> list[str]:
        """Arm timers for every event whose reminder is due within the horizon.

        Events that fail validation are logged and skipped; they never stop
        the rest of the batch.

        :param events: All events visible to the current user.
        :param now: Reference instant; defaults to the scheduler's clock.
        :return: IDs of the events armed by this call.
        :raises CalendarError: If an event needs a timer and no event loop is running.
        """
        now = now if now is not None else self.clock.now()
        armed: list[str] = []
        for event in events:
            try:
                if self._arm_if_admissible(event, now):
                    armed.append(event.id)
            except ValidationError as e:
                logger.warning("skipping reminder for event %s (%r): %s", event.id, event.title, e)
        if armed:
            logger.info("armed %d reminder(s)", len(armed))
        return armed

    def reschedule(self, event: Event, now: t.Optional[datetime] = None) -> bool:
        """Re-evaluate one event after an edit.

        Any timer already armed for the event is cancelled first.

        :return: True if a new timer was armed.
        """
        self.cancel(event.id)
        return bool(self.schedule_reminders([event], now))

    def cancel(self, event_id: t.Optional[str]) -> bool:
        """Cancel the timer armed for ``event_id``, if any."""
        task = self._timers.pop(event_id, None)
        self._fire_times.pop(event_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for event_id in list(self._timers):
            self.cancel(event_id)

    def armed(self) -> dict[str, datetime]:
        """Map of event id to fire instant for every timer not yet fired or cancelled."""
        return dict(self._fire_times)

    async def wait_idle(self) -> None:
        """Wait until every currently armed timer has fired or been cancelled."""
        pending = list(self._timers.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _arm_if_admissible(self, event: Event, now: datetime) -> bool:
        fire_at = compute_fire_time(event)
        if fire_at is None or not is_admissible(fire_at, now, self.horizon):
            return False
        if event.id is None:
            raise ValidationError("event has no id")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise CalendarError("Reminders can only be armed from a running event loop") from None
        self.cancel(event.id)
        delay = (fire_at - now).total_seconds()
        title, body = reminder_text(event)
        task = loop.create_task(
            self._fire_after(event.id, delay, title, body), name=f"reminder-{event.id}"
        )
        self._timers[event.id] = task
        self._fire_times[event.id] = fire_at
        logger.debug("armed reminder for %s at %s", event.id, fire_at.isoformat())
        return True

    async def _fire_after(self, event_id: str, delay: float, title: str, body: str) -> None:
        await asyncio.sleep(delay)
        # The timer is done once it fires; drop it before dispatching
        if self._timers.get(event_id) is asyncio.current_task():
            del self._timers[event_id]
            self._fire_times.pop(event_id, None)
        try:
            await self.dispatcher.dispatch(title, body)
        except Exception:  # noqa: BLE001
            # Presentation errors are logged and the timer is dropped
            logger.exception("reminder dispatch failed for event %s", event_id)
