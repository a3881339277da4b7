# -*- coding: utf-8 -*-
import os
import typing as t
from datetime import date

from fastmcp import FastMCP
from rich.console import Console

from calendar_server.controller import CalendarController
from calendar_server.dispatcher import ConsoleNotifier, NotificationDispatcher
from calendar_server.http_store import HttpEventStore
from calendar_server.models import DEFAULT_COLOR, PALETTE, Event, EventDraft, PermissionState
from calendar_server.reorder import ReorderResult
from calendar_server.scheduler import ReminderScheduler
from calendar_server.store import InMemoryEventStore

mcp = FastMCP("CalendarServer")

CALENDAR_OWNER_ID = os.getenv("CALENDAR_OWNER_ID", "local-user")
CALENDAR_NOTIFICATIONS = os.getenv("CALENDAR_NOTIFICATIONS", PermissionState.UNDETERMINED.value)

_controller: t.Optional[CalendarController] = None


def build_controller(
        owner_id: str = CALENDAR_OWNER_ID,
        service_url: t.Optional[str] = None,
        notifications: str = CALENDAR_NOTIFICATIONS,
        console: t.Optional[Console] = None,
) -> CalendarController:
    """Wire a controller to its store, scheduler and dispatcher.

    :param owner_id: User whose events are managed.
    :param service_url: Calendar service URL; when empty the events live in process memory.
    :param notifications: Initial notification permission state.
    :param console: Console that reminders are rendered on.
    :return: A controller that has not loaded anything yet.
    """
    service_url = service_url if service_url is not None else os.getenv("CALENDAR_SERVICE_URL", "")
    store = HttpEventStore(service_url) if service_url else InMemoryEventStore()
    dispatcher = NotificationDispatcher(ConsoleNotifier(console, state=PermissionState(notifications)))
    return CalendarController(store, owner_id, ReminderScheduler(dispatcher))


async def get_controller() -> CalendarController:
    """Return the process-wide controller, loading it on first use."""
    global _controller
    if _controller is None:
        # stdout carries the MCP protocol
        controller = build_controller(console=Console(stderr=True))
        await controller.load()
        _controller = controller
    return _controller


async def _create_event(
        title: str,
        day: str,
        start_time: str = "09:00",
        end_time: str = "10:00",
        description: str = "",
        color: str = DEFAULT_COLOR,
        reminder_minutes: t.Optional[int] = None,
) -> Event:
    controller = await get_controller()
    draft = EventDraft(
        title=title,
        date=date.fromisoformat(day),
        start_time=start_time,
        end_time=end_time,
        description=description,
        color=color,
        reminder_enabled=reminder_minutes is not None,
        reminder_minutes=reminder_minutes if reminder_minutes is not None else 15,
    )
    return await controller.save_event(draft)


async def _update_event(event_id: str, **changes: t.Any) -> Event:
    controller = await get_controller()
    draft = EventDraft.from_event(controller.get(event_id))
    for name, value in changes.items():
        if value is None:
            continue
        if name == "day":
            draft.date = date.fromisoformat(value)
        else:
            setattr(draft, name, value)
    return await controller.save_event(draft, event_id=event_id)


async def _delete_event(event_id: str) -> str:
    controller = await get_controller()
    await controller.delete_event(event_id)
    return event_id


async def _list_events(day: t.Optional[str] = None) -> list[Event]:
    controller = await get_controller()
    if day is None:
        return list(controller.events)
    return controller.events_for_day(date.fromisoformat(day))


async def _share_event(event_id: str, email: str) -> Event:
    controller = await get_controller()
    return await controller.share_event(event_id, email)


async def _reorder_events(event_ids: list[str]) -> ReorderResult:
    controller = await get_controller()
    return await controller.reorder_by_ids(event_ids)


async def _list_armed_reminders() -> dict[str, str]:
    controller = await get_controller()
    return {event_id: fire_at.isoformat() for event_id, fire_at in controller.scheduler.armed().items()}


def format_events(events: list[Event]) -> str:
    """Format events as a clean table.

    :param events: Events to render, already in display order.
    :return: Formatted table string.
    """
    if not events:
        return "📅 No events found."

    lines = []
    lines.append("📅 CALENDAR EVENTS")
    lines.append("=" * 100)
    lines.append(f"{'#':<4} {'Title':<35} {'Date':<12} {'Time':<13} {'Color':<8} {'Reminder':<12} {'Shared':<10}")
    lines.append("-" * 100)

    for idx, event in enumerate(events, 1):
        title = event.title[:34] if len(event.title) > 34 else event.title
        reminder = f"{event.reminder_minutes}min" if event.reminder_enabled else "—"
        shared = f"{len(event.shared_with)} people" if event.is_shared else "—"
        lines.append(
            f"{idx:<4} {title:<35} {event.date.isoformat():<12} "
            f"{event.start_time + '-' + event.end_time:<13} {PALETTE.get(event.color, event.color):<8} "
            f"{reminder:<12} {shared:<10}"
        )

    lines.append("=" * 100)
    lines.append(f"Total: {len(events)} event(s)")
    return "\n".join(lines)


@mcp.tool()
async def create_event(
        title: str,
        day: str,
        start_time: str = "09:00",
        end_time: str = "10:00",
        description: str = "",
        color: str = DEFAULT_COLOR,
        reminder_minutes: t.Optional[int] = None,
) -> Event:
    """Creates a calendar event.

    :param title: Title of the event.
    :param day: Calendar day in ISO format (YYYY-MM-DD).
    :param start_time: Start time as HH:MM (24h).
    :param end_time: End time as HH:MM (24h).
    :param description: Free text (optional).
    :param color: Display color from the palette (optional).
    :param reminder_minutes: Minutes before start to notify; omit for no reminder.
    :return: The saved Event.
    """
    return await _create_event(title, day, start_time, end_time, description, color, reminder_minutes)


@mcp.tool()
async def update_event(
        event_id: str,
        title: t.Optional[str] = None,
        day: t.Optional[str] = None,
        start_time: t.Optional[str] = None,
        end_time: t.Optional[str] = None,
        description: t.Optional[str] = None,
        color: t.Optional[str] = None,
        reminder_enabled: t.Optional[bool] = None,
        reminder_minutes: t.Optional[int] = None,
) -> Event:
    """Updates the given fields of an event and re-evaluates its reminder."""
    return await _update_event(
        event_id,
        title=title,
        day=day,
        start_time=start_time,
        end_time=end_time,
        description=description,
        color=color,
        reminder_enabled=reminder_enabled,
        reminder_minutes=reminder_minutes,
    )


@mcp.tool()
async def delete_event(event_id: str) -> str:
    """Deletes an event and cancels its reminder."""
    return await _delete_event(event_id)


@mcp.tool()
async def list_events(day: t.Optional[str] = None) -> list[Event]:
    """Lists events, optionally only those of one day (YYYY-MM-DD) in display order."""
    return await _list_events(day)


@mcp.tool()
async def show_events(day: t.Optional[str] = None) -> str:
    """Displays events in a nicely formatted table."""
    return format_events(await _list_events(day))


@mcp.tool()
async def share_event(event_id: str, email: str) -> Event:
    """Shares an event with a collaborator email."""
    return await _share_event(event_id, email)


@mcp.tool()
async def reorder_events(event_ids: list[str]) -> ReorderResult:
    """Persists a new display order for all events of one day."""
    return await _reorder_events(event_ids)


@mcp.tool()
async def list_armed_reminders() -> dict[str, str]:
    """Lists armed reminder timers as event id -> fire time."""
    return await _list_armed_reminders()


if __name__ == "__main__":
    mcp.run()
