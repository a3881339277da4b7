# -*- coding: utf-8 -*-
import asyncio
import os
import typing as t
from datetime import date

import click
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from calendar_cli.utils import configure_logging, console, err_console, parse_day
from calendar_server.controller import CalendarController
from calendar_server.errors import CalendarError
from calendar_server.models import DEFAULT_COLOR, MAX_REMINDER_MINUTES, PALETTE, REMINDER_PRESETS, Event, EventDraft
from calendar_server.server import build_controller


CALENDAR_SERVICE_URL = os.getenv("CALENDAR_SERVICE_URL", "http://localhost:8004")

COLOR_NAMES = {name.lower(): color for color, name in PALETTE.items()}


def truncate_title(title: str, max_length: int = 45) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."


def create_events_table(events: list[Event], title: str, armed: t.Optional[dict] = None) -> Table:
    """Create a table of events in display order."""
    armed = armed or {}
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=3)
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Date", style="yellow")
    table.add_column("Time", style="yellow")
    table.add_column("Reminder")
    table.add_column("Shared with", style="green")

    for idx, event in enumerate(events, 1):
        if event.id in armed:
            reminder = f"⏰ {event.reminder_minutes}min (at {armed[event.id]:%H:%M})"
        elif event.reminder_enabled:
            reminder = f"{event.reminder_minutes}min before"
        else:
            reminder = "—"
        table.add_row(
            str(idx),
            event.id or "",
            Text(truncate_title(event.title), style=event.color),
            event.date.isoformat(),
            f"{event.start_time} → {event.end_time}",
            reminder,
            ", ".join(event.shared_with) or "—",
        )

    return table


async def _with_controller(
        service_url: str,
        owner_id: str,
        action: t.Callable[[CalendarController], t.Awaitable[t.Any]],
        keep_reminders: bool = False,
) -> t.Any:
    """Load the owner's calendar, run one action against it and release resources."""
    controller = build_controller(owner_id=owner_id, service_url=service_url, console=console)
    try:
        await controller.load()
        result = await action(controller)
        if keep_reminders:
            await controller.scheduler.wait_idle()
        return result
    finally:
        controller.scheduler.cancel_all()
        aclose = getattr(controller.store, "aclose", None)
        if aclose is not None:
            await aclose()


def _run(ctx: click.Context, action: t.Callable[[CalendarController], t.Awaitable[t.Any]], **kwargs: t.Any) -> t.Any:
    try:
        return asyncio.run(_with_controller(ctx.obj["service_url"], ctx.obj["owner_id"], action, **kwargs))
    except (CalendarError, KeyError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)


def _color(name: t.Optional[str]) -> t.Optional[str]:
    return COLOR_NAMES[name.lower()] if name else None


color_option = click.option(
    "--color",
    type=click.Choice([name for name in PALETTE.values()], case_sensitive=False),
    help="Display color.",
)
remind_option = click.option(
    "--remind",
    "remind_minutes",
    type=click.IntRange(min=1, max=MAX_REMINDER_MINUTES),
    help=f"Remind this many minutes before the start (e.g. {', '.join(map(str, REMINDER_PRESETS))}).",
)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--service-url", default=CALENDAR_SERVICE_URL, show_default=True, help="Calendar service URL.")
@click.option("--owner", "owner_id", default=lambda: os.getenv("CALENDAR_OWNER_ID", "local-user"), help="Owner id.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(ctx: click.Context, service_url: str, owner_id: str, verbose: bool) -> None:
    """Smart calendar: events, reminders and day ordering."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["service_url"] = service_url
    ctx.obj["owner_id"] = owner_id


@main.command()
@click.argument("title")
@click.option("--date", "day", default="today", show_default=True, help="Day (YYYY-MM-DD, today, tomorrow).")
@click.option("--start", "start_time", default="09:00", show_default=True, help="Start time HH:MM.")
@click.option("--end", "end_time", default="10:00", show_default=True, help="End time HH:MM.")
@click.option("--description", default="", help="Free text.")
@color_option
@remind_option
@click.pass_context
def add(ctx: click.Context, title: str, day: str, start_time: str, end_time: str,
        description: str, color: t.Optional[str], remind_minutes: t.Optional[int]) -> None:
    """Create an event."""
    draft = EventDraft(
        title=title,
        date=parse_day(day),
        start_time=start_time,
        end_time=end_time,
        description=description,
        color=_color(color) or DEFAULT_COLOR,
        reminder_enabled=remind_minutes is not None,
        reminder_minutes=remind_minutes or 15,
    )

    event = _run(ctx, lambda controller: controller.save_event(draft))
    console.print(f"[bold green]✅ Event created:[/bold green] {event.title} [dim]({event.id})[/dim]")


@main.command(name="list")
@click.option("--date", "day", default="today", show_default=True, help="Day to show.")
@click.option("--all", "show_all", is_flag=True, help="Show every event instead of one day.")
@click.pass_context
def list_events(ctx: click.Context, day: str, show_all: bool) -> None:
    """Show events of a day in display order."""
    selected: t.Optional[date] = None if show_all else parse_day(day)

    async def action(controller: CalendarController) -> tuple[list[Event], dict]:
        if selected is None:
            events = sorted(controller.events, key=lambda e: (e.date, e.start_time))
        else:
            events = controller.events_for_day(selected)
        return events, controller.scheduler.armed()

    events, armed = _run(ctx, action)
    if not events:
        console.print("📅 No events found.")
        return
    title = "📅 All events" if selected is None else f"📅 {selected:%A %d %B %Y}"
    console.print(create_events_table(events, title, armed))


@main.command()
@click.argument("event_id")
@click.option("--title", default=None, help="New title.")
@click.option("--date", "day", default=None, help="New day.")
@click.option("--start", "start_time", default=None, help="New start time.")
@click.option("--end", "end_time", default=None, help="New end time.")
@click.option("--description", default=None, help="New description.")
@color_option
@remind_option
@click.option("--no-remind", is_flag=True, help="Turn the reminder off.")
@click.pass_context
def edit(ctx: click.Context, event_id: str, title: t.Optional[str], day: t.Optional[str],
         start_time: t.Optional[str], end_time: t.Optional[str], description: t.Optional[str],
         color: t.Optional[str], remind_minutes: t.Optional[int], no_remind: bool) -> None:
    """Edit an event; its reminder is re-armed or cancelled to match."""
    new_day = parse_day(day) if day else None

    async def action(controller: CalendarController) -> Event:
        draft = EventDraft.from_event(controller.get(event_id))
        if title is not None:
            draft.title = title
        if new_day is not None:
            draft.date = new_day
        if start_time is not None:
            draft.start_time = start_time
        if end_time is not None:
            draft.end_time = end_time
        if description is not None:
            draft.description = description
        if color:
            draft.color = _color(color)
        if remind_minutes is not None:
            draft.reminder_enabled = True
            draft.reminder_minutes = remind_minutes
        if no_remind:
            draft.reminder_enabled = False
        return await controller.save_event(draft, event_id=event_id)

    event = _run(ctx, action)
    console.print(f"[bold green]✅ Event updated:[/bold green] {event.title}")


@main.command()
@click.argument("event_id")
@click.pass_context
def delete(ctx: click.Context, event_id: str) -> None:
    """Delete an event."""
    _run(ctx, lambda controller: controller.delete_event(event_id))
    console.print(f"[bold green]🗑  Event deleted:[/bold green] {event_id}")


@main.command()
@click.argument("event_id")
@click.argument("email")
@click.pass_context
def share(ctx: click.Context, event_id: str, email: str) -> None:
    """Share an event with a collaborator email."""
    event = _run(ctx, lambda controller: controller.share_event(event_id, email))
    console.print(f"[bold green]🤝 Calendar event shared with {email}[/bold green] "
                  f"({len(event.shared_with)} collaborator(s))")


@main.command()
@click.argument("event_ids", nargs=-1, required=True)
@click.pass_context
def reorder(ctx: click.Context, event_ids: tuple[str, ...]) -> None:
    """Set the display order of one day's events.

    EVENT_IDS: Every event of the day, in the new order.
    """
    result = _run(ctx, lambda controller: controller.reorder_by_ids(list(event_ids)))
    if result.ok:
        console.print(f"[bold green]✅ Order saved for {len(result.written)} event(s)[/bold green]")
        return
    console.print(f"[yellow]⚠ Order saved for {len(result.written)} event(s), "
                  f"{len(result.failed)} write(s) failed:[/yellow]")
    for event_id, reason in result.failed.items():
        console.print(f"   ✗ {event_id}: {reason}")
    raise SystemExit(1)


@main.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Arm reminders for the next 24 hours and wait for them to fire."""

    async def action(controller: CalendarController) -> None:
        armed = controller.scheduler.armed()
        stats = Text()
        stats.append("Events loaded: ", style="white")
        stats.append(f"{len(controller.events)}", style="bold green")
        stats.append("\n")
        stats.append("Reminders armed: ", style="white")
        stats.append(f"{len(armed)}", style="bold green")
        console.print(Panel(stats, title="⏰ Reminders", border_style="blue"))

        upcoming = [controller.get(event_id) for event_id in sorted(armed, key=armed.get)]
        if upcoming:
            console.print(create_events_table(upcoming, "Upcoming reminders", armed))
            console.print("[dim]Waiting for reminders, press Ctrl-C to stop.[/dim]")

    try:
        _run(ctx, action, keep_reminders=True)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")


if __name__ == "__main__":
    main()
