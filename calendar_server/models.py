"""
Data models for the calendar server.

This module contains the dataclasses used to represent calendar events
and the notification permission states used by the reminder subsystem.
"""
from __future__ import annotations

import re
import typing as t
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum

from calendar_server.errors import ValidationError


DEFAULT_COLOR = "#3b82f6"

# Display palette offered by the event form
PALETTE: dict[str, str] = {
    "#3b82f6": "Blue",
    "#ef4444": "Red",
    "#10b981": "Green",
    "#f59e0b": "Amber",
    "#8b5cf6": "Purple",
    "#ec4899": "Pink",
}

DEFAULT_REMINDER_MINUTES = 15

# Lead times offered by the event form, in minutes
REMINDER_PRESETS: tuple[int, ...] = (5, 15, 30, 60, 1440)

# Longest accepted lead time: 30 days
MAX_REMINDER_MINUTES = 30 * 1440

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PermissionState(str, Enum):
    """State of the notification permission capability."""
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


@dataclass
class Event:
    """Represents a calendar event owned by a single user."""
    owner_id: str
    title: str
    date: date
    start_time: str = "09:00"
    end_time: str = "10:00"
    description: str = ""
    color: str = DEFAULT_COLOR
    reminder_enabled: bool = False
    reminder_minutes: int = DEFAULT_REMINDER_MINUTES
    is_shared: bool = False
    shared_with: list[str] = field(default_factory=list)
    order: t.Optional[int] = None
    id: t.Optional[str] = None
    created_at: t.Optional[datetime] = None
    updated_at: t.Optional[datetime] = None


@dataclass
class EventDraft:
    """The editable fields of an event, as submitted by the event form."""
    title: str
    date: date
    start_time: str = "09:00"
    end_time: str = "10:00"
    description: str = ""
    color: str = DEFAULT_COLOR
    reminder_enabled: bool = False
    reminder_minutes: int = DEFAULT_REMINDER_MINUTES
    is_shared: bool = False
    shared_with: list[str] = field(default_factory=list)

    @classmethod
    def from_event(cls, event: Event) -> EventDraft:
        """Pre-fill a draft with an existing event's editable fields."""
        return cls(
            title=event.title,
            date=event.date,
            start_time=event.start_time,
            end_time=event.end_time,
            description=event.description,
            color=event.color or DEFAULT_COLOR,
            reminder_enabled=event.reminder_enabled,
            reminder_minutes=event.reminder_minutes or DEFAULT_REMINDER_MINUTES,
            is_shared=event.is_shared,
            shared_with=list(event.shared_with),
        )

    def fields(self) -> dict[str, t.Any]:
        """Return the draft as a field mapping suitable for a store update."""
        return {
            "title": self.title.strip(),
            "description": self.description,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "color": self.color,
            "reminder_enabled": self.reminder_enabled,
            "reminder_minutes": self.reminder_minutes,
            "is_shared": self.is_shared,
            "shared_with": list(self.shared_with),
        }


def parse_time(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` wall-clock string.

    :param value: Time string such as ``"09:00"`` or ``"17:45"``.
    :return: A :class:`datetime.time` with seconds and microseconds zeroed.
    :raises ValidationError: If the string is not a valid ``HH:MM`` time.
    """
    match = _TIME_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(f"Invalid time format: {value!r} (expected HH:MM)")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Time out of range: {value!r}")
    return time(hour, minute)


def start_instant(event: Event) -> datetime:
    """Combine an event's calendar day and start time into a naive datetime."""
    return datetime.combine(event.date, parse_time(event.start_time))


def validate_draft(draft: EventDraft) -> None:
    """Validate an event draft before it is submitted to the store.

    An end time earlier than the start time is accepted.

    :raises ValidationError: On the first invalid field.
    """
    if not draft.title or not draft.title.strip():
        raise ValidationError("Event title must not be empty")
    parse_time(draft.start_time)
    parse_time(draft.end_time)
    if draft.color not in PALETTE:
        raise ValidationError(f"Unknown color: {draft.color!r}")
    if draft.reminder_enabled:
        if not is_positive_minutes(draft.reminder_minutes):
            raise ValidationError(
                f"Reminder lead time must be a positive number of minutes, got {draft.reminder_minutes!r}"
            )
        if draft.reminder_minutes > MAX_REMINDER_MINUTES:
            raise ValidationError(
                f"Reminder lead time must be at most {MAX_REMINDER_MINUTES} minutes, got {draft.reminder_minutes}"
            )
    for email in draft.shared_with:
        validate_email(email)


def validate_email(email: str) -> str:
    """Check that a collaborator email looks like an address and return it stripped."""
    candidate = email.strip() if isinstance(email, str) else ""
    if not _EMAIL_RE.match(candidate):
        raise ValidationError(f"Invalid email address: {email!r}")
    return candidate


def is_positive_minutes(value: t.Any) -> bool:
    """True when ``value`` is a positive integer (booleans excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
