"""Exceptions raised by the calendar server."""


class CalendarError(Exception):
    """Base class for calendar errors."""


class ValidationError(CalendarError):
    """A field of an event is malformed or missing."""


class PersistenceError(CalendarError):
    """A read or write against the event store failed."""


class PermissionUnavailable(CalendarError):
    """Notification permission is denied or the capability is absent."""
