"""
Shared Pydantic models for REST API serialization.

This module contains Pydantic equivalents of the calendar dataclasses,
ensuring consistent JSON serialization between the calendar service and
its HTTP client.
"""
from __future__ import annotations

import typing as t
import datetime as dt

from pydantic import BaseModel, Field


DEFAULT_COLOR = "#3b82f6"


class CalendarEvent(BaseModel):
    """A persisted calendar event as returned by the service."""
    id: str
    owner_id: str
    title: str
    description: str = ""
    date: dt.date
    start_time: str = "09:00"    # "HH:MM" 24h
    end_time: str = "10:00"      # "HH:MM" 24h
    color: str = DEFAULT_COLOR
    reminder_enabled: bool = False
    reminder_minutes: int = 15
    is_shared: bool = False
    shared_with: list[str] = Field(default_factory=list)
    order: t.Optional[int] = None
    created_at: t.Optional[dt.datetime] = None
    updated_at: t.Optional[dt.datetime] = None


# Request/Response Models for API endpoints
class CreateEventRequest(BaseModel):
    """Request model for creating a calendar event."""
    owner_id: str
    title: str
    description: str = ""
    date: dt.date
    start_time: str = "09:00"
    end_time: str = "10:00"
    color: str = DEFAULT_COLOR
    reminder_enabled: bool = False
    reminder_minutes: int = 15
    is_shared: bool = False
    shared_with: list[str] = Field(default_factory=list)
    order: t.Optional[int] = None
    created_at: t.Optional[dt.datetime] = None
    updated_at: t.Optional[dt.datetime] = None


class CreateEventResponse(BaseModel):
    """Response model carrying the id assigned to a new event."""
    id: str


class UpdateEventRequest(BaseModel):
    """Partial update; only the fields that are set are written."""
    title: t.Optional[str] = None
    description: t.Optional[str] = None
    date: t.Optional[dt.date] = None
    start_time: t.Optional[str] = None
    end_time: t.Optional[str] = None
    color: t.Optional[str] = None
    reminder_enabled: t.Optional[bool] = None
    reminder_minutes: t.Optional[int] = None
    is_shared: t.Optional[bool] = None
    shared_with: t.Optional[list[str]] = None
    order: t.Optional[int] = None
    created_at: t.Optional[dt.datetime] = None
    updated_at: t.Optional[dt.datetime] = None
