"""
FastAPI service for calendar event storage.

This service is the document store behind the calendar: it keeps event
records keyed by id and answers owner-scoped queries. It knows nothing
about reminders or display order beyond storing the fields it is given.
"""
from __future__ import annotations

import dataclasses
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Response

from calendar_server.errors import PersistenceError
from calendar_server.models import Event
from calendar_server.store import InMemoryEventStore
from services.shared.models import (
    CalendarEvent as PydanticCalendarEvent,
    CreateEventRequest,
    CreateEventResponse,
    UpdateEventRequest,
)

logger = logging.getLogger(__name__)

CALENDAR_SERVICE_PORT = int(os.getenv("CALENDAR_SERVICE_PORT", "8004"))

# In-memory storage for calendar events
# In a distributed system, this would be replaced with a persistent database
store = InMemoryEventStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup and cleanup on shutdown."""
    logger.info("calendar service starting with %d stored event(s)", len(store))
    yield


app = FastAPI(
    title="Calendar Service",
    description="REST API for owner-scoped calendar event storage",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "calendar-service"}


@app.post("/events", response_model=CreateEventResponse, status_code=201)
async def create_event(request: CreateEventRequest) -> CreateEventResponse:
    """
    Create a calendar event.

    The store assigns the event id; any id in the body is ignored.
    """
    event_id = await store.create(Event(**request.model_dump()))
    return CreateEventResponse(id=event_id)


@app.get("/events", response_model=list[PydanticCalendarEvent])
async def list_events(owner_id: str = Query(..., min_length=1)) -> list[PydanticCalendarEvent]:
    """
    List all events belonging to one owner.
    """
    return [_to_pydantic(event) for event in await store.query(owner_id)]


@app.get("/events/{event_id}", response_model=PydanticCalendarEvent)
async def get_event(event_id: str) -> PydanticCalendarEvent:
    event = await store.get(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail=f"Event not found: {event_id}")
    return _to_pydantic(event)


@app.patch("/events/{event_id}", status_code=204)
async def update_event(event_id: str, request: UpdateEventRequest) -> Response:
    """
    Update the fields present in the body of an existing event.
    """
    fields = request.model_dump(exclude_unset=True)
    try:
        await store.update(event_id, fields)
    except PersistenceError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@app.delete("/events/{event_id}", status_code=204)
async def delete_event(event_id: str) -> Response:
    """
    Delete an event. Deleting an unknown id succeeds.
    """
    await store.delete(event_id)
    return Response(status_code=204)


def _to_pydantic(event: Event) -> PydanticCalendarEvent:
    """Convert a dataclass Event to the Pydantic wire model."""
    return PydanticCalendarEvent(**dataclasses.asdict(event))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=CALENDAR_SERVICE_PORT)
