"""
HTTP event store backed by the calendar service.

This module implements the event store operations as HTTP calls to the
distributed calendar service. It handles serialization/deserialization
between the dataclass Event and the Pydantic wire models, and turns every
transport or status failure into a PersistenceError.
"""
from __future__ import annotations

import dataclasses
import os
import typing as t

import httpx
from pydantic import ValidationError as PydanticValidationError

from calendar_server.errors import PersistenceError
from calendar_server.models import Event
from calendar_server.store import check_update_fields
from services.shared.models import (
    CalendarEvent as PydanticCalendarEvent,
    CreateEventRequest,
    CreateEventResponse,
    UpdateEventRequest,
)


# Service URL - configurable via environment variable
CALENDAR_SERVICE_URL = os.getenv("CALENDAR_SERVICE_URL", "http://localhost:8004")

# Timeout settings for fast operations (in seconds)
STANDARD_TIMEOUT = 30.0  # 30 seconds for standard CRUD operations


class HttpEventStore:
    """Event store that talks to the calendar service over HTTP.

    :param base_url: Service root URL; defaults to ``CALENDAR_SERVICE_URL``.
    :param client: Optional pre-configured ``httpx.AsyncClient`` (tests pass one
        with a mock transport). When omitted, a client is created and owned here.
    """

    def __init__(
        self,
        base_url: t.Optional[str] = None,
        client: t.Optional[httpx.AsyncClient] = None,
        timeout: float = STANDARD_TIMEOUT,
    ) -> None:
        self.base_url = (base_url or CALENDAR_SERVICE_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.timeout = timeout

    async def __aenter__(self) -> "HttpEventStore":
        return self

    async def __aexit__(self, *exc_info: t.Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def create(self, event: Event) -> str:
        """Create an event and return the id assigned by the service."""
        payload = dataclasses.asdict(event)
        payload.pop("id")
        request = CreateEventRequest(**payload)
        response = await self._request("POST", "/events", json=request.model_dump(mode="json"))
        return self._parse(CreateEventResponse, response.json()).id

    async def query(self, owner_id: str) -> list[Event]:
        """List every event owned by ``owner_id``."""
        response = await self._request("GET", "/events", params={"owner_id": owner_id})
        return [
            _pydantic_to_dataclass_event(self._parse(PydanticCalendarEvent, data))
            for data in response.json()
        ]

    async def update(self, event_id: str, fields: dict[str, t.Any]) -> None:
        """Write a partial update to an existing event."""
        check_update_fields(fields)
        request = UpdateEventRequest(**fields)
        await self._request(
            "PATCH",
            f"/events/{event_id}",
            json=request.model_dump(mode="json", exclude_unset=True),
        )

    async def delete(self, event_id: str) -> None:
        await self._request("DELETE", f"/events/{event_id}")

    async def _request(self, method: str, path: str, **kwargs: t.Any) -> httpx.Response:
        try:
            response = await self._client.request(
                method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
            return response
        except httpx.TimeoutException:
            raise PersistenceError(f"{method} {path} timed out after {self.timeout} seconds")
        except httpx.HTTPStatusError as e:
            raise PersistenceError(
                f"HTTP error from calendar service: {e.response.status_code} {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise PersistenceError(f"Error calling calendar service: {e}") from e

    @staticmethod
    def _parse(model: type, data: t.Any) -> t.Any:
        try:
            return model(**data)
        except (PydanticValidationError, TypeError) as e:
            raise PersistenceError(f"Malformed response from calendar service: {e}") from e


def _pydantic_to_dataclass_event(pydantic_event: PydanticCalendarEvent) -> Event:
    """Convert Pydantic CalendarEvent to dataclass Event."""
    return Event(**pydantic_event.model_dump())
