"""Notification dispatch for fired reminders.

Dispatch is best effort: there is no acknowledgement, retry or delivery
confirmation. When permission is denied or the host has no notification
capability, dispatching is a silent no-op.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import typing as t

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from calendar_server.errors import PermissionUnavailable
from calendar_server.models import PermissionState

logger = logging.getLogger(__name__)


class NotificationCapability(t.Protocol):
    """Host notification support."""

    def permission(self) -> PermissionState: ...

    async def request_permission(self) -> PermissionState: ...

    def present(self, title: str, body: str) -> None: ...


class NotificationDispatcher:
    """Presents reminder alerts through a notification capability.

    The permission is requested lazily, at most once: concurrent dispatches
    while the state is undetermined all wait on the same request.
    """

    def __init__(self, capability: t.Optional[NotificationCapability] = None) -> None:
        self.capability = capability
        self._permission_request: t.Optional[asyncio.Task[PermissionState]] = None

    async def dispatch(self, title: str, body: str) -> bool:
        """Present an alert if permission allows it.

        :param title: Alert title.
        :param body: Alert body text.
        :return: True if the alert was presented, False if dispatch degraded to a no-op.
        """
        if self.capability is None:
            logger.debug("no notification capability, dropping %r", title)
            return False

        try:
            state = await self._resolve_permission()
            if state is not PermissionState.GRANTED:
                logger.debug("notification permission %s, dropping %r", state.value, title)
                return False
            self.capability.present(title, body)
            return True
        except PermissionUnavailable as e:
            logger.debug("notifications unavailable, dropping %r: %s", title, e)
            return False
        except Exception as e:
            logger.warning("failed to present %r, dropping it: %s", title, e)
            return False

    async def _resolve_permission(self) -> PermissionState:
        state = self.capability.permission()
        if state is not PermissionState.UNDETERMINED:
            return state

        # One request shared by every dispatch that arrives while it is pending
        if self._permission_request is None:
            self._permission_request = asyncio.ensure_future(self._request_permission())
        return await asyncio.shield(self._permission_request)

    async def _request_permission(self) -> PermissionState:
        try:
            return await self.capability.request_permission()
        except Exception as e:
            # The failed request counts as a refusal and is not retried
            logger.warning("notification permission request failed: %s", e)
            return PermissionState.DENIED


class ConsoleNotifier:
    """Notification capability that renders alerts on a rich console.

    When the permission starts out undetermined, the user is asked once with
    a yes/no prompt; the answer is kept for the rest of the process. Without
    a terminal on both the console and stdin there is no prompt and the
    permission becomes denied.
    """

    def __init__(
        self,
        console: t.Optional[Console] = None,
        state: PermissionState = PermissionState.UNDETERMINED,
    ) -> None:
        self.console = console or Console()
        self._state = state

    def permission(self) -> PermissionState:
        return self._state

    async def request_permission(self) -> PermissionState:
        if not (self.console.is_terminal and _stdin_is_terminal()):
            # Nobody to ask, or stdin carries something other than a person
            self._state = PermissionState.DENIED
            return self._state
        allowed = await asyncio.to_thread(
            Confirm.ask, "Allow reminder notifications?", console=self.console, default=True
        )
        self._state = PermissionState.GRANTED if allowed else PermissionState.DENIED
        return self._state

    def present(self, title: str, body: str) -> None:
        if self._state is not PermissionState.GRANTED:
            raise PermissionUnavailable(f"notification permission is {self._state.value}")
        self.console.bell()
        self.console.print(Panel(body, title=f"🔔 {title}", border_style="yellow", expand=False))


def _stdin_is_terminal() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()
