"""Tests for notification dispatch and the permission handshake."""
import asyncio
import io

import pytest
from rich.console import Console

from calendar_server.dispatcher import ConsoleNotifier, NotificationDispatcher
from calendar_server.errors import PermissionUnavailable
from calendar_server.models import PermissionState


class FakeCapability:
    """Notification capability with a scripted permission answer."""

    def __init__(self, state: PermissionState, answer: PermissionState = PermissionState.GRANTED) -> None:
        self.state = state
        self.answer = answer
        self.requests = 0
        self.presented: list[tuple[str, str]] = []

    def permission(self) -> PermissionState:
        return self.state

    async def request_permission(self) -> PermissionState:
        self.requests += 1
        # Keep the request pending long enough for other dispatches to pile up
        await asyncio.sleep(0.01)
        self.state = self.answer
        return self.state

    def present(self, title: str, body: str) -> None:
        self.presented.append((title, body))


@pytest.mark.asyncio
async def test_granted_presents_immediately() -> None:
    """With permission granted the alert is shown without prompting."""
    capability = FakeCapability(PermissionState.GRANTED)
    dispatcher = NotificationDispatcher(capability)

    assert await dispatcher.dispatch("Reminder: Standup", "Starting in 15 minutes") is True

    assert capability.presented == [("Reminder: Standup", "Starting in 15 minutes")]
    assert capability.requests == 0


@pytest.mark.asyncio
async def test_denied_is_silent_and_never_prompts() -> None:
    """A denied permission makes dispatch a no-op, every time."""
    capability = FakeCapability(PermissionState.DENIED)
    dispatcher = NotificationDispatcher(capability)

    assert await dispatcher.dispatch("a", "b") is False
    assert await dispatcher.dispatch("c", "d") is False

    assert capability.presented == []
    assert capability.requests == 0


@pytest.mark.asyncio
async def test_undetermined_requests_once_then_presents() -> None:
    """The first dispatch asks for permission and shows the alert if granted."""
    capability = FakeCapability(PermissionState.UNDETERMINED)
    dispatcher = NotificationDispatcher(capability)

    assert await dispatcher.dispatch("a", "b") is True
    assert await dispatcher.dispatch("c", "d") is True

    assert capability.requests == 1
    assert capability.presented == [("a", "b"), ("c", "d")]


@pytest.mark.asyncio
async def test_undetermined_refused_is_not_asked_again() -> None:
    """After the user refuses, later dispatches stay silent without prompting."""
    capability = FakeCapability(PermissionState.UNDETERMINED, answer=PermissionState.DENIED)
    dispatcher = NotificationDispatcher(capability)

    assert await dispatcher.dispatch("a", "b") is False
    assert await dispatcher.dispatch("c", "d") is False

    assert capability.requests == 1
    assert capability.presented == []


@pytest.mark.asyncio
async def test_concurrent_dispatches_share_one_request() -> None:
    """Timers firing together while undetermined trigger a single prompt."""
    capability = FakeCapability(PermissionState.UNDETERMINED)
    dispatcher = NotificationDispatcher(capability)

    results = await asyncio.gather(*(dispatcher.dispatch(f"t{i}", "b") for i in range(3)))

    assert results == [True, True, True]
    assert capability.requests == 1
    assert sorted(title for title, _ in capability.presented) == ["t0", "t1", "t2"]


@pytest.mark.asyncio
async def test_missing_capability_is_noop() -> None:
    """A host without notifications makes dispatch a no-op."""
    assert await NotificationDispatcher(None).dispatch("a", "b") is False


@pytest.mark.asyncio
async def test_present_failure_degrades_to_noop() -> None:
    """A capability that reports itself unavailable does not raise."""
    class RevokedCapability(FakeCapability):
        def present(self, title: str, body: str) -> None:
            raise PermissionUnavailable("revoked")

    dispatcher = NotificationDispatcher(RevokedCapability(PermissionState.GRANTED))

    assert await dispatcher.dispatch("a", "b") is False


@pytest.mark.asyncio
async def test_console_notifier_renders_alert() -> None:
    """The console capability prints the alert title and body."""
    buffer = io.StringIO()
    notifier = ConsoleNotifier(Console(file=buffer, width=80), state=PermissionState.GRANTED)

    assert await NotificationDispatcher(notifier).dispatch("Reminder: Standup", "Starting in 15 minutes")

    output = buffer.getvalue()
    assert "Reminder: Standup" in output
    assert "Starting in 15 minutes" in output


@pytest.mark.asyncio
async def test_console_notifier_without_terminal_denies() -> None:
    """With no terminal to prompt on, an undetermined permission becomes denied."""
    buffer = io.StringIO()
    notifier = ConsoleNotifier(Console(file=buffer), state=PermissionState.UNDETERMINED)

    assert await NotificationDispatcher(notifier).dispatch("a", "b") is False
    assert notifier.permission() is PermissionState.DENIED
    assert buffer.getvalue() == ""


@pytest.mark.asyncio
async def test_failing_permission_request_degrades_to_denied() -> None:
    """A request that blows up is a refusal: no exception, and no second prompt."""
    class ClosedStdinCapability(FakeCapability):
        async def request_permission(self) -> PermissionState:
            self.requests += 1
            raise EOFError("stdin closed")

    capability = ClosedStdinCapability(PermissionState.UNDETERMINED)
    dispatcher = NotificationDispatcher(capability)

    assert await dispatcher.dispatch("a", "b") is False
    assert await dispatcher.dispatch("c", "d") is False

    assert capability.requests == 1
    assert capability.presented == []


@pytest.mark.asyncio
async def test_unexpected_present_error_degrades_to_noop() -> None:
    """Any error while presenting is logged and reported as not shown."""
    class BrokenCapability(FakeCapability):
        def present(self, title: str, body: str) -> None:
            raise RuntimeError("display server gone")

    dispatcher = NotificationDispatcher(BrokenCapability(PermissionState.GRANTED))

    assert await dispatcher.dispatch("a", "b") is False


@pytest.mark.asyncio
async def test_console_notifier_does_not_prompt_on_piped_stdin(monkeypatch) -> None:
    """A terminal console is not enough: stdin must be a terminal too."""
    monkeypatch.setattr("sys.stdin", io.StringIO("y\n"))
    buffer = io.StringIO()
    notifier = ConsoleNotifier(Console(file=buffer, force_terminal=True), state=PermissionState.UNDETERMINED)

    assert await NotificationDispatcher(notifier).dispatch("a", "b") is False
    assert notifier.permission() is PermissionState.DENIED
    assert "Allow reminder notifications" not in buffer.getvalue()
