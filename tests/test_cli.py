"""Tests for the calendar command line."""
import io
from datetime import date, datetime

import pytest
from click.testing import CliRunner
from rich.console import Console

from calendar_cli.run import create_events_table, main, truncate_title
from calendar_cli.utils import parse_day
from calendar_server.models import Event


def invoke(*args: str):
    # An empty service URL keeps events in process memory
    return CliRunner().invoke(main, ["--service-url", "", *args])


def test_add_creates_event() -> None:
    result = invoke("add", "Standup", "--date", "2020-01-06", "--start", "09:00", "--remind", "15")

    assert result.exit_code == 0, result.output
    assert "Event created" in result.output
    assert "Standup" in result.output


def test_add_with_bad_time_fails() -> None:
    result = invoke("add", "Standup", "--date", "2020-01-06", "--start", "9am")

    assert result.exit_code == 1


def test_add_with_bad_day_fails() -> None:
    result = invoke("add", "Standup", "--date", "06/01/2020")

    assert result.exit_code == 1


def test_list_empty_day() -> None:
    result = invoke("list", "--date", "2020-01-06")

    assert result.exit_code == 0, result.output
    assert "No events found" in result.output


def test_delete_missing_event_is_quiet() -> None:
    result = invoke("delete", "missing")

    assert result.exit_code == 0, result.output


def test_share_missing_event_fails() -> None:
    result = invoke("share", "missing", "ana@example.com")

    assert result.exit_code == 1


def test_parse_day_keywords() -> None:
    assert parse_day("today") == date.today()
    assert parse_day("2026-10-19") == date(2026, 10, 19)
    with pytest.raises(SystemExit):
        parse_day("someday")


def test_truncate_title() -> None:
    assert truncate_title("short") == "short"
    assert truncate_title("x" * 50) == "x" * 42 + "..."


def test_events_table_marks_armed_reminders() -> None:
    event = Event(owner_id="u", title="Standup", date=date(2026, 10, 19), id="evt1",
                  reminder_enabled=True, reminder_minutes=15)

    table = create_events_table([event], "Today", {"evt1": datetime(2026, 10, 19, 8, 45)})

    output = io.StringIO()
    Console(file=output, width=200).print(table)
    assert table.row_count == 1
    assert "⏰ 15min (at 08:45)" in output.getvalue()


def test_add_with_oversized_lead_time_fails() -> None:
    result = invoke("add", "Standup", "--date", "2020-01-06", "--remind", str(10**12))

    assert result.exit_code == 2
