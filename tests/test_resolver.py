"""Tests for the reminder time resolver.

Reference time is Monday 19 Oct 2026, 12:00 UTC.
"""

from datetime import datetime, timedelta, timezone

import pytest

from domains.reminders.resolver import ResolutionError, resolve_time
from conftest import REFERENCE_NOW


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize("text,expected", [
    ("in 5 minutes", timedelta(minutes=5)),
    ("10m", timedelta(minutes=10)),
    ("30 secs", timedelta(seconds=30)),
    ("2 hours 30 minutes", timedelta(hours=2, minutes=30)),
    ("1h30m", timedelta(hours=1, minutes=30)),
    ("in 1 hour and 15 mins", timedelta(hours=1, minutes=15)),
    ("in a day", timedelta(days=1)),
    ("an hour from now", timedelta(hours=1)),
    ("2 weeks", timedelta(weeks=2)),
    ("In 3 Days", timedelta(days=3)),
])
def test_relative_offsets(text, expected):
    assert resolve_time(text, REFERENCE_NOW) == REFERENCE_NOW + expected


def test_now():
    assert resolve_time("now", REFERENCE_NOW) == REFERENCE_NOW


@pytest.mark.parametrize("text,expected", [
    ("tomorrow 9am", _utc(2026, 10, 20, 9, 0)),
    ("tomorrow at 9:30pm", _utc(2026, 10, 20, 21, 30)),
    ("tomorrow", _utc(2026, 10, 20, 12, 0)),
    ("5pm", _utc(2026, 10, 19, 17, 0)),
    ("at 17:45", _utc(2026, 10, 19, 17, 45)),
    ("9am", _utc(2026, 10, 20, 9, 0)),  # Passed today, so tomorrow
    ("today 6pm", _utc(2026, 10, 19, 18, 0)),
    ("monday 8:30pm", _utc(2026, 10, 19, 20, 30)),
    ("monday 9am", _utc(2026, 10, 26, 9, 0)),  # Today's already passed
    ("next monday", _utc(2026, 10, 26, 12, 0)),
    ("friday", _utc(2026, 10, 23, 12, 0)),
    ("on wed at 8.15am", _utc(2026, 10, 21, 8, 15)),
    ("tonight", _utc(2026, 10, 19, 20, 0)),
    ("tonight at 9", _utc(2026, 10, 19, 21, 0)),
    ("noon tomorrow", _utc(2026, 10, 20, 12, 0)),
])
def test_day_and_time(text, expected):
    assert resolve_time(text, REFERENCE_NOW) == expected


@pytest.mark.parametrize("text,expected", [
    ("25/12/2026 09:00", _utc(2026, 12, 25, 9, 0)),
    ("2026-12-25 9am", _utc(2026, 12, 25, 9, 0)),
    ("3/4/2027", _utc(2027, 4, 3, 0, 0)),  # Day first
    ("25 Dec 2026 18:30", _utc(2026, 12, 25, 18, 30)),
])
def test_absolute_dates(text, expected):
    assert resolve_time(text, REFERENCE_NOW) == expected


def test_explicit_offset_in_text_is_respected():
    assert resolve_time("2026-12-25T09:00:00+02:00", REFERENCE_NOW) == _utc(2026, 12, 25, 7, 0)


def test_local_timezone_converted_to_utc():
    """Wall-clock times are read in the configured zone (BST here)."""
    resolved = resolve_time("tomorrow 9am", REFERENCE_NOW, tz="Europe/London")

    assert resolved == _utc(2026, 10, 20, 8, 0)
    assert resolved.tzinfo == timezone.utc


def test_result_is_utc():
    resolved = resolve_time("in 5 minutes", REFERENCE_NOW.astimezone(timezone(timedelta(hours=5))))

    assert resolved.utcoffset() == timedelta(0)
    assert resolved == REFERENCE_NOW + timedelta(minutes=5)


@pytest.mark.parametrize("text", [
    "",
    "   ",
    "whenever you like",
    "5",
    "at 5",
])
def test_unrecognized_text_raises(text):
    with pytest.raises(ResolutionError):
        resolve_time(text, REFERENCE_NOW)


def test_unknown_timezone_raises():
    with pytest.raises(ResolutionError):
        resolve_time("tomorrow 9am", REFERENCE_NOW, tz="Mars/Olympus_Mons")


def test_naive_reference_rejected():
    with pytest.raises(ValueError):
        resolve_time("in 5 minutes", datetime(2026, 10, 19, 12, 0))


@pytest.mark.parametrize("text,expected", [
    ("tonight", _utc(2026, 10, 20, 20, 0)),
    ("tonight at 9", _utc(2026, 10, 20, 21, 0)),
    ("tonight 11pm", _utc(2026, 10, 19, 23, 0)),
    ("today 9am", _utc(2026, 10, 20, 9, 0)),
    ("today 11pm", _utc(2026, 10, 19, 23, 0)),
])
def test_passed_times_said_late_roll_over(text, expected):
    late = REFERENCE_NOW.replace(hour=22)

    assert resolve_time(text, late) == expected


def test_today_without_time_is_now():
    assert resolve_time("today", REFERENCE_NOW) == REFERENCE_NOW


@pytest.mark.parametrize("text,tz", [
    ("in 99999999 weeks", None),
    ("in 999999999999 days", None),
    ("31/12/9999 23:59", "America/New_York"),
    ("1/1/0001 00:00", "Asia/Tokyo"),
])
def test_out_of_range_times_raise(text, tz):
    with pytest.raises(ResolutionError):
        resolve_time(text, REFERENCE_NOW, tz=tz)
