"""Turn free-form reminder times into absolute UTC datetimes.

Examples:
- "in 5 minutes", "10m", "2 hours 30 minutes", "in a day"
- "tomorrow 9am", "monday at 8:30pm", "next friday", "tonight"
- "5pm" (today, or tomorrow if already passed)
- "25/12/2026 09:00", "25 Dec 2026" (day first, UK style)
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil import parser as date_parser

from . import config


class ResolutionError(ValueError):
    """Time text could not be understood."""


_UNIT_SECONDS = {
    "w": 7 * 86400,
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}

# Longest spellings first so "mins" isn't read as "m" + "ins"
_OFFSET_RE = re.compile(
    r"(?:(\d+)\s*|(?<![a-z])(an?)\s+)"
    r"(weeks?|wks?|w|days?|d|hours?|hrs?|h|minutes?|mins?|m|seconds?|secs?|s)"
    r"(?![a-z])"
)

_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_DAY_RE = re.compile(
    r"\b(?:(next)\s+)?(today|tonight|tomorrow|"
    r"mon(?:day)?|tue(?:s|sday)?|wed(?:nesday)?|thu(?:r|rs|rsday)?|fri(?:day)?|sat(?:urday)?|sun(?:day)?)\b"
)

_TIME_RE = re.compile(r"(\d{1,2})(?:[:.](\d{2}))?\s*(am|pm)?")

TONIGHT_HOUR = 20


def resolve_time(
    text: str,
    reference_now: Optional[datetime] = None,
    tz: Optional[str] = None
) -> datetime:
    """Resolve reminder time text relative to reference_now.

    Args:
        text: What the user typed after the command
        reference_now: Aware "current" time (defaults to now, UTC)
        tz: Zone for wall-clock times without an offset (defaults to config)

    Returns:
        Aware datetime in UTC

    Raises:
        ResolutionError: If the text isn't a recognised time
    """
    reference_now = reference_now or datetime.now(timezone.utc)
    if reference_now.tzinfo is None:
        raise ValueError("reference_now must be timezone-aware")

    normalized = re.sub(r"\s+", " ", (text or "").lower()).strip(" .,!")
    if not normalized:
        raise ResolutionError("empty time text")

    try:
        zone = ZoneInfo(tz or config.REMINDER_TIMEZONE)
    except (KeyError, ValueError) as e:
        raise ResolutionError(f"unknown timezone {tz or config.REMINDER_TIMEZONE!r}") from e

    if normalized == "now":
        return reference_now.astimezone(timezone.utc)

    try:
        offset = _parse_offset(normalized)
        if offset is not None:
            return (reference_now + offset).astimezone(timezone.utc)

        local_now = reference_now.astimezone(zone)
        resolved = _parse_day_and_time(normalized, local_now)
        if resolved is None:
            resolved = _parse_absolute(normalized, local_now, zone)

        return resolved.astimezone(timezone.utc)
    except OverflowError as e:
        raise ResolutionError(f"time out of range {text!r}") from e


def _parse_offset(text: str) -> Optional[timedelta]:
    """Parse "in 2 hours 30 minutes" style offsets."""
    body = re.sub(r"^in\s+", "", text)
    body = re.sub(r"\s+(from now|later)$", "", body)

    total = 0
    pos = 0
    found = False
    for match in _OFFSET_RE.finditer(body):
        # Only separators allowed between amounts
        if body[pos:match.start()].strip(" ,") not in ("", "and"):
            return None
        amount = int(match.group(1)) if match.group(1) else 1
        total += amount * _UNIT_SECONDS[match.group(3)[0]]
        pos = match.end()
        found = True

    if not found or body[pos:].strip(" ,"):
        return None
    return timedelta(seconds=total)


def _parse_clock(text: str, allow_bare_hour: bool) -> Optional[tuple[int, int]]:
    """Parse "9am", "9:30pm", "14:00", "8.15", "noon" into (hour, minute)."""
    if text == "noon":
        return 12, 0
    if text == "midnight":
        return 0, 0

    match = _TIME_RE.fullmatch(text)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) else 0
    meridiem = match.group(3)

    if not meridiem and not match.group(2) and not allow_bare_hour:
        return None

    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "pm" and hour < 12:
            hour += 12
        elif meridiem == "am" and hour == 12:
            hour = 0

    if hour > 23 or minute > 59:
        return None
    return hour, minute


def _parse_day_and_time(text: str, local_now: datetime) -> Optional[datetime]:
    """Parse day words and/or a clock time, in local wall time."""
    day_match = _DAY_RE.search(text)
    rest = text
    if day_match:
        rest = text[:day_match.start()] + " " + text[day_match.end():]
    rest = re.sub(r"\b(at|on)\b", " ", rest)
    rest = re.sub(r"\s+", " ", rest).strip()

    clock = None
    if rest:
        clock = _parse_clock(rest, allow_bare_hour=day_match is not None)
        if clock is None:
            return None
    elif not day_match:
        return None

    if not day_match:
        # Bare time: today, or tomorrow if it has passed
        target = local_now.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)
        if target <= local_now:
            target += timedelta(days=1)
        return target

    is_next = day_match.group(1) is not None
    day_word = day_match.group(2)

    if day_word == "tonight":
        if is_next:
            return None
        hour, minute = clock or (TONIGHT_HOUR, 0)
        if hour < 12 and not re.search(r"am|pm", rest):
            hour += 12
        target = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
        # Said after the hour: tomorrow night
        if target <= local_now:
            target += timedelta(days=1)
        return target

    if day_word in ("today", "tomorrow"):
        if is_next:
            return None
        days_ahead = 0 if day_word == "today" else 1
    else:
        target_day = next(i for i, name in enumerate(_DAYS) if name.startswith(day_word[:3]))
        days_ahead = (target_day - local_now.weekday()) % 7
        if is_next and days_ahead == 0:
            days_ahead = 7

    target = local_now + timedelta(days=days_ahead)
    if clock:
        target = target.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)

    if clock and day_word == "today" and target <= local_now:
        # "today 9am" said at noon: same time tomorrow
        target += timedelta(days=1)
    elif not is_next and day_word not in ("today", "tomorrow") and target <= local_now:
        # Plain weekday naming today's weekday but already passed means next week
        target += timedelta(days=7)
    return target


def _parse_absolute(text: str, local_now: datetime, zone: ZoneInfo) -> datetime:
    """Fall back to dateutil for explicit dates (day first)."""
    if re.fullmatch(r"(?:at |on )?\d{1,2}", text):
        raise ResolutionError(f"ambiguous time {text!r}")

    default = local_now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    try:
        parsed = date_parser.parse(text, dayfirst=True, default=default)
    except (ValueError, OverflowError) as e:
        raise ResolutionError(f"unrecognized time {text!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed
