"""
Timezone-aware time arithmetic for bookings and matches.

Every booking time is a facility-local wall-clock value: a calendar date, a
time of day and the facility's IANA timezone. Slot and status logic compares
those against the current instant, never against the server's local clock.

Parsing is strict: malformed dates or times raise ValueError and callers are
expected to validate input first.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Optional, Union
from zoneinfo import ZoneInfo

DateLike = Union[date, str]
TimeLike = Union[time, str]

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2})(?:[:.](\d{1,2}))?(?:[:.](\d{1,2})(?:\.\d+)?)?\s*$")


@lru_cache(maxsize=128)
def get_zone(name: Optional[str]) -> ZoneInfo:
    """Resolve an IANA identifier, defaulting to UTC when none is set."""
    return ZoneInfo(name or "UTC")


def parse_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def parse_time(value: TimeLike) -> time:
    """Accepts "9:00", "09:00:00", "9.00" and time objects."""
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time value: {value!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return time(hours, minutes, seconds)


def minute_of_day(value: TimeLike) -> int:
    parsed = parse_time(value)
    return parsed.hour * 60 + parsed.minute


def normalize_time(value: TimeLike) -> str:
    """Canonical "HH:MM" form so "09:00:00" and "9:00" compare equal."""
    parsed = parse_time(value)
    return f"{parsed.hour:02d}:{parsed.minute:02d}"


def time_from_minutes(minutes: int) -> time:
    minutes %= MINUTES_PER_DAY
    return time(minutes // 60, minutes % 60)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_instant(date_value: DateLike, time_value: TimeLike, tz_name: Optional[str]) -> datetime:
    """
    Absolute instant (UTC) denoted by a local date and wall-clock time.

    zoneinfo resolves the UTC offset for the wall-clock value itself, so DST
    transitions are handled: a time inside the spring-forward gap lands after
    the gap, and an ambiguous fall-back time resolves to its first occurrence.
    """
    local = datetime.combine(parse_date(date_value), parse_time(time_value), tzinfo=get_zone(tz_name))
    return local.astimezone(timezone.utc)


def signed_difference_from_now(instant: datetime, now: Optional[datetime] = None) -> int:
    """Milliseconds until `instant`: positive = future, negative = past."""
    now = now or utc_now()
    return int((instant - now).total_seconds() * 1000)


def spans_midnight(start_time: TimeLike, end_time: TimeLike) -> bool:
    # Equal start/end is a zero-length window, not a rollover.
    return minute_of_day(end_time) < minute_of_day(start_time)


def end_instant(
    date_value: DateLike,
    start_time: TimeLike,
    end_time: TimeLike,
    tz_name: Optional[str],
) -> datetime:
    """End instant of a window, on the next calendar date when it spans midnight."""
    end_date = parse_date(date_value)
    if spans_midnight(start_time, end_time):
        end_date += timedelta(days=1)
    return create_instant(end_date, end_time, tz_name)


def to_local(instant: datetime, tz_name: Optional[str]) -> datetime:
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(get_zone(tz_name))


def today_in_timezone(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    return to_local(now or utc_now(), tz_name).date()


def hours_until(instant: datetime, now: Optional[datetime] = None) -> float:
    return signed_difference_from_now(instant, now) / (1000 * 60 * 60)


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FormattedTime:
    formatted_time: str
    tz_city: str
    full_display: str


def uses_12_hour_clock(locale: Optional[str]) -> bool:
    """French locales read 24-hour times; English and everything else 12-hour."""
    normalized = (locale or "en-US").strip().lower().replace("_", "-")
    return not normalized.startswith("fr")


def timezone_city(tz_name: Optional[str]) -> str:
    """"America/New_York" -> "New York"."""
    name = tz_name or "UTC"
    return name.rsplit("/", 1)[-1].replace("_", " ")


def format_clock(value: datetime, locale: Optional[str]) -> str:
    if uses_12_hour_clock(locale):
        suffix = "AM" if value.hour < 12 else "PM"
        hour = value.hour % 12 or 12
        return f"{hour}:{value.minute:02d} {suffix}"
    return f"{value.hour:02d}:{value.minute:02d}"


def format_time_in_timezone(
    date_value: DateLike,
    time_value: TimeLike,
    tz_name: Optional[str],
    locale: Optional[str] = "en-US",
) -> FormattedTime:
    local = to_local(create_instant(date_value, time_value, tz_name), tz_name)
    formatted = format_clock(local, locale)
    city = timezone_city(tz_name)
    return FormattedTime(formatted_time=formatted, tz_city=city, full_display=f"{formatted} ({city})")


def format_time_range_in_timezone(
    date_value: DateLike,
    start_time: TimeLike,
    end_time: TimeLike,
    tz_name: Optional[str],
    locale: Optional[str] = "en-US",
) -> str:
    """E.g. "2:00 PM - 4:00 PM (New York)"; the city is shown once."""
    start = format_time_in_timezone(date_value, start_time, tz_name, locale)
    end_local = to_local(end_instant(date_value, start_time, end_time, tz_name), tz_name)
    return f"{start.formatted_time} - {format_clock(end_local, locale)} ({start.tz_city})"
