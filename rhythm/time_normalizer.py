"""Single home for turning logged time strings and timestamps into minutes-of-day.

Every other module consumes `minutes since local midnight` plus a calendar date
key; raw strings never leave this module. Anything that cannot be parsed comes
back as ``None`` so callers can treat the event as not qualifying.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .config import EngineSettings
from .schemas import ActivityEvent, ActivityKind

MINUTES_PER_DAY = 24 * 60
PRELOG_TOLERANCE_MINUTES = 60

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?\s*$")
_DURATION_PATTERN = re.compile(r"^\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?\s*$", re.IGNORECASE)

_DEFAULT_SETTINGS = EngineSettings()


def parse_clock_time(value: Optional[str]) -> Optional[int]:
    """Parse "7:30 PM" (or 24h "19:30") into minutes since midnight."""
    if not value:
        return None
    match = _CLOCK_PATTERN.match(value)
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2))
    period = match.group(3)
    if minutes > 59:
        return None
    if period:
        if not 1 <= hours <= 12:
            return None
        period = period.upper()
        if period == "PM" and hours != 12:
            hours += 12
        if period == "AM" and hours == 12:
            hours = 0
    elif hours > 23:
        return None
    return hours * 60 + minutes


def parse_duration(value: Optional[str]) -> Optional[int]:
    """Parse "1h 30m", "2h" or "45m" into minutes."""
    if not value:
        return None
    match = _DURATION_PATTERN.match(value)
    if not match or (match.group(1) is None and match.group(2) is None):
        return None
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    return hours * 60 + minutes


def format_minutes(minutes: float) -> str:
    normalized = int(minutes) % MINUTES_PER_DAY
    hours24, mins = divmod(normalized, 60)
    period = "PM" if hours24 >= 12 else "AM"
    hours12 = hours24 % 12 or 12
    return f"{hours12}:{mins:02d} {period}"


def format_duration(total_minutes: int) -> str:
    if total_minutes <= 0:
        return "0m"
    hours, minutes = divmod(total_minutes, 60)
    if hours == 0:
        return f"{minutes}m"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"


def _event_tzinfo(event: ActivityEvent, settings: EngineSettings) -> tzinfo:
    if event.timezone:
        try:
            return ZoneInfo(event.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    if event.attributes.offset_minutes is not None:
        return timezone(timedelta(minutes=event.attributes.offset_minutes))
    return settings.tzinfo


def local_logged_at(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> datetime:
    """loggedAt re-expressed on the caregiver's wall clock."""
    settings = settings or _DEFAULT_SETTINGS
    logged_at = event.logged_at
    if logged_at.tzinfo is None:
        return logged_at
    return logged_at.astimezone(_event_tzinfo(event, settings))


def local_now(now: datetime, settings: Optional[EngineSettings] = None) -> datetime:
    settings = settings or _DEFAULT_SETTINGS
    if now.tzinfo is None:
        return now
    return now.astimezone(settings.tzinfo)


def minutes_of(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def to_minutes_of_day(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> Optional[int]:
    """Clock time the event started, in [0, 1440).

    An explicit startTime wins. When it is present but unparseable the event
    does not qualify; loggedAt is only used when no startTime was entered.
    """
    if event.attributes.start_time is not None:
        return parse_clock_time(event.attributes.start_time)
    return minutes_of(local_logged_at(event, settings))


def end_minutes_of_day(event: ActivityEvent) -> Optional[int]:
    return parse_clock_time(event.attributes.end_time)


def event_date_key(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> date:
    if event.attributes.date_local is not None:
        return event.attributes.date_local
    return local_logged_at(event, settings).date()


def wraps_midnight(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> Optional[bool]:
    start = to_minutes_of_day(event, settings)
    end = end_minutes_of_day(event)
    if start is None or end is None:
        return None
    return end < start


def sleep_start_date(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> date:
    """Calendar day a sleep actually began on.

    A sleep entered the next morning ("7:30 PM - 6:30 AM", logged at 7 AM) carries
    the morning's loggedAt. When the recorded start would lie more than
    PRELOG_TOLERANCE_MINUTES after the moment it was logged, it began the day before.
    """
    settings = settings or _DEFAULT_SETTINGS
    day = event_date_key(event, settings)
    if event.attributes.date_local is not None or not wraps_midnight(event, settings):
        return day
    start = to_minutes_of_day(event, settings)
    logged = minutes_of(local_logged_at(event, settings))
    if start - logged > PRELOG_TOLERANCE_MINUTES:
        return day - timedelta(days=1)
    return day


def bedtime_date_key(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> date:
    """A bedtime belongs to the evening it started; 12:30 AM counts toward the night before."""
    settings = settings or _DEFAULT_SETTINGS
    day = sleep_start_date(event, settings)
    start = to_minutes_of_day(event, settings)
    wraps = settings.night_start_hour > settings.night_end_hour
    if wraps and start is not None and start < settings.night_end_hour * 60:
        return day - timedelta(days=1)
    return day


def wake_date_key(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> Optional[date]:
    """A wake-up belongs to the day the sleep ended."""
    wrapped = wraps_midnight(event, settings)
    if wrapped is None:
        return None
    start_day = sleep_start_date(event, settings)
    return start_day + timedelta(days=1) if wrapped else start_day


def sleep_duration_minutes(event: ActivityEvent, settings: Optional[EngineSettings] = None) -> Optional[int]:
    start = to_minutes_of_day(event, settings)
    end = end_minutes_of_day(event)
    if start is not None and end is not None:
        duration = end - start
        if duration < 0:
            duration += MINUTES_PER_DAY
        return duration
    return parse_duration(event.attributes.duration)


def is_night_hour(hour: int, night_start_hour: int, night_end_hour: int) -> bool:
    if night_start_hour > night_end_hour:
        return hour >= night_start_hour or hour < night_end_hour
    return night_start_hour <= hour < night_end_hour


def is_night_sleep(
    event: ActivityEvent,
    night_start_hour: int = 19,
    night_end_hour: int = 7,
    *,
    settings: Optional[EngineSettings] = None,
) -> bool:
    if event.kind != ActivityKind.NAP:
        return False
    if event.attributes.is_night_sleep is not None:
        return event.attributes.is_night_sleep
    start = to_minutes_of_day(event, settings)
    if start is None:
        return False
    return is_night_hour(start // 60, night_start_hour, night_end_hour)


def is_daytime_nap(
    event: ActivityEvent,
    night_start_hour: int = 19,
    night_end_hour: int = 7,
    *,
    settings: Optional[EngineSettings] = None,
) -> bool:
    if event.kind != ActivityKind.NAP:
        return False
    if event.attributes.is_night_sleep is not None:
        return not event.attributes.is_night_sleep
    start = to_minutes_of_day(event, settings)
    if start is None:
        return False
    return not is_night_hour(start // 60, night_start_hour, night_end_hour)


def care_day(now: datetime, settings: Optional[EngineSettings] = None) -> date:
    """Calendar day a caregiver is living in; the small hours still belong to yesterday."""
    settings = settings or _DEFAULT_SETTINGS
    local = local_now(now, settings)
    wraps = settings.night_start_hour > settings.night_end_hour
    if wraps and local.hour < settings.night_end_hour:
        return local.date() - timedelta(days=1)
    return local.date()
