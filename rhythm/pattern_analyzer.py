"""Learn when a habitual event usually happens from the trailing two weeks of logs."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from statistics import median, pstdev
from typing import Dict, Iterable, List, Optional, Tuple

from .config import EngineSettings
from .schemas import ActivityEvent, ActivityKind, PatternStatistics, SubPattern
from .time_normalizer import (
    MINUTES_PER_DAY,
    bedtime_date_key,
    end_minutes_of_day,
    event_date_key,
    is_daytime_nap,
    is_night_sleep,
    local_now,
    to_minutes_of_day,
    wake_date_key,
)

logger = logging.getLogger(__name__)

WINDOW_DAYS = 14
# Deliberately low so suggestions can start before a full week of logs exists.
MIN_OCCURRENCES = 3

# Confidence = consistency * completeness * recency.
CONSISTENCY_SPREAD_MINUTES = 45
COMPLETENESS_EVENTS = 7
RECENCY_EVENTS = 10
RECENCY_BOOST = 1.2

# Empirical cut-off for calling a pattern "highly predictable" in copy.
HIGHLY_PREDICTABLE_STD_DEV = 30

DEFAULT_GRACE_MINUTES = 45
GRACE_PERIOD_MINUTES: Dict[SubPattern, int] = {
    SubPattern.BEDTIME: 90,
    SubPattern.MORNING_WAKE: 60,
    SubPattern.FEED: DEFAULT_GRACE_MINUTES,
    SubPattern.FIRST_DAYTIME_NAP: 60,
}

Sample = Tuple[date, int]


def score_confidence(std_dev: float, occurrence_count: int) -> float:
    """Multiplicative: thin evidence or high spread each sink the score."""
    consistency = max(0.0, 1 - std_dev / CONSISTENCY_SPREAD_MINUTES)
    completeness = min(1.0, occurrence_count / COMPLETENESS_EVENTS)
    recency = min(1.0, occurrence_count / RECENCY_EVENTS) * RECENCY_BOOST
    return consistency * completeness * recency


def is_highly_predictable(stats: PatternStatistics) -> bool:
    return stats.std_dev_minutes < HIGHLY_PREDICTABLE_STD_DEV


def night_sleeps(events: Iterable[ActivityEvent], settings: EngineSettings) -> List[ActivityEvent]:
    return [
        event
        for event in events
        if is_night_sleep(event, settings.night_start_hour, settings.night_end_hour, settings=settings)
    ]


def daytime_naps(events: Iterable[ActivityEvent], settings: EngineSettings) -> List[ActivityEvent]:
    return [
        event
        for event in events
        if is_daytime_nap(event, settings.night_start_hour, settings.night_end_hour, settings=settings)
    ]


def _unwrap_bedtime(minutes: int, settings: EngineSettings) -> int:
    # 12:30 AM should sit after 11:30 PM, not 23 hours before it.
    if settings.night_start_hour > settings.night_end_hour and minutes < settings.night_end_hour * 60:
        return minutes + MINUTES_PER_DAY
    return minutes


def _bedtime_samples(events: List[ActivityEvent], settings: EngineSettings) -> List[Sample]:
    earliest: Dict[date, int] = {}
    for event in night_sleeps(events, settings):
        if end_minutes_of_day(event) is None:
            continue
        start = to_minutes_of_day(event, settings)
        if start is None:
            continue
        day = bedtime_date_key(event, settings)
        value = _unwrap_bedtime(start, settings)
        if day not in earliest or value < earliest[day]:
            earliest[day] = value
    return sorted(earliest.items())


def _morning_wake_samples(events: List[ActivityEvent], settings: EngineSettings) -> List[Sample]:
    latest: Dict[date, int] = {}
    for event in night_sleeps(events, settings):
        end = end_minutes_of_day(event)
        day = wake_date_key(event, settings)
        if end is None or day is None:
            continue
        if day not in latest or end > latest[day]:
            latest[day] = end
    return sorted(latest.items())


def _feed_samples(events: List[ActivityEvent], settings: EngineSettings) -> List[Sample]:
    samples: List[Sample] = []
    for event in events:
        if event.kind != ActivityKind.FEED:
            continue
        minutes = to_minutes_of_day(event, settings)
        if minutes is None:
            continue
        samples.append((event_date_key(event, settings), minutes))
    return sorted(samples)


def _first_daytime_nap_samples(events: List[ActivityEvent], settings: EngineSettings) -> List[Sample]:
    earliest: Dict[date, int] = {}
    for event in daytime_naps(events, settings):
        start = to_minutes_of_day(event, settings)
        if start is None:
            continue
        day = event_date_key(event, settings)
        if day not in earliest or start < earliest[day]:
            earliest[day] = start
    return sorted(earliest.items())


_SAMPLERS = {
    SubPattern.BEDTIME: _bedtime_samples,
    SubPattern.MORNING_WAKE: _morning_wake_samples,
    SubPattern.FEED: _feed_samples,
    SubPattern.FIRST_DAYTIME_NAP: _first_daytime_nap_samples,
}


def sample_times(
    events: Iterable[ActivityEvent],
    sub_pattern: SubPattern,
    *,
    today: date,
    settings: EngineSettings,
) -> List[Sample]:
    """Qualifying (anchor date, minutes) pairs inside the trailing window."""
    window_start = today - timedelta(days=WINDOW_DAYS - 1)
    samples = _SAMPLERS[sub_pattern](list(events), settings)
    return [(day, minutes) for day, minutes in samples if window_start <= day <= today]


def analyze(
    events: Iterable[ActivityEvent],
    sub_pattern: SubPattern,
    *,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> Optional[PatternStatistics]:
    """Median/spread/confidence for one sub-pattern, or None when evidence is thin."""
    settings = settings or EngineSettings()
    today = local_now(now, settings).date()
    samples = sample_times(events, sub_pattern, today=today, settings=settings)
    if len(samples) < MIN_OCCURRENCES:
        logger.debug(
            "insufficient evidence",
            extra={"sub_pattern": sub_pattern.value, "occurrences": len(samples)},
        )
        return None

    times = [minutes for _, minutes in samples]
    median_minutes = float(median(times)) % MINUTES_PER_DAY
    std_dev = float(pstdev(times))
    return PatternStatistics(
        sub_pattern=sub_pattern,
        times=times,
        median_minutes=median_minutes,
        std_dev_minutes=std_dev,
        occurrence_count=len(times),
        grace_period_minutes=GRACE_PERIOD_MINUTES.get(sub_pattern, DEFAULT_GRACE_MINUTES),
        confidence=score_confidence(std_dev, len(times)),
    )


def analyze_all(
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> Dict[SubPattern, Optional[PatternStatistics]]:
    event_list = list(events)
    return {
        sub_pattern: analyze(event_list, sub_pattern, now=now, settings=settings)
        for sub_pattern in SubPattern
    }
