"""Next-likely-action scoring: feed soon, wind down for sleep, or let things be.

Two pressures are scored in [0, 1]. Feed pressure grows with the time since the
last feed, measured against the learned (or age-typical) feed interval. Sleep
pressure grows with time awake against the age wake window. A clear winner
becomes the intent; close calls go through tie-breakers.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, time, timedelta, tzinfo
from statistics import median
from typing import Iterable, List, Optional, Tuple

from .baselines import (
    age_in_months,
    age_in_weeks,
    expected_feed_interval_minutes,
    expected_feeds,
    expected_nap_duration_minutes,
    expected_naps,
    expected_wake_window_minutes,
)
from .config import EngineSettings
from .pattern_analyzer import analyze, sample_times
from .schemas import (
    ActivityEvent,
    ActivityKind,
    AgeInput,
    DayProgress,
    NextAction,
    NextActionIntent,
    SubPattern,
)
from .time_normalizer import (
    end_minutes_of_day,
    event_date_key,
    format_duration,
    is_night_hour,
    is_night_sleep,
    local_now,
    sleep_duration_minutes,
    sleep_start_date,
    to_minutes_of_day,
)

logger = logging.getLogger(__name__)

FEED_THRESHOLD = 0.55
WIND_DOWN_THRESHOLD = 0.60
DECISION_MARGIN = 0.08

DATA_GAP_MINUTES = 360
OPEN_SLEEP_LIMIT = timedelta(hours=14)
MIN_WAKE_FRACTION = 0.5

MIN_FEED_INTERVALS = 3
MAX_LEARNED_FEED_GAP = 360

NIGHT_FEED_DAMPING = 0.9
NIGHT_SLEEP_BOOST = 0.1
CONFLICT_PENALTY = 0.05

REEVALUATE_MINUTES = {
    NextActionIntent.FEED_SOON: 45,
    NextActionIntent.START_WIND_DOWN: 10,
    NextActionIntent.INDEPENDENT_TIME: 10,
    NextActionIntent.LET_SLEEP_CONTINUE: 30,
    NextActionIntent.HOLD: 10,
}

# (started_at, ended_at or None while ongoing, is night sleep)
Segment = Tuple[datetime, Optional[datetime], bool]


def sigmoid(x: float) -> float:
    return 1 / (1 + math.exp(-x))


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _at(day: date, minutes: int, tz: Optional[tzinfo]) -> datetime:
    return datetime.combine(day, time(minutes // 60, minutes % 60)).replace(tzinfo=tz)


def _minutes_between(earlier: datetime, later: datetime) -> int:
    return int((later - earlier).total_seconds() // 60)


def sleep_segments(
    events: Iterable[ActivityEvent],
    *,
    tz: Optional[tzinfo],
    settings: EngineSettings,
) -> List[Segment]:
    segments: List[Segment] = []
    for event in events:
        if event.kind != ActivityKind.NAP:
            continue
        start = to_minutes_of_day(event, settings)
        if start is None:
            continue
        if event.attributes.end_time is not None and end_minutes_of_day(event) is None:
            continue
        started_at = _at(sleep_start_date(event, settings), start, tz)
        duration = sleep_duration_minutes(event, settings)
        ended_at = started_at + timedelta(minutes=duration) if duration is not None else None
        night = is_night_sleep(event, settings.night_start_hour, settings.night_end_hour, settings=settings)
        segments.append((started_at, ended_at, night))
    return sorted(segments, key=lambda segment: segment[0])


def feed_times(
    events: Iterable[ActivityEvent],
    *,
    tz: Optional[tzinfo],
    settings: EngineSettings,
) -> List[datetime]:
    times = []
    for event in events:
        if event.kind != ActivityKind.FEED:
            continue
        minutes = to_minutes_of_day(event, settings)
        if minutes is None:
            continue
        times.append(_at(event_date_key(event, settings), minutes, tz))
    return sorted(times)


def learned_feed_interval(
    events: Iterable[ActivityEvent],
    *,
    today: date,
    settings: EngineSettings,
) -> Optional[float]:
    """Median same-day gap between consecutive feeds over the analysis window."""
    samples = sample_times(events, SubPattern.FEED, today=today, settings=settings)
    gaps = [
        later - earlier
        for (day, earlier), (next_day, later) in zip(samples, samples[1:])
        if day == next_day and 0 < later - earlier <= MAX_LEARNED_FEED_GAP
    ]
    if len(gaps) < MIN_FEED_INTERVALS:
        return None
    return float(median(gaps))


def _expected_wake(
    started_at: datetime,
    night: bool,
    events: List[ActivityEvent],
    *,
    now: datetime,
    months: Optional[int],
    settings: EngineSettings,
) -> Optional[datetime]:
    if not night:
        return started_at + timedelta(minutes=expected_nap_duration_minutes(months))
    stats = analyze(events, SubPattern.MORNING_WAKE, now=now, settings=settings)
    if stats is None:
        return None
    wake = _at(started_at.date(), int(stats.median_minutes), started_at.tzinfo)
    while wake <= started_at:
        wake += timedelta(days=1)
    return wake


def _tie_break(
    minutes_since_feed: int,
    minutes_awake: Optional[int],
    *,
    feed_interval_max: float,
    wake_window: float,
    min_wake: float,
) -> NextActionIntent:
    if minutes_since_feed > feed_interval_max:
        return NextActionIntent.FEED_SOON
    feed_progress = minutes_since_feed / feed_interval_max
    if minutes_awake is not None and minutes_awake >= min_wake:
        if minutes_awake > wake_window:
            return NextActionIntent.START_WIND_DOWN
        nap_progress = minutes_awake / wake_window
        if feed_progress > 0.8:
            return NextActionIntent.FEED_SOON
        if nap_progress > 0.8:
            return NextActionIntent.START_WIND_DOWN
        return NextActionIntent.FEED_SOON if feed_progress > nap_progress else NextActionIntent.START_WIND_DOWN
    if feed_progress > 0.5:
        return NextActionIntent.FEED_SOON
    return NextActionIntent.INDEPENDENT_TIME


def _confidence_label(score: float, conflict: bool) -> str:
    if score >= 0.7 and not conflict:
        return "high"
    if score >= 0.45:
        return "medium"
    return "low"


def predict_next_action(
    events: Iterable[ActivityEvent],
    age: Optional[AgeInput],
    *,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> NextAction:
    settings = settings or EngineSettings()
    event_list = list(events)
    local = local_now(now, settings)
    tz = local.tzinfo
    today = local.date()
    is_night = is_night_hour(local.hour, settings.night_start_hour, settings.night_end_hour)

    months: Optional[int] = None
    if age is not None:
        weeks = age.weeks if age.weeks is not None else age_in_weeks(age.birthdate, today)
        months = age_in_months(weeks)
    wake_window = float(expected_wake_window_minutes(months))
    min_wake = wake_window * MIN_WAKE_FRACTION
    feed_interval_min, feed_interval_max = expected_feed_interval_minutes(months)
    learned_interval = learned_feed_interval(event_list, today=today, settings=settings)
    if learned_interval is not None:
        feed_interval_min = learned_interval
        feed_interval_max = max(feed_interval_max, learned_interval)

    feeds = [moment for moment in feed_times(event_list, tz=tz, settings=settings) if moment <= local]
    segments = [segment for segment in sleep_segments(event_list, tz=tz, settings=settings) if segment[0] <= local]
    progress = DayProgress(
        feeds_today=sum(1 for moment in feeds if moment.date() == today),
        naps_today=sum(
            1 for started_at, ended_at, night in segments
            if not night and ended_at is not None and started_at.date() == today
        ),
        expected_feeds=expected_feeds(months),
        expected_naps=expected_naps(months),
    )

    if not feeds and not segments:
        return NextAction(
            intent=NextActionIntent.HOLD,
            confidence="low",
            reasons=["Nothing logged yet"],
            reevaluate_in_minutes=REEVALUATE_MINUTES[NextActionIntent.HOLD],
            is_night=is_night,
            day_progress=progress,
        )

    minutes_since_feed = _minutes_between(feeds[-1], local) if feeds else None
    completed_ends = [ended_at for _, ended_at, _ in segments if ended_at is not None and ended_at <= local]
    last_wake = max(completed_ends) if completed_ends else None
    ongoing = [
        segment for segment in segments
        if segment[1] is None
        and local - segment[0] < OPEN_SLEEP_LIMIT
        and (last_wake is None or segment[0] > last_wake)
    ]

    if ongoing:
        started_at, _, night = ongoing[-1]
        return NextAction(
            intent=NextActionIntent.LET_SLEEP_CONTINUE,
            confidence="high",
            reasons=["Currently sleeping"],
            reevaluate_in_minutes=REEVALUATE_MINUTES[NextActionIntent.LET_SLEEP_CONTINUE],
            minutes_since_last_feed=minutes_since_feed,
            sleep_score=1.0,
            is_night=is_night,
            next_wake_at=_expected_wake(
                started_at, night, event_list, now=now, months=months, settings=settings
            ),
            day_progress=progress,
        )

    minutes_awake = _minutes_between(last_wake, local) if last_wake else None
    next_nap_window_start = last_wake + timedelta(minutes=wake_window) if last_wake else None

    if minutes_since_feed is None or minutes_since_feed > DATA_GAP_MINUTES:
        logger.debug("feed data gap", extra={"minutes_since_last_feed": minutes_since_feed})
        return NextAction(
            intent=NextActionIntent.FEED_SOON,
            confidence="low",
            reasons=["Not enough recent data", "Feed likely overdue"],
            reevaluate_in_minutes=REEVALUATE_MINUTES[NextActionIntent.FEED_SOON],
            minutes_since_last_feed=minutes_since_feed,
            minutes_awake=minutes_awake,
            feed_score=0.8,
            is_night=is_night,
            next_nap_window_start=next_nap_window_start,
            day_progress=progress,
        )

    feed_score = sigmoid((minutes_since_feed - feed_interval_min) / 30)
    if is_night:
        feed_score *= NIGHT_FEED_DAMPING
    feed_score = _clamp(feed_score, 0.0, 1.0)

    sleep_score = 0.0
    if minutes_awake is not None and minutes_awake >= min_wake:
        sleep_score = sigmoid((minutes_awake - wake_window) / 20)
        if is_night:
            sleep_score += NIGHT_SLEEP_BOOST
        sleep_score = _clamp(sleep_score, 0.0, 1.0)

    conflict = False
    if feed_score >= FEED_THRESHOLD and feed_score - sleep_score > DECISION_MARGIN:
        intent = NextActionIntent.FEED_SOON
    elif sleep_score >= WIND_DOWN_THRESHOLD and sleep_score - feed_score > DECISION_MARGIN:
        intent = NextActionIntent.START_WIND_DOWN
    else:
        conflict = True
        intent = _tie_break(
            minutes_since_feed,
            minutes_awake,
            feed_interval_max=feed_interval_max,
            wake_window=wake_window,
            min_wake=min_wake,
        )
        overtired = minutes_awake is not None and minutes_awake > wake_window and feed_score < FEED_THRESHOLD
        if intent is NextActionIntent.INDEPENDENT_TIME and (is_night or overtired):
            intent = NextActionIntent.START_WIND_DOWN

    score = max(feed_score, sleep_score)
    if conflict:
        score -= CONFLICT_PENALTY
    score = _clamp(score, 0.2, 0.95)

    reasons: List[str] = []
    if intent is NextActionIntent.START_WIND_DOWN and minutes_awake is not None:
        reasons.append(f"Awake for {format_duration(minutes_awake)}")
    if intent is NextActionIntent.FEED_SOON:
        reasons.append(f"{format_duration(minutes_since_feed)} since last feed")
    if is_night:
        reasons.append("Evening hours, time to wind down")

    logger.debug(
        "next action",
        extra={"intent": intent.value, "feed_score": feed_score, "sleep_score": sleep_score, "conflict": conflict},
    )
    return NextAction(
        intent=intent,
        confidence=_confidence_label(score, conflict),
        reasons=reasons,
        reevaluate_in_minutes=REEVALUATE_MINUTES[intent],
        minutes_since_last_feed=minutes_since_feed,
        minutes_awake=minutes_awake,
        feed_score=feed_score,
        sleep_score=sleep_score,
        is_night=is_night,
        next_feed_at=feeds[-1] + timedelta(minutes=feed_interval_min),
        next_nap_window_start=next_nap_window_start,
        day_progress=progress,
    )
