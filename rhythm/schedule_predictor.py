"""Same-day nap-count prediction from recent logs and age baselines."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from statistics import pvariance
from typing import Iterable, List, Optional

from .baselines import age_in_months, age_in_weeks, baseline_for_age
from .config import EngineSettings
from .pattern_analyzer import analyze, daytime_naps
from .schemas import ActivityEvent, AgeInput, SchedulePrediction, SubPattern
from .time_normalizer import end_minutes_of_day, event_date_key, format_minutes, local_now, to_minutes_of_day
from .transitions import daily_nap_counts, detect_transition, round_half_up, validate_transition_note

logger = logging.getLogger(__name__)

ROLLING_DAYS = 3
VARIANCE_DAYS = 5
TRANSITION_LOOKBACK_DAYS = 7
TRANSITION_VARIANCE = 0.5
BEDTIME_MENTION_CONFIDENCE = 0.5


def _completed_nap_counts(
    events: Iterable[ActivityEvent],
    *,
    today: date,
    days: int,
    settings: EngineSettings,
) -> List[int]:
    """Per-day counts of daytime naps with both start and end, for days that have any."""
    start = today - timedelta(days=days)
    counts: Counter = Counter()
    for nap in daytime_naps(events, settings):
        if to_minutes_of_day(nap, settings) is None or end_minutes_of_day(nap) is None:
            continue
        day = event_date_key(nap, settings)
        if start <= day < today:
            counts[day] += 1
    return [counts[day] for day in sorted(counts)]


def recent_nap_count(events: Iterable[ActivityEvent], *, today: date, settings: EngineSettings) -> int:
    counts = _completed_nap_counts(events, today=today, days=ROLLING_DAYS, settings=settings)
    if not counts:
        return 0
    return round_half_up(sum(counts) / len(counts))


def nap_count_variance(events: Iterable[ActivityEvent], *, today: date, settings: EngineSettings) -> float:
    counts = _completed_nap_counts(events, today=today, days=VARIANCE_DAYS, settings=settings)
    if len(counts) < 2:
        return 0.0
    return float(pvariance(counts))


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _no_prediction(rationale: str) -> SchedulePrediction:
    return SchedulePrediction(
        nap_count_today=0,
        confidence="low",
        is_transitioning=False,
        rationale=rationale,
    )


def predict(
    recent_events: Iterable[ActivityEvent],
    today_events: Iterable[ActivityEvent],
    age: Optional[AgeInput],
    *,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> SchedulePrediction:
    settings = settings or EngineSettings()
    recent = list(recent_events)
    todays = list(today_events)
    today = local_now(now, settings).date()

    if age is None:
        return _no_prediction(
            "No birthdate or age set. Add one in settings to get schedule predictions."
        )

    weeks = age.weeks if age.weeks is not None else age_in_weeks(age.birthdate, today)
    baseline = baseline_for_age(weeks)
    if baseline is None:
        logger.info("no baseline for age", extra={"age_weeks": weeks})
        return _no_prediction("Unable to determine an appropriate schedule for this age.")

    months = age_in_months(weeks)
    baseline_naps = baseline.baseline_naps
    recent_count = recent_nap_count(recent, today=today, settings=settings)
    variance = nap_count_variance(recent, today=today, settings=settings)
    is_transitioning = variance > TRANSITION_VARIANCE
    transition_note: Optional[str] = None

    if recent_count == 0:
        predicted = baseline_naps
        confidence = "medium"
        rationale = (
            f"Based on age-appropriate schedule for {months} month old babies "
            f"({baseline_naps} naps typical)."
        )
    elif abs(recent_count - baseline_naps) <= 1:
        predicted = recent_count
        confidence = "high"
        rationale = (
            f"{recent_count} nap{_plural(recent_count)} per day based on recent {months} month pattern. "
            f"Wake windows: {baseline.wake_windows}."
        )
    elif recent_count < baseline_naps:
        predicted = recent_count
        confidence = "medium"
        rationale = (
            f"Currently doing {recent_count} nap{_plural(recent_count)} daily (baseline is {baseline_naps})."
        )
        if is_transitioning:
            counts = daily_nap_counts(
                recent,
                end_date=today - timedelta(days=1),
                days=TRANSITION_LOOKBACK_DAYS,
                settings=settings,
            )
            detected = detect_transition(counts)
            note = detected.note if detected else f"May be transitioning from {baseline_naps} to {recent_count} naps"
            transition_note = validate_transition_note(note, counts)
            rationale += " Nap pattern is adjusting - this is normal!"
    else:
        predicted = baseline_naps
        confidence = "medium"
        rationale = (
            f"Predicting {baseline_naps} naps based on age. Recent pattern shows {recent_count} naps, "
            "which may indicate shorter naps or overtiredness."
        )

    bedtime = analyze(recent + todays, SubPattern.BEDTIME, now=now, settings=settings)
    if bedtime is not None and bedtime.confidence >= BEDTIME_MENTION_CONFIDENCE:
        rationale += f" Bedtime usually around {format_minutes(bedtime.median_minutes)}."

    logged_today = sum(1 for nap in daytime_naps(todays, settings) if event_date_key(nap, settings) == today)
    return SchedulePrediction(
        nap_count_today=predicted,
        confidence=confidence,
        is_transitioning=is_transitioning,
        transition_note=transition_note,
        rationale=rationale,
        recent_nap_count=recent_count,
        nap_variance=variance,
        baseline_nap_count=baseline_naps,
        naps_logged_today=logged_today,
        naps_remaining=max(0, predicted - logged_today),
    )
