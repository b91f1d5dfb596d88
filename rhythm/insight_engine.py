"""High-level insight helpers for compare/expected questions."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from .baselines import (
    age_in_months,
    baseline_for_age,
    expected_feed_interval_minutes,
    expected_feeds,
    expected_nap_duration_minutes,
    expected_naps,
    expected_wake_window_minutes,
    transition_window,
)
from .config import EngineSettings
from .pattern_analyzer import daytime_naps, night_sleeps
from .schemas import ActivityEvent, ActivityKind
from .time_normalizer import event_date_key, local_now, sleep_duration_minutes

ML_PER_OZ = 29.5735


def _feed_ounces(event: ActivityEvent) -> float:
    try:
        amount = float(event.attributes.quantity or 0)
    except ValueError:
        return 0.0
    if (event.attributes.unit or "oz").lower() == "ml":
        return amount / ML_PER_OZ
    return amount


def summaries_from_events(events: Iterable[ActivityEvent], settings: Optional[EngineSettings] = None) -> Dict[str, float]:
    totals = defaultdict(float)
    for event in events:
        totals[f"count_{event.kind.value}"] += 1
        if event.kind == ActivityKind.NAP:
            duration = sleep_duration_minutes(event, settings)
            if duration:
                totals["sleep_minutes"] += duration
        if event.kind == ActivityKind.FEED:
            totals["feed_oz"] += _feed_ounces(event)
    return totals


def nap_statistics(events: Iterable[ActivityEvent], settings: Optional[EngineSettings] = None) -> Dict[str, float]:
    """Averages per logged day; a day counts when it has at least one nap."""
    settings = settings or EngineSettings()
    naps = [event for event in events if event.kind == ActivityKind.NAP]
    days_with_data = len({event_date_key(nap, settings) for nap in naps}) or 1
    daytime = daytime_naps(naps, settings)
    nights = night_sleeps(naps, settings)

    night_minutes = 0
    for sleep in nights:
        if sleep.attributes.start_time and sleep.attributes.end_time:
            night_minutes += sleep_duration_minutes(sleep, settings) or 0

    return {
        "avg_naps_per_day": len(naps) / days_with_data,
        "avg_daytime_naps_per_day": len(daytime) / days_with_data,
        "total_naps": float(len(naps)),
        "avg_night_sleep_hours": night_minutes / 60 / (len(nights) or 1),
    }


def compare_metrics(
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    days: int = 1,
    baseline_days: int = 1,
    settings: Optional[EngineSettings] = None,
) -> Dict[str, Dict]:
    settings = settings or EngineSettings()
    today = local_now(now, settings).date()
    window_start = today - timedelta(days=days - 1)
    baseline_start = window_start - timedelta(days=baseline_days)

    current_events: List[ActivityEvent] = []
    baseline_events: List[ActivityEvent] = []
    for event in events:
        day = event_date_key(event, settings)
        if window_start <= day <= today:
            current_events.append(event)
        elif baseline_start <= day < window_start:
            baseline_events.append(event)

    current_summary = summaries_from_events(current_events, settings)
    baseline_summary = summaries_from_events(baseline_events, settings)

    deltas = {}
    for key in set(current_summary) | set(baseline_summary):
        current_value = current_summary.get(key, 0.0)
        baseline_value = baseline_summary.get(key, 0.0)
        deltas[key] = {
            "current": current_value,
            "baseline": baseline_value,
            "delta": current_value - baseline_value,
        }

    return {
        "window_days": days,
        "baseline_days": baseline_days,
        "current": dict(current_summary),
        "baseline": dict(baseline_summary),
        "metrics": deltas,
    }


def expected_ranges(age_weeks: int, observed: Dict[str, float] | None = None) -> Dict:
    baseline = baseline_for_age(age_weeks)
    months = age_in_months(age_weeks)
    feeds = expected_feeds(months)
    naps = expected_naps(months)
    guidance = {
        "age_weeks": age_weeks,
        "ranges": {
            "feed_per_day": feeds,
            "naps_per_day": naps,
            "wake_windows": baseline.wake_windows if baseline else None,
            "total_sleep": baseline.total_sleep if baseline else None,
            "bedtime": baseline.bedtime if baseline else None,
            "wake_window_minutes": expected_wake_window_minutes(months),
            "nap_duration_minutes": expected_nap_duration_minutes(months),
            "feed_interval_minutes": expected_feed_interval_minutes(months),
        },
        "transition": transition_window(age_weeks * 7),
        "observed": observed or {},
        "risks": [],
        "options": [],
    }

    if observed:
        feed_count = observed.get("count_feed", 0)
        nap_count = observed.get("count_nap", 0)
        if feeds and feed_count < feeds[0]:
            guidance["options"].append("Consider offering an extra daytime feed or earlier top-off.")
        if naps and nap_count > naps[1]:
            guidance["risks"].append("More naps than typical; short naps can point to overtiredness.")
        if naps and 0 < nap_count < naps[0]:
            guidance["options"].append("Fewer naps than typical; watch wake windows for signs of a transition.")

    return guidance
