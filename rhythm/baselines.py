"""Age-indexed reference tables used as a prior when logged data is thin.

Rows are compiled from published infant sleep schedules (Huckleberry, AAP sleep
guidance). They are read-only; nothing in the engine mutates them.
"""
from __future__ import annotations

from datetime import date
from typing import Dict, Optional, Tuple

from .schemas import AgeBaseline

DAYS_PER_WEEK = 7
WEEKS_PER_MONTH = 4.33

AGE_BASELINES: Tuple[AgeBaseline, ...] = (
    AgeBaseline(age_start_weeks=0, age_end_weeks=2, wake_windows="45min-1hr", nap_count="6-8",
                total_sleep="16-20hrs", feeds_per_day="8-12", bedtime="7:00-8:00 PM", baseline_naps=5),
    AgeBaseline(age_start_weeks=3, age_end_weeks=4, wake_windows="1-1.5hrs", nap_count="5-7",
                total_sleep="15-18hrs", feeds_per_day="8-10", bedtime="7:00-8:00 PM", baseline_naps=5),
    AgeBaseline(age_start_weeks=5, age_end_weeks=6, wake_windows="1.5-2hrs", nap_count="4-6",
                total_sleep="14-17hrs", feeds_per_day="6-8", bedtime="7:00-8:00 PM", baseline_naps=5),
    AgeBaseline(age_start_weeks=7, age_end_weeks=8, wake_windows="1.5-2hrs", nap_count="4-6",
                total_sleep="14-17hrs", feeds_per_day="6-8", bedtime="7:00-8:00 PM", baseline_naps=3),
    AgeBaseline(age_start_weeks=9, age_end_weeks=12, wake_windows="1.5-2.5hrs", nap_count="4-5",
                total_sleep="14-16hrs", feeds_per_day="5-7", bedtime="7:00-8:00 PM", baseline_naps=3),
    AgeBaseline(age_start_weeks=13, age_end_weeks=15, wake_windows="2-2.5hrs", nap_count="3-4",
                total_sleep="12-15hrs", feeds_per_day="4-6", bedtime="7:00-8:00 PM", baseline_naps=3),
    AgeBaseline(age_start_weeks=16, age_end_weeks=16, wake_windows="2-2.5hrs", nap_count="3-4",
                total_sleep="12-15hrs", feeds_per_day="4-6", bedtime="7:00-8:00 PM", baseline_naps=2),
    AgeBaseline(age_start_weeks=17, age_end_weeks=20, wake_windows="2.5-3hrs", nap_count="3",
                total_sleep="12-15hrs", feeds_per_day="4-6", bedtime="7:00-8:00 PM", baseline_naps=2),
    AgeBaseline(age_start_weeks=21, age_end_weeks=24, wake_windows="2.5-3.5hrs", nap_count="3",
                total_sleep="12-14hrs", feeds_per_day="4-6", bedtime="7:00-8:00 PM", baseline_naps=2),
    AgeBaseline(age_start_weeks=25, age_end_weeks=35, wake_windows="3-3.5hrs", nap_count="2",
                total_sleep="12-14hrs", feeds_per_day="3-5", bedtime="7:00-8:00 PM", baseline_naps=2),
    AgeBaseline(age_start_weeks=36, age_end_weeks=52, wake_windows="3.5-4hrs", nap_count="2",
                total_sleep="11-14hrs", feeds_per_day="3-5", bedtime="7:00-8:00 PM", baseline_naps=1),
    AgeBaseline(age_start_weeks=53, age_end_weeks=64, wake_windows="4-5hrs", nap_count="1-2",
                total_sleep="11-13hrs", feeds_per_day="3-4", bedtime="7:00-8:00 PM", baseline_naps=1),
    AgeBaseline(age_start_weeks=65, age_end_weeks=104, wake_windows="5-6hrs", nap_count="1",
                total_sleep="11-13hrs", feeds_per_day="3-4", bedtime="7:30-8:30 PM", baseline_naps=0),
    AgeBaseline(age_start_weeks=105, age_end_weeks=156, wake_windows="6-7hrs", nap_count="0-1",
                total_sleep="10-12hrs", feeds_per_day="3-4", bedtime="7:30-8:30 PM", baseline_naps=0),
    AgeBaseline(age_start_weeks=157, age_end_weeks=260, wake_windows="All day", nap_count="0",
                total_sleep="10-12hrs", feeds_per_day="3-4", bedtime="7:30-8:30 PM", baseline_naps=0),
)

# (min, max) per day, keyed by exclusive upper bound in months.
EXPECTED_FEEDS_BY_MONTH: Tuple[Tuple[int, Tuple[int, int]], ...] = (
    (1, (8, 12)),
    (3, (6, 8)),
    (6, (5, 7)),
    (9, (4, 6)),
    (12, (3, 5)),
)
EXPECTED_NAPS_BY_MONTH: Tuple[Tuple[int, Tuple[int, int]], ...] = (
    (3, (4, 6)),
    (6, (3, 4)),
    (9, (2, 3)),
    (12, (2, 3)),
    (18, (1, 2)),
)
WAKE_WINDOW_MINUTES_BY_MONTH: Tuple[Tuple[int, int], ...] = ((3, 90), (6, 120), (9, 150))
NAP_DURATION_MINUTES_BY_MONTH: Tuple[Tuple[int, int], ...] = ((3, 120), (6, 90), (12, 75))
# Typical (shortest, longest) gap between feeds in minutes.
FEED_INTERVAL_MINUTES_BY_MONTH: Tuple[Tuple[int, Tuple[int, int]], ...] = (
    (4, (120, 180)),
    (7, (150, 210)),
)

# Nap-count transitions by age in days: (first_day, last_day, from_naps, to_naps, label).
NAP_TRANSITION_WINDOWS: Tuple[Tuple[int, int, int, int, str], ...] = (
    (90, 120, 4, 3, "3-4 month transition"),
    (180, 270, 3, 2, "6-9 month transition"),
    (456, 547, 2, 1, "15-18 month transition"),
)


def age_in_weeks(birthdate: date, today: date) -> int:
    return max(0, (today - birthdate).days // DAYS_PER_WEEK)


def age_in_months(weeks: int) -> int:
    return int(weeks // WEEKS_PER_MONTH)


def baseline_for_age(weeks: int) -> Optional[AgeBaseline]:
    for row in AGE_BASELINES:
        if row.age_start_weeks <= weeks <= row.age_end_weeks:
            return row
    return None


def _lookup(table, months: int, default):
    for upper, value in table:
        if months < upper:
            return value
    return default


def expected_feeds(months: Optional[int]) -> Optional[Tuple[int, int]]:
    if months is None:
        return None
    return _lookup(EXPECTED_FEEDS_BY_MONTH, months, (3, 4))


def expected_naps(months: Optional[int]) -> Optional[Tuple[int, int]]:
    if months is None:
        return None
    return _lookup(EXPECTED_NAPS_BY_MONTH, months, (1, 2))


def expected_wake_window_minutes(months: Optional[int]) -> int:
    if months is None:
        return 120
    return _lookup(WAKE_WINDOW_MINUTES_BY_MONTH, months, 180)


def expected_nap_duration_minutes(months: Optional[int]) -> int:
    if months is None:
        return 90
    return _lookup(NAP_DURATION_MINUTES_BY_MONTH, months, 60)


def transition_window(age_days: Optional[int]) -> Optional[Dict[str, object]]:
    """Return the nap transition commonly seen at this age, if any."""
    if not age_days:
        return None
    for first_day, last_day, from_naps, to_naps, label in NAP_TRANSITION_WINDOWS:
        if first_day <= age_days <= last_day:
            return {"from": from_naps, "to": to_naps, "label": label}
    return None


def expected_feed_interval_minutes(months: Optional[int]) -> Tuple[int, int]:
    if months is None:
        return (150, 210)
    return _lookup(FEED_INTERVAL_MINUTES_BY_MONTH, months, (180, 300))
