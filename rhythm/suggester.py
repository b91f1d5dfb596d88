"""Missed-activity suggestions: "did you forget to log X around HH:MM?".

Evaluation is a pure function of the current time, the event history and the
caller-owned dismissal/acceptance flags. Callers re-run it on a fixed tick
(SUGGESTION_TICK_SECONDS); nothing is remembered between ticks except what the
flag store holds.

Per (household, sub-pattern, day) the outcome is one of the SuggestionState
values. Sub-patterns are evaluated in PRIORITY order and the first SUGGESTED
result wins the tick.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from .config import EngineSettings
from .flag_store import ACCEPTANCE_TTL, FlagStore, acceptance_key, dismissal_key
from .pattern_analyzer import analyze, daytime_naps, night_sleeps
from .schemas import (
    ActivityEvent,
    ActivityKind,
    PatternStatistics,
    SubPattern,
    Suggestion,
    SuggestionEvaluation,
    SuggestionState,
)
from .time_normalizer import (
    MINUTES_PER_DAY,
    bedtime_date_key,
    care_day,
    event_date_key,
    format_minutes,
    is_night_hour,
    local_now,
    minutes_of,
    sleep_start_date,
    to_minutes_of_day,
    wake_date_key,
)

logger = logging.getLogger(__name__)

SUGGESTION_TICK_SECONDS = 60

# Empirically chosen bars. Bedtime logs are noisier but a missed bedtime is the
# most valuable nudge, so it gets the lower bar.
DEFAULT_REQUIRED_CONFIDENCE = 0.7
BEDTIME_REQUIRED_CONFIDENCE = 0.55

MORNING_WAKE_OVERDUE_MINUTES = 60
OPEN_SESSION_GRACE = timedelta(hours=2)
DISMISSAL_TTL = timedelta(days=2)

PRIORITY = (
    SubPattern.BEDTIME,
    SubPattern.MORNING_WAKE,
    SubPattern.FEED,
    SubPattern.FIRST_DAYTIME_NAP,
)

MESSAGES: Dict[SubPattern, str] = {
    SubPattern.BEDTIME: "Did {name} go to bed around {time}?",
    SubPattern.MORNING_WAKE: "Did {name} wake up around {time}?",
    SubPattern.FEED: "Did {name} have a feed around {time}?",
    SubPattern.FIRST_DAYTIME_NAP: "Did {name} take a nap around {time}?",
}


def required_confidence(sub_pattern: SubPattern) -> float:
    if sub_pattern is SubPattern.BEDTIME:
        return BEDTIME_REQUIRED_CONFIDENCE
    return DEFAULT_REQUIRED_CONFIDENCE


def minutes_since_median(now_minutes: int, median_minutes: float) -> float:
    elapsed = now_minutes - median_minutes
    # 1 AM against a 2 PM median is 11h late, not 13h early.
    if elapsed < -MINUTES_PER_DAY / 2:
        elapsed += MINUTES_PER_DAY
    return elapsed


def care_day_minutes(local: datetime, day: date) -> int:
    """Minutes since midnight of `day`; past midnight keeps counting beyond 1440."""
    return minutes_of(local) + MINUTES_PER_DAY * (local.date() - day).days


def _care_day_target(median_minutes: float, settings: EngineSettings) -> float:
    wraps = settings.night_start_hour > settings.night_end_hour
    if wraps and median_minutes < settings.night_end_hour * 60:
        return median_minutes + MINUTES_PER_DAY
    return median_minutes


def suggestion_day(sub_pattern: SubPattern, now: datetime, settings: EngineSettings) -> date:
    """Day a sub-pattern is judged against. Morning wake is always today's wake-up."""
    if sub_pattern is SubPattern.MORNING_WAKE:
        return local_now(now, settings).date()
    return care_day(now, settings)


def already_logged(
    sub_pattern: SubPattern,
    events: Iterable[ActivityEvent],
    *,
    day: date,
    settings: EngineSettings,
) -> bool:
    event_list = list(events)
    if sub_pattern is SubPattern.BEDTIME:
        return any(bedtime_date_key(event, settings) == day for event in night_sleeps(event_list, settings))
    if sub_pattern is SubPattern.MORNING_WAKE:
        # Today's wake-up is recorded on a sleep that may have started yesterday.
        return any(wake_date_key(event, settings) == day for event in night_sleeps(event_list, settings))
    if sub_pattern is SubPattern.FEED:
        return any(
            event.kind == ActivityKind.FEED and event_date_key(event, settings) == day for event in event_list
        )
    return any(event_date_key(event, settings) == day for event in daytime_naps(event_list, settings))


def open_night_session_started_at(
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    settings: EngineSettings,
) -> Optional[datetime]:
    """Start of the most recent night sleep that has no endTime yet."""
    local = local_now(now, settings)
    latest: Optional[datetime] = None
    for event in night_sleeps(events, settings):
        if event.attributes.end_time:
            continue
        start = to_minutes_of_day(event, settings)
        if start is None:
            continue
        started_at = datetime.combine(
            sleep_start_date(event, settings),
            time(start // 60, start % 60),
        ).replace(tzinfo=local.tzinfo)
        if started_at > local:
            started_at -= timedelta(days=1)
        if latest is None or started_at > latest:
            latest = started_at
    return latest


def _is_due(
    sub_pattern: SubPattern,
    stats: PatternStatistics,
    events: List[ActivityEvent],
    *,
    now: datetime,
    settings: EngineSettings,
) -> bool:
    local = local_now(now, settings)
    if sub_pattern is not SubPattern.MORNING_WAKE:
        day = suggestion_day(sub_pattern, now, settings)
        elapsed = care_day_minutes(local, day) - _care_day_target(stats.median_minutes, settings)
        return elapsed >= stats.grace_period_minutes

    if is_night_hour(local.hour, settings.night_start_hour, settings.night_end_hour):
        return False
    started_at = open_night_session_started_at(events, now=now, settings=settings)
    if started_at is not None and local - started_at < OPEN_SESSION_GRACE:
        return False
    return minutes_since_median(minutes_of(local), stats.median_minutes) >= MORNING_WAKE_OVERDUE_MINUTES


def recently_accepted(
    sub_pattern: SubPattern,
    *,
    household_id: str,
    flags: FlagStore,
    now: datetime,
    settings: EngineSettings,
) -> bool:
    local = local_now(now, settings)
    buckets = int(ACCEPTANCE_TTL.total_seconds() // 60)
    for offset in range(buckets + 1):
        key = acceptance_key(household_id, sub_pattern, local - timedelta(minutes=offset))
        if flags.get(key, now=now) is not None:
            return True
    return False


def build_suggestion(sub_pattern: SubPattern, stats: PatternStatistics, baby_name: Optional[str]) -> Suggestion:
    label = format_minutes(stats.median_minutes)
    return Suggestion(
        sub_pattern=sub_pattern,
        kind=sub_pattern.kind,
        suggested_time_label=label,
        median_minutes=stats.median_minutes,
        confidence=min(1.0, stats.confidence),
        message=MESSAGES[sub_pattern].format(name=baby_name or "baby", time=label),
    )


def evaluate_sub_pattern(
    sub_pattern: SubPattern,
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    household_id: str,
    flags: FlagStore,
    settings: Optional[EngineSettings] = None,
    baby_name: Optional[str] = None,
) -> SuggestionEvaluation:
    settings = settings or EngineSettings()
    event_list = list(events)
    day = suggestion_day(sub_pattern, now, settings)

    def result(state: SuggestionState, stats=None, suggestion=None) -> SuggestionEvaluation:
        logger.debug(
            "suggestion state",
            extra={
                "household_id": household_id,
                "sub_pattern": sub_pattern.value,
                "day": day.isoformat(),
                "state": state.value,
            },
        )
        return SuggestionEvaluation(sub_pattern=sub_pattern, state=state, statistics=stats, suggestion=suggestion)

    if already_logged(sub_pattern, event_list, day=day, settings=settings):
        return result(SuggestionState.ALREADY_LOGGED)

    stats = analyze(event_list, sub_pattern, now=now, settings=settings)
    if stats is None:
        return result(SuggestionState.NO_PATTERN)
    if stats.confidence < required_confidence(sub_pattern):
        return result(SuggestionState.BELOW_CONFIDENCE, stats)
    if not _is_due(sub_pattern, stats, event_list, now=now, settings=settings):
        return result(SuggestionState.TOO_EARLY, stats)
    if flags.get(dismissal_key(household_id, sub_pattern, day), now=now) is not None:
        return result(SuggestionState.DISMISSED, stats)
    if recently_accepted(sub_pattern, household_id=household_id, flags=flags, now=now, settings=settings):
        return result(SuggestionState.RECENTLY_ACCEPTED, stats)
    return result(SuggestionState.SUGGESTED, stats, build_suggestion(sub_pattern, stats, baby_name))


def evaluate_all(
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    household_id: str,
    flags: FlagStore,
    settings: Optional[EngineSettings] = None,
    baby_name: Optional[str] = None,
) -> List[SuggestionEvaluation]:
    """Walk PRIORITY until one sub-pattern is SUGGESTED; the rest stay NOT_EVALUATED."""
    event_list = list(events)
    evaluations: List[SuggestionEvaluation] = []
    found = False
    for sub_pattern in PRIORITY:
        if found:
            evaluations.append(SuggestionEvaluation(sub_pattern=sub_pattern))
            continue
        evaluation = evaluate_sub_pattern(
            sub_pattern,
            event_list,
            now=now,
            household_id=household_id,
            flags=flags,
            settings=settings,
            baby_name=baby_name,
        )
        evaluations.append(evaluation)
        found = evaluation.state == SuggestionState.SUGGESTED
    return evaluations


def next_suggestion(
    events: Iterable[ActivityEvent],
    *,
    now: datetime,
    household_id: str,
    flags: FlagStore,
    settings: Optional[EngineSettings] = None,
    baby_name: Optional[str] = None,
) -> Optional[Suggestion]:
    for evaluation in evaluate_all(
        events,
        now=now,
        household_id=household_id,
        flags=flags,
        settings=settings,
        baby_name=baby_name,
    ):
        if evaluation.suggestion is not None:
            return evaluation.suggestion
    return None


def dismiss_suggestion(
    sub_pattern: SubPattern,
    *,
    household_id: str,
    flags: FlagStore,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> str:
    """Silence a sub-pattern for the rest of its day. Returns the flag key written."""
    settings = settings or EngineSettings()
    key = dismissal_key(household_id, sub_pattern, suggestion_day(sub_pattern, now, settings))
    flags.put(key, "true", ttl=DISMISSAL_TTL, now=now)
    logger.info("suggestion dismissed", extra={"household_id": household_id, "key": key})
    return key


def accept_suggestion(
    sub_pattern: SubPattern,
    *,
    household_id: str,
    flags: FlagStore,
    now: datetime,
    settings: Optional[EngineSettings] = None,
) -> str:
    """Record an acceptance so UI refreshes in the next minutes do not resurface it."""
    settings = settings or EngineSettings()
    key = acceptance_key(household_id, sub_pattern, local_now(now, settings))
    flags.put(key, now.isoformat(), ttl=ACCEPTANCE_TTL, now=now)
    logger.info("suggestion accepted", extra={"household_id": household_id, "key": key})
    return key
