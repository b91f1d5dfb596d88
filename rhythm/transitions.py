"""Nap-count transition detection and validation of transition claims.

Two separate jobs live here:

* ``detect_transition`` looks at per-day nap counts and decides whether the
  routine is actually shifting (first half of the window vs second half).
* ``validate_transition_claim`` checks a "from N to M naps" statement produced
  elsewhere (narrative generators included) against the logged counts and
  downgrades unsupported claims to a neutral stabilizing statement.
"""
from __future__ import annotations

import logging
import math
import re
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .config import EngineSettings
from .schemas import ActivityEvent, TransitionClaim, TransitionInfo, TransitionVerdict
from .time_normalizer import event_date_key, is_daytime_nap

logger = logging.getLogger(__name__)

MIN_TRANSITION_DAYS = 5
MIN_NAP_DROP = 1.0
CLAIM_LOOKBACK_DAYS = 7

# Tried in order. "from N to M" wins over bare arrows; "to M from N" is also accepted.
_CLAIM_PATTERNS = (
    re.compile(r"from\s+(?P<from_naps>\d+)\s*(?:naps?\s*)?(?:to|→|->)\s*(?P<to_naps>\d+)", re.IGNORECASE),
    re.compile(r"to\s+(?P<to_naps>\d+)\s*(?:naps?\s*)?from\s+(?P<from_naps>\d+)", re.IGNORECASE),
    re.compile(r"(?P<from_naps>\d+)\s*(?:→|->)\s*(?P<to_naps>\d+)"),
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def daily_nap_counts(
    events: Iterable[ActivityEvent],
    *,
    end_date: date,
    days: int = CLAIM_LOOKBACK_DAYS,
    settings: Optional[EngineSettings] = None,
) -> List[int]:
    """Daytime nap count per day, oldest first, for days with anything logged."""
    settings = settings or EngineSettings()
    start_date = end_date - timedelta(days=days - 1)
    logged_days = set()
    counts: Dict[date, int] = {}
    for event in events:
        day = event_date_key(event, settings)
        if not start_date <= day <= end_date:
            continue
        logged_days.add(day)
        if is_daytime_nap(event, settings.night_start_hour, settings.night_end_hour, settings=settings):
            counts[day] = counts.get(day, 0) + 1
    return [counts.get(day, 0) for day in sorted(logged_days)]


def detect_transition(daily_counts: Sequence[int]) -> Optional[TransitionInfo]:
    """Flag a sustained drop of at least one full nap between the two halves."""
    if len(daily_counts) < MIN_TRANSITION_DAYS:
        return None
    half = len(daily_counts) // 2
    first, second = list(daily_counts[:half]), list(daily_counts[half:])
    first_mean = sum(first) / len(first)
    second_mean = sum(second) / len(second)
    if first_mean - second_mean < MIN_NAP_DROP:
        return None
    return TransitionInfo(
        from_naps=round_half_up(first_mean),
        to_naps=round_half_up(second_mean),
        first_half_mean=first_mean,
        second_half_mean=second_mean,
        days_analyzed=len(daily_counts),
    )


def parse_transition_claim(text: Optional[str]) -> Optional[TransitionClaim]:
    if not text:
        return None
    for pattern in _CLAIM_PATTERNS:
        match = pattern.search(text)
        if match:
            return TransitionClaim(
                from_naps=int(match.group("from_naps")),
                to_naps=int(match.group("to_naps")),
            )
    return None


def stabilizing_statement(observed_min: int, observed_max: int) -> str:
    if observed_min == observed_max:
        return f"Holding steady at {observed_max} naps"
    return f"Stabilizing between {observed_min}–{observed_max} naps"


def validate_transition_claim(claim: TransitionClaim, daily_counts: Sequence[int]) -> TransitionVerdict:
    """Accept "from N to M" only if a recent day actually logged N or more naps."""
    recent = list(daily_counts[-CLAIM_LOOKBACK_DAYS:])
    if not recent:
        logger.warning(
            "transition claim rejected",
            extra={"from_naps": claim.from_naps, "to_naps": claim.to_naps, "reason": "no_data"},
        )
        return TransitionVerdict(
            accepted=False,
            claim=claim,
            statement="Not enough logged days to describe a nap transition yet",
        )

    observed_min, observed_max = min(recent), max(recent)
    if observed_max >= claim.from_naps:
        return TransitionVerdict(
            accepted=True,
            claim=claim,
            statement=f"Transitioning from {claim.from_naps} to {claim.to_naps} naps",
            observed_min=observed_min,
            observed_max=observed_max,
        )

    logger.warning(
        "transition claim rejected",
        extra={
            "from_naps": claim.from_naps,
            "to_naps": claim.to_naps,
            "observed_max": observed_max,
        },
    )
    return TransitionVerdict(
        accepted=False,
        claim=claim,
        statement=stabilizing_statement(observed_min, observed_max),
        observed_min=observed_min,
        observed_max=observed_max,
    )


def validate_transition_note(note: Optional[str], daily_counts: Sequence[int]) -> Optional[str]:
    """Pass a free-text note through the validator; notes without a claim are returned as-is."""
    claim = parse_transition_claim(note)
    if claim is None:
        return note
    verdict = validate_transition_claim(claim, daily_counts)
    return note if verdict.accepted else verdict.statement
