from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import Field

from ..baselines import age_in_weeks
from ..dependencies import EngineRequest, resolve_now, resolve_settings
from ..insight_engine import compare_metrics, expected_ranges, nap_statistics, summaries_from_events
from ..time_normalizer import event_date_key, local_now

router = APIRouter(prefix="/api/v1/insights", tags=["insights"])
logger = logging.getLogger(__name__)


class ComparePayload(EngineRequest):
    days: int = Field(default=1, ge=1, le=30)
    baseline_days: int = Field(default=1, ge=1, le=30)


class ExpectedPayload(EngineRequest):
    age_weeks: Optional[int] = Field(default=None, ge=0)
    birthdate: Optional[date] = None


@router.post("/compare")
async def compare_insights(payload: ComparePayload) -> Dict:
    logger.info(
        "insights compare request",
        extra={"method": "POST", "path": "/api/v1/insights/compare", "days": payload.days},
    )
    return compare_metrics(
        payload.events,
        now=resolve_now(payload.now),
        days=payload.days,
        baseline_days=payload.baseline_days,
        settings=resolve_settings(payload),
    )


@router.post("/expected")
async def expected_insights(payload: ExpectedPayload) -> Dict:
    """Age ranges, with today's logged counts as the observations."""

    settings = resolve_settings(payload)
    today = local_now(resolve_now(payload.now), settings).date()
    if payload.age_weeks is not None:
        weeks = payload.age_weeks
    elif payload.birthdate is not None:
        if payload.birthdate > today:
            raise HTTPException(status_code=400, detail="birthdate is in the future")
        weeks = age_in_weeks(payload.birthdate, today)
    else:
        raise HTTPException(status_code=400, detail="age_weeks or birthdate is required")

    todays_events = [event for event in payload.events if event_date_key(event, settings) == today]
    observed = dict(summaries_from_events(todays_events, settings))
    logger.info(
        "insights expected request",
        extra={"method": "POST", "path": "/api/v1/insights/expected", "age_weeks": weeks},
    )
    guidance = expected_ranges(weeks, observed)
    if payload.events:
        guidance["nap_statistics"] = nap_statistics(payload.events, settings)
    return guidance
