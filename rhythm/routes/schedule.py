from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter
from pydantic import Field

from ..dependencies import EngineRequest, resolve_now, resolve_settings
from ..schemas import ActivityEvent, AgeInput, SchedulePrediction
from ..schedule_predictor import predict

router = APIRouter(prefix="/api/v1/schedule", tags=["schedule"])
logger = logging.getLogger(__name__)


class SchedulePredictionPayload(EngineRequest):
    today_events: List[ActivityEvent] = Field(default_factory=list)
    age_weeks: Optional[int] = Field(default=None, ge=0)
    birthdate: Optional[date] = None


@router.post("/predict", response_model=SchedulePrediction)
async def predict_schedule(payload: SchedulePredictionPayload) -> SchedulePrediction:
    """Predict today's nap count; `events` carries the recent history."""

    age = None
    if payload.age_weeks is not None or payload.birthdate is not None:
        age = AgeInput(weeks=payload.age_weeks, birthdate=payload.birthdate)
    logger.info(
        "schedule prediction request",
        extra={"method": "POST", "path": "/api/v1/schedule/predict", "has_age": age is not None},
    )
    return predict(
        payload.events,
        payload.today_events,
        age,
        now=resolve_now(payload.now),
        settings=resolve_settings(payload),
    )
