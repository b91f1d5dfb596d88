from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter
from pydantic import Field

from ..dependencies import EngineRequest, resolve_now, resolve_settings
from ..next_action import predict_next_action
from ..schemas import AgeInput, NextAction

router = APIRouter(prefix="/api/v1/next-action", tags=["next-action"])
logger = logging.getLogger(__name__)


class NextActionPayload(EngineRequest):
    age_weeks: Optional[int] = Field(default=None, ge=0)
    birthdate: Optional[date] = None


@router.post("", response_model=NextAction)
async def next_action(payload: NextActionPayload) -> NextAction:
    age = None
    if payload.age_weeks is not None or payload.birthdate is not None:
        age = AgeInput(weeks=payload.age_weeks, birthdate=payload.birthdate)
    logger.info(
        "next action request",
        extra={"method": "POST", "path": "/api/v1/next-action", "events": len(payload.events)},
    )
    return predict_next_action(
        payload.events,
        age,
        now=resolve_now(payload.now),
        settings=resolve_settings(payload),
    )
