from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import EngineRequest, get_flag_store, resolve_household_id, resolve_now, resolve_settings
from ..flag_store import FlagStore
from ..schemas import SubPattern, Suggestion, SuggestionEvaluation
from ..suggester import accept_suggestion, dismiss_suggestion, evaluate_all

router = APIRouter(prefix="/api/v1/suggestions", tags=["suggestions"])
logger = logging.getLogger(__name__)


class NextSuggestionPayload(EngineRequest):
    household_id: str
    baby_name: Optional[str] = None


class NextSuggestionResponse(BaseModel):
    suggestion: Optional[Suggestion] = None
    evaluations: List[SuggestionEvaluation]


class SuggestionFlagPayload(EngineRequest):
    household_id: str
    sub_pattern: SubPattern


class SuggestionFlagResponse(BaseModel):
    key: str


@router.post("/next", response_model=NextSuggestionResponse)
async def next_suggestion_endpoint(
    payload: NextSuggestionPayload,
    flags: FlagStore = Depends(get_flag_store),
) -> NextSuggestionResponse:
    household_id = resolve_household_id(payload.household_id)
    logger.info(
        "household-scoped request",
        extra={"method": "POST", "path": "/api/v1/suggestions/next", "household_id": household_id},
    )
    evaluations = evaluate_all(
        payload.events,
        now=resolve_now(payload.now),
        household_id=household_id,
        flags=flags,
        settings=resolve_settings(payload),
        baby_name=payload.baby_name,
    )
    suggestion = next((item.suggestion for item in evaluations if item.suggestion), None)
    return NextSuggestionResponse(suggestion=suggestion, evaluations=evaluations)


@router.post("/dismiss", response_model=SuggestionFlagResponse)
async def dismiss_suggestion_endpoint(
    payload: SuggestionFlagPayload,
    flags: FlagStore = Depends(get_flag_store),
) -> SuggestionFlagResponse:
    key = dismiss_suggestion(
        payload.sub_pattern,
        household_id=resolve_household_id(payload.household_id),
        flags=flags,
        now=resolve_now(payload.now),
        settings=resolve_settings(payload),
    )
    return SuggestionFlagResponse(key=key)


@router.post("/accept", response_model=SuggestionFlagResponse)
async def accept_suggestion_endpoint(
    payload: SuggestionFlagPayload,
    flags: FlagStore = Depends(get_flag_store),
) -> SuggestionFlagResponse:
    key = accept_suggestion(
        payload.sub_pattern,
        household_id=resolve_household_id(payload.household_id),
        flags=flags,
        now=resolve_now(payload.now),
        settings=resolve_settings(payload),
    )
    return SuggestionFlagResponse(key=key)
