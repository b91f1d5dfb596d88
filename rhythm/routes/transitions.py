from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..schemas import TransitionClaim, TransitionInfo, TransitionVerdict
from ..transitions import detect_transition, parse_transition_claim, validate_transition_claim

router = APIRouter(prefix="/api/v1/transitions", tags=["transitions"])


class DetectPayload(BaseModel):
    daily_nap_counts: List[int] = Field(default_factory=list)


class DetectResponse(BaseModel):
    transition: Optional[TransitionInfo] = None
    note: Optional[str] = None


class ValidatePayload(BaseModel):
    daily_nap_counts: List[int] = Field(default_factory=list)
    claim: Optional[TransitionClaim] = None
    text: Optional[str] = Field(default=None, description='Free text such as "moving from 3 to 2 naps"')


@router.post("/detect", response_model=DetectResponse)
async def detect_transition_endpoint(payload: DetectPayload) -> DetectResponse:
    transition = detect_transition(payload.daily_nap_counts)
    return DetectResponse(transition=transition, note=transition.note if transition else None)


@router.post("/validate", response_model=TransitionVerdict)
async def validate_transition_endpoint(payload: ValidatePayload) -> TransitionVerdict:
    claim = payload.claim or parse_transition_claim(payload.text)
    if claim is None:
        raise HTTPException(status_code=400, detail="No transition claim found")
    return validate_transition_claim(claim, payload.daily_nap_counts)
