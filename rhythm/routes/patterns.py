from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..cache import AnalysisCache, fingerprint
from ..dependencies import EngineRequest, get_analysis_cache, resolve_now, resolve_settings
from ..pattern_analyzer import analyze_all
from ..schemas import PatternStatistics

router = APIRouter(prefix="/api/v1", tags=["patterns"])
logger = logging.getLogger(__name__)


class PatternOut(BaseModel):
    statistics: Optional[PatternStatistics] = None
    confidence_label: Optional[str] = None


class PatternsResponse(BaseModel):
    patterns: Dict[str, PatternOut]


@router.post("/patterns", response_model=PatternsResponse)
async def analyze_patterns(
    payload: EngineRequest,
    cache: AnalysisCache = Depends(get_analysis_cache),
) -> PatternsResponse:
    """Learned timing for every sub-pattern over the trailing two weeks."""

    now = resolve_now(payload.now)
    settings = resolve_settings(payload)
    logger.info(
        "pattern analysis request",
        extra={"method": "POST", "path": "/api/v1/patterns", "event_count": len(payload.events)},
    )
    key = fingerprint(payload.events, now=now, settings=settings, scope="patterns")
    results = cache.get_or_compute(key, lambda: analyze_all(payload.events, now=now, settings=settings))
    return PatternsResponse(
        patterns={
            sub_pattern.value: PatternOut(
                statistics=stats,
                confidence_label=stats.confidence_label if stats else None,
            )
            for sub_pattern, stats in results.items()
        }
    )
