"""Request-scoped helpers shared by the API routers."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import List, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field, ValidationError

from .cache import AnalysisCache
from .config import CONFIG, EngineSettings
from .flag_store import FlagStore, SqliteFlagStore
from .schemas import ActivityEvent

logger = logging.getLogger(__name__)


class EngineRequest(BaseModel):
    events: List[ActivityEvent] = Field(default_factory=list)
    now: Optional[datetime] = Field(default=None, description="Evaluation instant; defaults to server time")
    night_start_hour: Optional[int] = None
    night_end_hour: Optional[int] = None
    timezone: Optional[str] = Field(default=None, description="Caregiver IANA timezone")


@lru_cache(maxsize=1)
def get_flag_store() -> FlagStore:
    store = SqliteFlagStore(CONFIG.resolved_database_path)
    purged = store.purge_expired()
    logger.info("flag store ready", extra={"path": str(CONFIG.resolved_database_path), "purged": purged})
    return store


@lru_cache(maxsize=1)
def get_analysis_cache() -> AnalysisCache:
    return AnalysisCache()


def resolve_now(value: Optional[datetime]) -> datetime:
    return value or datetime.now(tz=timezone.utc)


def resolve_settings(payload: EngineRequest) -> EngineSettings:
    overrides = {
        key: value
        for key, value in {
            "night_start_hour": payload.night_start_hour,
            "night_end_hour": payload.night_end_hour,
            "timezone": payload.timezone,
        }.items()
        if value is not None
    }
    if not overrides:
        return CONFIG.engine
    try:
        return EngineSettings(**{**CONFIG.engine.model_dump(), **overrides})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid engine settings: {exc.errors()[0]['msg']}")


def resolve_household_id(value: Optional[str]) -> str:
    household_id = (value or "").strip()
    if not household_id or ":" in household_id:
        raise HTTPException(status_code=400, detail="Invalid household_id")
    return household_id
