"""Pydantic schemas shared across the engine and the API."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ActivityKind(str, Enum):
    FEED = "feed"
    NAP = "nap"
    DIAPER = "diaper"
    NOTE = "note"


class ActivityAttributes(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: Optional[str] = Field(default=None, alias="startTime", description="e.g. 7:30 PM")
    end_time: Optional[str] = Field(default=None, alias="endTime", description="e.g. 6:45 AM")
    duration: Optional[str] = Field(default=None, description="e.g. 1h 30m")
    is_night_sleep: Optional[bool] = Field(default=None, alias="isNightSleep")
    quantity: Optional[str] = Field(default=None, description="Feed amount as entered")
    unit: Optional[str] = Field(default=None, description="oz | ml")
    feed_type: Optional[str] = Field(default=None, alias="feedType", description="bottle | nursing")
    diaper_type: Optional[str] = Field(default=None, alias="diaperType", description="wet | poopy | both")
    note: Optional[str] = None
    date_local: Optional[date] = Field(default=None, description="Local calendar date the caregiver picked")
    offset_minutes: Optional[int] = Field(default=None, description="UTC offset when the event was logged")
    extra: Dict[str, Any] = Field(default_factory=dict)


class ActivityEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    kind: ActivityKind
    logged_at: datetime = Field(alias="loggedAt")
    timezone: Optional[str] = Field(default=None, description="IANA zone the event was logged in")
    attributes: ActivityAttributes = Field(default_factory=ActivityAttributes)


class SubPattern(str, Enum):
    BEDTIME = "nap.bedtime"
    MORNING_WAKE = "nap.morningWake"
    FEED = "feed.any"
    FIRST_DAYTIME_NAP = "nap.firstDaytimeNap"

    @property
    def kind(self) -> ActivityKind:
        return ActivityKind.FEED if self is SubPattern.FEED else ActivityKind.NAP

    @property
    def slug(self) -> str:
        return _SUB_PATTERN_SLUGS[self]


_SUB_PATTERN_SLUGS = {
    SubPattern.BEDTIME: "bedtime",
    SubPattern.MORNING_WAKE: "morning-wake",
    SubPattern.FEED: "default",
    SubPattern.FIRST_DAYTIME_NAP: "first-nap",
}


def confidence_label(confidence: float) -> str:
    """Badge thresholds consumers display next to a learned pattern."""
    if confidence >= 0.75:
        return "high"
    if confidence >= 0.5:
        return "medium"
    return "low"


class PatternStatistics(BaseModel):
    model_config = ConfigDict(frozen=True)

    sub_pattern: SubPattern
    times: List[int] = Field(default_factory=list, description="Minutes of day, unwrapped for bedtime")
    median_minutes: float
    std_dev_minutes: float
    occurrence_count: int
    grace_period_minutes: int
    confidence: float

    @property
    def confidence_label(self) -> str:
        return confidence_label(self.confidence)


class SuggestionState(str, Enum):
    NOT_EVALUATED = "not_evaluated"
    NO_PATTERN = "no_pattern"
    ALREADY_LOGGED = "already_logged"
    BELOW_CONFIDENCE = "below_confidence"
    TOO_EARLY = "too_early"
    DISMISSED = "dismissed"
    RECENTLY_ACCEPTED = "recently_accepted"
    SUGGESTED = "suggested"


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    sub_pattern: SubPattern
    kind: ActivityKind
    suggested_time_label: str
    median_minutes: float
    confidence: float = Field(ge=0.0, le=1.0)
    message: str


class SuggestionEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    sub_pattern: SubPattern
    state: SuggestionState = SuggestionState.NOT_EVALUATED
    statistics: Optional[PatternStatistics] = None
    suggestion: Optional[Suggestion] = None


class TransitionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_naps: int
    to_naps: int
    first_half_mean: float
    second_half_mean: float
    days_analyzed: int

    @property
    def note(self) -> str:
        return f"Moving from {self.from_naps} to {self.to_naps} naps"


class TransitionClaim(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_naps: int = Field(ge=0)
    to_naps: int = Field(ge=0)


class TransitionVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    accepted: bool
    claim: TransitionClaim
    statement: str
    observed_min: Optional[int] = None
    observed_max: Optional[int] = None


class AgeInput(BaseModel):
    weeks: Optional[int] = Field(default=None, ge=0)
    birthdate: Optional[date] = None

    @model_validator(mode="after")
    def _one_signal(self) -> "AgeInput":
        if self.weeks is None and self.birthdate is None:
            raise ValueError("AgeInput needs weeks or birthdate")
        return self


class AgeBaseline(BaseModel):
    model_config = ConfigDict(frozen=True)

    age_start_weeks: int
    age_end_weeks: int
    wake_windows: str
    nap_count: str
    total_sleep: str
    feeds_per_day: str
    bedtime: str
    baseline_naps: int


class SchedulePrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    nap_count_today: int
    confidence: Literal["high", "medium", "low"]
    is_transitioning: bool
    transition_note: Optional[str] = None
    rationale: str
    recent_nap_count: int = 0
    nap_variance: float = 0.0
    baseline_nap_count: Optional[int] = None
    naps_logged_today: int = 0
    naps_remaining: int = 0


class NextActionIntent(str, Enum):
    FEED_SOON = "FEED_SOON"
    START_WIND_DOWN = "START_WIND_DOWN"
    INDEPENDENT_TIME = "INDEPENDENT_TIME"
    LET_SLEEP_CONTINUE = "LET_SLEEP_CONTINUE"
    HOLD = "HOLD"


class DayProgress(BaseModel):
    feeds_today: int = 0
    naps_today: int = 0
    expected_feeds: Optional[Tuple[int, int]] = None
    expected_naps: Optional[Tuple[int, int]] = None


class NextAction(BaseModel):
    """What the caregiver should most likely do next, and when to ask again."""

    intent: NextActionIntent
    confidence: Literal["high", "medium", "low"]
    reasons: List[str] = Field(default_factory=list)
    reevaluate_in_minutes: int
    minutes_since_last_feed: Optional[int] = None
    minutes_awake: Optional[int] = None
    feed_score: float = 0.0
    sleep_score: float = 0.0
    is_night: bool = False
    next_feed_at: Optional[datetime] = None
    next_nap_window_start: Optional[datetime] = None
    next_wake_at: Optional[datetime] = None
    day_progress: DayProgress = Field(default_factory=DayProgress)
