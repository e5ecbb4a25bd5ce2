from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from services.availability.models.profile import BufferTime
from services.availability.models.slot import AvailabilitySlot
from services.availability.models.time_utils import ensure_utc, load_zone


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


# Hour ranges [start, end) for each bucket
TIME_OF_DAY_HOURS = {
    TimeOfDay.MORNING: (6, 12),
    TimeOfDay.AFTERNOON: (12, 17),
    TimeOfDay.EVENING: (17, 22),
}


class ConflictType(str, Enum):
    BOOKED = "booked"
    BLOCKED = "blocked"
    TENTATIVE = "tentative"
    OUTSIDE_HOURS = "outside_hours"
    HOLIDAY = "holiday"
    EXCEPTION = "exception"


class RecommendationType(str, Enum):
    ALTERNATIVE_TIME = "alternative_time"
    ALTERNATIVE_DURATION = "alternative_duration"
    ALTERNATIVE_USER = "alternative_user"


class QueryPreferences(BaseModel):
    time_of_day: Optional[TimeOfDay] = None
    days_of_week: Optional[List[int]] = None
    max_results: Optional[int] = Field(None, ge=1)
    group_consecutive: bool = False

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and any(not 0 <= day <= 6 for day in v):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6")
        return v


class AvailabilityQuery(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    start_date: datetime
    end_date: datetime
    duration: int = Field(..., ge=1, description="Requested meeting length in minutes")
    meeting_type: Optional[str] = None
    time_zone: Optional[str] = None
    include_unavailable: bool = False
    buffer_time: Optional[BufferTime] = None
    preferences: Optional[QueryPreferences] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_datetime(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            load_zone(v)
        return v

    @model_validator(mode="after")
    def validate_range(self) -> "AvailabilityQuery":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self

    def cache_key(self) -> str:
        prefs = self.preferences.model_dump_json() if self.preferences else ""
        return "|".join(
            [
                ",".join(self.user_ids),
                self.start_date.isoformat(),
                self.end_date.isoformat(),
                str(self.duration),
                self.meeting_type or "",
                self.time_zone or "",
                str(self.include_unavailable),
                prefs,
            ]
        )


class Conflict(BaseModel):
    start_date_time: datetime
    end_date_time: datetime
    reason: str
    type: ConflictType


class Recommendation(BaseModel):
    type: RecommendationType
    suggestion: str
    confidence: float = Field(..., ge=0, le=1)


class AvailabilityResult(BaseModel):
    user_id: str
    user_name: str
    total_available_slots: int
    slots: List[AvailabilitySlot] = Field(default_factory=list)
    conflicts: List[Conflict] = Field(default_factory=list)
    next_available: Optional[datetime] = None
    recommendations: List[Recommendation] = Field(default_factory=list)


class BulkOptimization(BaseModel):
    preferred_users: List[str] = Field(default_factory=list)
    load_balancing: bool = False
    cost_optimization: bool = False
    time_optimization: bool = False


class BulkConstraints(BaseModel):
    max_results_per_query: int = Field(50, ge=0)
    include_alternatives: bool = True
    group_results: bool = False


class BulkAvailabilityRequest(BaseModel):
    queries: List[AvailabilityQuery] = Field(..., min_length=1)
    optimization: BulkOptimization = Field(default_factory=BulkOptimization)
    constraints: BulkConstraints = Field(default_factory=BulkConstraints)
