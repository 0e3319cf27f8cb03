"""Domain models for performance metrics and learning activity records."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.utils.coerce import coerce_number, parse_timestamp


class MetricObservation(BaseModel):
    """One recorded measurement of a named metric for a student in a class.

    Rows are produced by the backend's aggregation job and are read-only here.
    ``value`` falls back to 0.0 and ``calculation_date`` to None when the row
    is malformed.
    """
    id: Optional[str] = None
    metric_type: str
    value: float = 0.0
    calculation_date: Optional[datetime] = None
    scope_id: str = Field(default="", alias="class_id")
    subject_id: str = Field(default="", alias="user_id")

    class Config:
        frozen = True
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "7c1e",
                "metric_type": "engagement",
                "value": 72.5,
                "calculation_date": "2024-01-03T00:00:00Z",
                "class_id": "class_4b",
                "user_id": "student_101"
            }
        }

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> float:
        return coerce_number(v)

    @field_validator("calculation_date", mode="before")
    @classmethod
    def _parse_date(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)


class TrendPoint(BaseModel):
    """A single chart point: formatted date label and value."""
    label: str
    value: float

    class Config:
        frozen = True


# metric_type -> latest observation of that type
LatestMetricsSnapshot = Dict[str, MetricObservation]


class LearningActivityRecord(BaseModel):
    """A learning activity row as stored by the backend."""
    id: Optional[str] = None
    activity_type: str
    scope_id: str = Field(default="", alias="class_id")
    subject_id: str = Field(default="", alias="user_id")
    lesson_id: Optional[str] = None
    duration_seconds: Optional[float] = None
    completion_percentage: Optional[float] = None
    score: Optional[float] = None
    recorded_at: Optional[datetime] = None

    class Config:
        frozen = True
        populate_by_name = True

    @field_validator("id", "lesson_id", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("duration_seconds", "completion_percentage", "score", mode="before")
    @classmethod
    def _optional_number(cls, v: Any) -> Optional[float]:
        # Missing stays missing; anything present but malformed becomes 0
        if v is None:
            return None
        return coerce_number(v)

    @field_validator("recorded_at", mode="before")
    @classmethod
    def _parse_date(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)


class ActivityTypeBreakdown(BaseModel):
    """Per activity type aggregates."""
    count: int
    total_duration_seconds: float
    average_score: Optional[float] = None


class ActivitySummary(BaseModel):
    """Aggregated view of a student's learning activity in a class."""
    total_activities: int = 0
    total_duration_seconds: float = 0.0
    average_score: Optional[float] = None
    average_completion: Optional[float] = None
    last_activity_at: Optional[datetime] = None
    by_type: Dict[str, ActivityTypeBreakdown] = Field(default_factory=dict)


class PerformanceDashboard(BaseModel):
    """Everything the performance dashboard renders for one student in one class."""
    subject_id: str
    scope_id: str
    headline: Dict[str, float]
    latest: Dict[str, MetricObservation]
    trends: Dict[str, List[TrendPoint]]
    activity: ActivitySummary
    generated_at: datetime
