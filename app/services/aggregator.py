"""Learning metrics aggregation.

Pure functions turning already-fetched backend rows into the views the
performance dashboard renders: the latest value per metric type, a bounded
trend series per metric type, headline card values and an activity summary.
Nothing here performs I/O or mutates its inputs.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from app.core.errors import InvalidArgument
from app.domain.metrics import (
    ActivitySummary,
    ActivityTypeBreakdown,
    LatestMetricsSnapshot,
    LearningActivityRecord,
    MetricObservation,
    TrendPoint,
)
from app.utils.coerce import format_date

DEFAULT_TREND_WINDOW = 7
DEFAULT_LABEL_FORMAT = "%Y-%m-%d"

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)

ObservationLike = Union[MetricObservation, Mapping[str, Any]]
ActivityLike = Union[LearningActivityRecord, Mapping[str, Any]]


# ----------------
# HELPER FUNCTIONS
# ----------------

def _as_observations(observations: Optional[Iterable[ObservationLike]]) -> List[MetricObservation]:
    """Accept models or raw backend rows; raw rows are validated into models."""
    if not observations:
        return []
    return [
        obs if isinstance(obs, MetricObservation) else MetricObservation.model_validate(obs)
        for obs in observations
    ]


def _as_activity_records(records: Optional[Iterable[ActivityLike]]) -> List[LearningActivityRecord]:
    if not records:
        return []
    return [
        rec if isinstance(rec, LearningActivityRecord) else LearningActivityRecord.model_validate(rec)
        for rec in records
    ]


def _is_later(candidate: Optional[datetime], current: Optional[datetime]) -> bool:
    """Strict "later wins"; a missing date is never later than anything."""
    if candidate is None:
        return False
    if current is None:
        return True
    return candidate > current


def _sort_key(obs: MetricObservation) -> datetime:
    return obs.calculation_date if obs.calculation_date is not None else _EARLIEST


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


# ----------------
# METRICS
# ----------------

def latest_by_type(observations: Optional[Sequence[ObservationLike]]) -> LatestMetricsSnapshot:
    """Return the most recent observation per metric type.

    Single left-to-right scan. An entry is replaced only by an observation
    with a strictly later ``calculation_date``, so on exact ties the first
    one seen wins, and an observation without a usable date never displaces
    one that has a date.

    Example:
        >>> snapshot = latest_by_type([
        ...     {"metric_type": "engagement", "value": 50, "calculation_date": "2024-01-01"},
        ...     {"metric_type": "engagement", "value": 70, "calculation_date": "2024-01-03"},
        ... ])
        >>> snapshot["engagement"].value
        70.0
    """
    latest: Dict[str, MetricObservation] = {}
    for obs in _as_observations(observations):
        current = latest.get(obs.metric_type)
        if current is None or _is_later(obs.calculation_date, current.calculation_date):
            latest[obs.metric_type] = obs
    return latest


def trend(
    observations: Optional[Sequence[ObservationLike]],
    metric_type: str,
    window_size: int = DEFAULT_TREND_WINDOW,
    label_format: str = DEFAULT_LABEL_FORMAT,
) -> List[TrendPoint]:
    """Return the most recent ``window_size`` points of a metric, oldest first.

    Observations of ``metric_type`` are ordered newest first by
    ``calculation_date`` (stable, so equal dates keep their input order and
    rows without a date go last), the first ``window_size`` are kept and the
    window is reversed for display. Input already sorted newest first, as the
    backend returns it, comes out the same as a plain filter/slice/reverse.

    Args:
        observations: Metric rows (models or raw backend rows)
        metric_type: Metric type to chart
        window_size: Maximum number of points, must be a non-negative integer
        label_format: strftime format for point labels

    Returns:
        List of TrendPoint, ascending by date

    Raises:
        InvalidArgument: if window_size is negative or not an integer
    """
    if isinstance(window_size, bool) or not isinstance(window_size, int):
        raise InvalidArgument(f"window_size must be an integer, got {window_size!r}")
    if window_size < 0:
        raise InvalidArgument(f"window_size must be non-negative, got {window_size}")
    if window_size == 0:
        return []

    matching = [obs for obs in _as_observations(observations) if obs.metric_type == metric_type]
    newest_first = sorted(matching, key=_sort_key, reverse=True)
    window = newest_first[:window_size]
    window.reverse()

    return [
        TrendPoint(label=format_date(obs.calculation_date, label_format), value=obs.value)
        for obs in window
    ]


def headline_values(snapshot: LatestMetricsSnapshot, metric_types: Iterable[str]) -> Dict[str, float]:
    """Rounded latest value per requested metric type, 0 when absent."""
    values: Dict[str, float] = {}
    for metric_type in metric_types:
        obs = snapshot.get(metric_type)
        # half-up rounding, as the dashboard cards display it
        values[metric_type] = float(math.floor(obs.value + 0.5)) if obs is not None else 0.0
    return values


# ----------------
# ACTIVITY
# ----------------

def summarize_activity(records: Optional[Sequence[ActivityLike]]) -> ActivitySummary:
    """Aggregate learning activity rows into totals and a per-type breakdown.

    Missing durations count as zero time; missing scores and completion
    percentages are left out of the averages.
    """
    rows = _as_activity_records(records)
    if not rows:
        return ActivitySummary()

    df = pd.DataFrame(
        [
            {
                "activity_type": r.activity_type,
                "duration_seconds": r.duration_seconds,
                "completion_percentage": r.completion_percentage,
                "score": r.score,
                "recorded_at": r.recorded_at,
            }
            for r in rows
        ]
    )
    for col in ("duration_seconds", "completion_percentage", "score"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["duration_seconds"] = df["duration_seconds"].fillna(0.0)

    by_type = (
        df.groupby("activity_type", sort=True)
        .agg(
            count=("activity_type", "size"),
            total_duration_seconds=("duration_seconds", "sum"),
            average_score=("score", "mean"),
        )
        .reset_index()
    )

    dates = [r.recorded_at for r in rows if r.recorded_at is not None]

    return ActivitySummary(
        total_activities=int(len(df)),
        total_duration_seconds=float(df["duration_seconds"].sum()),
        average_score=_optional_float(df["score"].mean()),
        average_completion=_optional_float(df["completion_percentage"].mean()),
        last_activity_at=max(dates) if dates else None,
        by_type={
            row["activity_type"]: ActivityTypeBreakdown(
                count=int(row["count"]),
                total_duration_seconds=float(row["total_duration_seconds"]),
                average_score=_optional_float(row["average_score"]),
            )
            for row in by_type.to_dict(orient="records")
        },
    )
