"""Learning analytics service.

Composes the backend client, the query cache and the aggregation functions
into what the performance dashboard and activity tracking need. The cache is
injected; recording an activity invalidates the cached reads of the same
(student, class) pair.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import Settings, settings as default_settings
from app.core.logging import get_logger, LogTimer
from app.domain.metrics import (
    LatestMetricsSnapshot,
    LearningActivityRecord,
    MetricObservation,
    PerformanceDashboard,
    TrendPoint,
)
from app.infrastructure.backend import BackendClient
from app.infrastructure.redis import LEARNING_ANALYTICS, PERFORMANCE_METRICS, QueryCache
from app.services.aggregator import headline_values, latest_by_type, summarize_activity, trend

logger = get_logger(__name__, {"service": "analytics"})


class LearningAnalyticsService:
    """Performance metrics, learning activity and the dashboard built from them."""

    def __init__(self, backend: BackendClient, cache: QueryCache, settings: Settings = default_settings):
        self.backend = backend
        self.cache = cache
        self.settings = settings

    def _cached_rows(self, kind: str, user_id: str, class_id: str, fetch) -> List[Dict[str, Any]]:
        rows = self.cache.get(kind, user_id, class_id)
        if rows is not None:
            return rows

        rows = fetch()
        self.cache.set(kind, user_id, class_id, rows)
        return rows

    # ----------------
    # QUERIES
    # ----------------

    def get_metrics(self, user_id: str, class_id: Optional[str]) -> List[MetricObservation]:
        """Most recent performance metrics of a student in a class, newest first."""
        if not class_id:
            return []

        rows = self._cached_rows(
            PERFORMANCE_METRICS,
            user_id,
            class_id,
            lambda: self.backend.fetch_performance_metrics(
                user_id, class_id, limit=self.settings.metrics_query_limit
            ),
        )
        return [MetricObservation.model_validate(row) for row in rows]

    def get_activity(self, user_id: str, class_id: Optional[str]) -> List[LearningActivityRecord]:
        """Most recent learning activity rows of a student in a class, newest first."""
        if not class_id:
            return []

        rows = self._cached_rows(
            LEARNING_ANALYTICS,
            user_id,
            class_id,
            lambda: self.backend.fetch_learning_analytics(
                user_id, class_id, limit=self.settings.analytics_query_limit
            ),
        )
        return [LearningActivityRecord.model_validate(row) for row in rows]

    def latest_metrics(self, user_id: str, class_id: Optional[str]) -> LatestMetricsSnapshot:
        return latest_by_type(self.get_metrics(user_id, class_id))

    def metric_trend(
        self,
        user_id: str,
        class_id: Optional[str],
        metric_type: str,
        window_size: Optional[int] = None
    ) -> List[TrendPoint]:
        """Trend series of one metric type.

        Raises:
            InvalidArgument: if window_size is negative
        """
        window = self.settings.trend_window if window_size is None else window_size
        return trend(
            self.get_metrics(user_id, class_id),
            metric_type,
            window,
            label_format=self.settings.trend_label_format,
        )

    def dashboard(self, user_id: str, class_id: str) -> PerformanceDashboard:
        """Headline cards, latest snapshot, charted trends and activity summary."""
        with LogTimer(logger, "build_dashboard", user_id=user_id, class_id=class_id):
            metrics = self.get_metrics(user_id, class_id)
            activity = self.get_activity(user_id, class_id)
            snapshot = latest_by_type(metrics)

            return PerformanceDashboard(
                subject_id=user_id,
                scope_id=class_id,
                headline=headline_values(snapshot, self.settings.headline_metrics),
                latest=snapshot,
                trends={
                    metric_type: trend(
                        metrics,
                        metric_type,
                        self.settings.trend_window,
                        label_format=self.settings.trend_label_format,
                    )
                    for metric_type in self.settings.charted_metrics
                },
                activity=summarize_activity(activity),
                generated_at=datetime.now(timezone.utc),
            )

    # ----------------
    # MUTATIONS
    # ----------------

    def record_activity(self, user_id: str, event) -> None:
        """Record a learning activity event, then drop the stale cached reads.

        Args:
            user_id: Student the activity belongs to
            event: An ActivityEvent variant
        """
        self.backend.record_learning_activity(user_id, event.to_rpc_params())
        logger.info(
            f"Recorded {event.activity_type} activity",
            extra={"user_id": user_id, "class_id": event.class_id, "activity_type": event.activity_type}
        )
        self.cache.invalidate(user_id, event.class_id, kinds=(LEARNING_ANALYTICS, PERFORMANCE_METRICS))
