"""FastAPI routes for learning analytics and notifications.

Routes are synchronous (FastAPI runs them in its thread pool) and receive
their services through dependencies, so tests can override them.
"""
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.config import settings
from app.core.errors import BackendError, InvalidArgument, NotFound
from app.core.logging import get_logger, LogTimer
from app.domain.activity import ActivityEventPayload
from app.domain.metrics import (
    LearningActivityRecord,
    MetricObservation,
    PerformanceDashboard,
    TrendPoint,
)
from app.domain.notification import NotificationList
from app.infrastructure.backend import BackendClient
from app.infrastructure.redis import QueryCache, get_redis_client
from app.services.analytics import LearningAnalyticsService
from app.services.notifications import NotificationService

logger = get_logger(__name__)
router = APIRouter(prefix=settings.api_prefix)


# -----------------
# DEPENDENCIES
# -----------------

@lru_cache(maxsize=1)
def get_backend() -> BackendClient:
    return BackendClient.from_settings(settings)


@lru_cache(maxsize=1)
def get_query_cache() -> QueryCache:
    return QueryCache(
        get_redis_client(),
        ttl_minutes=settings.cache_ttl_minutes,
        key_prefix=settings.cache_key_prefix,
    )


def get_analytics_service(
    backend: BackendClient = Depends(get_backend),
    cache: QueryCache = Depends(get_query_cache),
) -> LearningAnalyticsService:
    return LearningAnalyticsService(backend, cache, settings)


def get_notification_service(
    backend: BackendClient = Depends(get_backend),
    cache: QueryCache = Depends(get_query_cache),
) -> NotificationService:
    return NotificationService(backend, cache)


def _backend_failure(exc: BackendError) -> HTTPException:
    logger.error(f"Backend request failed: {exc}", extra={"operation": exc.operation})
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Backend request failed: {exc}")


# -----------------
# PERFORMANCE METRICS
# -----------------

STUDENT_PATH = "/classes/{class_id}/students/{user_id}"


@router.get(STUDENT_PATH + "/metrics", response_model=List[MetricObservation])
def list_metrics(
    class_id: str,
    user_id: str,
    service: LearningAnalyticsService = Depends(get_analytics_service),
):
    """Most recent performance metric rows, newest first."""
    try:
        return service.get_metrics(user_id, class_id)
    except BackendError as exc:
        raise _backend_failure(exc)


@router.get(STUDENT_PATH + "/metrics/latest", response_model=dict[str, MetricObservation])
def latest_metrics(
    class_id: str,
    user_id: str,
    service: LearningAnalyticsService = Depends(get_analytics_service),
):
    """Latest observation per metric type."""
    try:
        return service.latest_metrics(user_id, class_id)
    except BackendError as exc:
        raise _backend_failure(exc)


@router.get(STUDENT_PATH + "/metrics/{metric_type}/trend", response_model=List[TrendPoint])
def metric_trend(
    class_id: str,
    user_id: str,
    metric_type: str,
    window: Optional[int] = Query(default=None, description="Number of points, defaults to TREND_WINDOW"),
    service: LearningAnalyticsService = Depends(get_analytics_service),
):
    """Chronological trend of one metric type."""
    try:
        return service.metric_trend(user_id, class_id, metric_type, window)
    except InvalidArgument as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except BackendError as exc:
        raise _backend_failure(exc)


@router.get(STUDENT_PATH + "/dashboard", response_model=PerformanceDashboard)
def performance_dashboard(
    class_id: str,
    user_id: str,
    service: LearningAnalyticsService = Depends(get_analytics_service),
):
    """Everything the performance dashboard renders."""
    try:
        return service.dashboard(user_id, class_id)
    except BackendError as exc:
        raise _backend_failure(exc)


# -----------------
# LEARNING ACTIVITY
# -----------------

@router.get(STUDENT_PATH + "/activity", response_model=List[LearningActivityRecord])
def list_activity(
    class_id: str,
    user_id: str,
    service: LearningAnalyticsService = Depends(get_analytics_service),
):
    """Most recent learning activity rows, newest first."""
    try:
        return service.get_activity(user_id, class_id)
    except BackendError as exc:
        raise _backend_failure(exc)


@router.post(STUDENT_PATH + "/activity", status_code=status.HTTP_201_CREATED)
def record_activity(
    class_id: str,
    user_id: str,
    payload: ActivityEventPayload,
    service: LearningAnalyticsService = Depends(get_analytics_service),
):
    """Record a learning activity event for a student.

    Example:
        POST /api/v1/classes/class_4b/students/student_101/activity
        {"activity_type": "video_watch", "class_id": "class_4b", "video_id": "v1"}
    """
    event = payload.root
    if event.class_id != class_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Event class_id '{event.class_id}' does not match path class '{class_id}'"
        )

    with LogTimer(logger, "record_activity", user_id=user_id, class_id=class_id):
        try:
            service.record_activity(user_id, event)
        except BackendError as exc:
            raise _backend_failure(exc)

    return {"status": "recorded", "activity_type": event.activity_type}


# -----------------
# NOTIFICATIONS
# -----------------

@router.get("/users/{user_id}/notifications", response_model=NotificationList)
def list_notifications(
    user_id: str,
    service: NotificationService = Depends(get_notification_service),
):
    """Notifications for a user, newest first, with the unread count."""
    try:
        return service.inbox(user_id)
    except BackendError as exc:
        raise _backend_failure(exc)


@router.post("/users/{user_id}/notifications/{notification_id}/read")
def mark_notification_read(
    user_id: str,
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
):
    try:
        service.mark_as_read(user_id, notification_id)
    except NotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except BackendError as exc:
        raise _backend_failure(exc)
    return {"status": "read", "notification_id": notification_id}
