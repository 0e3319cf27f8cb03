"""Pytest configuration and shared fixtures."""
import fnmatch
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BACKEND_URL", "https://backend.test")
os.environ.setdefault("BACKEND_API_KEY", "test-key")

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient


class FakeRedis:
    """In-memory stand-in for the few Redis commands the cache uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    def scan_iter(self, match="*"):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def query_cache(fake_redis):
    from app.infrastructure.redis import QueryCache
    return QueryCache(fake_redis, ttl_minutes=5, key_prefix="query:")


@pytest.fixture
def metric_rows():
    """Performance metric rows as the backend returns them, newest first."""
    return [
        {"id": "m1", "metric_type": "engagement", "value": 70, "calculation_date": "2024-01-03T00:00:00Z",
         "class_id": "class_4b", "user_id": "student_101"},
        {"id": "m2", "metric_type": "progress", "value": "45.5", "calculation_date": "2024-01-03T00:00:00Z",
         "class_id": "class_4b", "user_id": "student_101"},
        {"id": "m3", "metric_type": "engagement", "value": 60, "calculation_date": "2024-01-02T00:00:00Z",
         "class_id": "class_4b", "user_id": "student_101"},
        {"id": "m4", "metric_type": "comprehension", "value": 88.4, "calculation_date": "2024-01-02T00:00:00Z",
         "class_id": "class_4b", "user_id": "student_101"},
        {"id": "m5", "metric_type": "engagement", "value": 50, "calculation_date": "2024-01-01T00:00:00Z",
         "class_id": "class_4b", "user_id": "student_101"},
    ]


@pytest.fixture
def activity_rows():
    """Learning analytics rows as the backend returns them, newest first."""
    return [
        {"id": "a1", "activity_type": "quiz_attempt", "class_id": "class_4b", "user_id": "student_101",
         "duration_seconds": 300, "score": 80, "completion_percentage": None,
         "recorded_at": "2024-01-03T10:00:00Z"},
        {"id": "a2", "activity_type": "video_watch", "class_id": "class_4b", "user_id": "student_101",
         "duration_seconds": 600, "score": None, "completion_percentage": 100,
         "recorded_at": "2024-01-02T09:00:00Z"},
        {"id": "a3", "activity_type": "quiz_attempt", "class_id": "class_4b", "user_id": "student_101",
         "duration_seconds": None, "score": 60, "completion_percentage": 50,
         "recorded_at": "2024-01-01T08:00:00Z"},
    ]


@pytest.fixture
def notification_rows():
    return [
        {"id": "n1", "recipient_id": "student_101", "sender_id": "teacher_1", "title": "Grade posted",
         "message": "Quiz 2 graded", "type": "grade", "is_read": False, "created_at": "2024-01-03T12:00:00Z"},
        {"id": "n2", "recipient_id": "student_101", "sender_id": None, "title": "Welcome",
         "message": None, "type": None, "is_read": None, "created_at": "2024-01-01T12:00:00Z"},
        {"id": "n3", "recipient_id": "student_101", "sender_id": "teacher_1", "title": "New assignment",
         "message": "Essay due Friday", "type": "assignment", "is_read": True, "created_at": "2023-12-30T12:00:00Z"},
    ]


@pytest.fixture
def mock_backend(metric_rows, activity_rows, notification_rows):
    """BackendClient double returning the fixture rows."""
    from app.infrastructure.backend import BackendClient
    backend = Mock(spec=BackendClient)
    backend.fetch_performance_metrics.return_value = metric_rows
    backend.fetch_learning_analytics.return_value = activity_rows
    backend.fetch_notifications.return_value = notification_rows
    backend.record_learning_activity.return_value = None
    backend.mark_notification_read.side_effect = lambda recipient_id, notification_id: [
        dict(row, is_read=True) for row in notification_rows
        if row["id"] == notification_id and row["recipient_id"] == recipient_id
    ]
    return backend


@pytest.fixture
def test_client(mock_backend, query_cache):
    """FastAPI test client wired to the mock backend and in-memory cache."""
    from main import app
    from app.api.routes import get_backend, get_query_cache

    app.dependency_overrides[get_backend] = lambda: mock_backend
    app.dependency_overrides[get_query_cache] = lambda: query_cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
