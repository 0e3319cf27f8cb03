"""Client for the hosted backend's REST API.

The backend (a PostgREST-style managed database) owns persistence, row-level
authorization and the aggregation jobs that produce performance metrics. This
client only issues the reads and writes the portal needs; every failure is
raised as ``BackendError``.
"""
from typing import Any, Dict, List, Optional

import requests

from app.core.config import Settings, settings as default_settings
from app.core.errors import BackendError
from app.core.logging import get_logger, LogTimer

logger = get_logger(__name__, {"service": "backend"})


class BackendClient:
    """Thin wrapper around ``requests.Session`` for the backend REST endpoints.

    Example:
        >>> client = BackendClient.from_settings(settings)
        >>> rows = client.fetch_performance_metrics("student_101", "class_4b")
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "BackendClient":
        return cls(
            base_url=settings.backend_url,
            api_key=settings.backend_api_key,
            timeout=settings.backend_timeout_seconds,
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/rest/v1/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        with LogTimer(logger, operation):
            try:
                response = self.session.request(
                    method,
                    self._url(path),
                    params=params,
                    json=json,
                    headers=headers,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise BackendError(f"{operation} failed: {e}", operation=operation) from e

            if response.status_code >= 400:
                raise BackendError(
                    f"{operation} failed with HTTP {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                    operation=operation,
                )

            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise BackendError(
                    f"{operation} returned a non-JSON body",
                    status_code=response.status_code,
                    operation=operation,
                ) from e

    def _select(self, table: str, operation: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        data = self._request("GET", table, operation, params={"select": "*", **params})
        if data is None:
            return []
        if not isinstance(data, list):
            raise BackendError(f"{operation} returned {type(data).__name__}, expected a list", operation=operation)
        return data

    # -----------------
    # LEARNING ANALYTICS
    # -----------------

    def fetch_performance_metrics(self, user_id: str, class_id: str, limit: int = 30) -> List[Dict[str, Any]]:
        """Most recent performance metric rows, newest first."""
        return self._select(
            "performance_metrics",
            "fetch_performance_metrics",
            {
                "user_id": f"eq.{user_id}",
                "class_id": f"eq.{class_id}",
                "order": "calculation_date.desc",
                "limit": limit,
            },
        )

    def fetch_learning_analytics(self, user_id: str, class_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent learning activity rows, newest first."""
        return self._select(
            "learning_analytics",
            "fetch_learning_analytics",
            {
                "user_id": f"eq.{user_id}",
                "class_id": f"eq.{class_id}",
                "order": "recorded_at.desc",
                "limit": limit,
            },
        )

    def record_learning_activity(self, user_id: str, params: Dict[str, Any]) -> None:
        """Call the ``record_learning_activity`` RPC with ``p_*`` parameters.

        This service calls with its own key, so the student is named
        explicitly through ``p_user_id``.
        """
        payload = {"p_user_id": user_id, **params}
        self._request("POST", "rpc/record_learning_activity", "record_learning_activity", json=payload)

    # -----------------
    # NOTIFICATIONS
    # -----------------

    def fetch_notifications(self, recipient_id: str) -> List[Dict[str, Any]]:
        return self._select(
            "notifications",
            "fetch_notifications",
            {"recipient_id": f"eq.{recipient_id}", "order": "created_at.desc"},
        )

    def mark_notification_read(self, recipient_id: str, notification_id: str) -> List[Dict[str, Any]]:
        """Mark one of the recipient's notifications as read.

        The service key bypasses row-level security, so the update is scoped
        by ``recipient_id`` here. Returns the updated rows; an empty list means
        no such notification for that recipient.
        """
        data = self._request(
            "PATCH",
            "notifications",
            "mark_notification_read",
            params={"id": f"eq.{notification_id}", "recipient_id": f"eq.{recipient_id}"},
            json={"is_read": True},
            headers={"Prefer": "return=representation"},
        )
        return data or []
