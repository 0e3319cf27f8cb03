"""Redis connection and the query cache for backend reads.

The cache is an explicit collaborator: services receive a ``QueryCache``
instance and must call ``invalidate`` after every mutation. Entries are keyed
by query kind and the ``(subject_id, scope_id)`` pair.

When Redis is unavailable the cache degrades to misses; a cache problem is
logged and never fails the request.
"""
import json
from datetime import timedelta
from typing import Any, Iterable, Optional

import redis

from app.core.logging import get_logger
from app.core.config import settings

logger = get_logger(__name__)

PERFORMANCE_METRICS = "performance-metrics"
LEARNING_ANALYTICS = "learning-analytics"
NOTIFICATIONS = "notifications"

QUERY_KINDS = (PERFORMANCE_METRICS, LEARNING_ANALYTICS, NOTIFICATIONS)


def get_redis_client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    db: Optional[int] = None,
    password: Optional[str] = None,
) -> Optional[redis.Redis]:
    """Create a Redis client with its own connection pool.

    Uses settings from environment variables if not explicitly provided.
    Returns None if Redis is not reachable (graceful fallback).
    """
    host = host or settings.redis_host
    port = port or settings.redis_port
    db = db if db is not None else settings.redis_db
    password = password or settings.redis_password

    logger.info(f"Initializing Redis connection pool: {host}:{port}")
    try:
        pool = redis.ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True,
            max_connections=50,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        client = redis.Redis(connection_pool=pool)
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable, caching disabled: {e}")
        return None

    logger.info("Redis connection established successfully")
    return client


class QueryCache:
    """Redis-backed cache of backend query results.

    Example:
        >>> cache = QueryCache(redis_client, ttl_minutes=5)
        >>> cache.set(PERFORMANCE_METRICS, "student_101", "class_4b", rows)
        >>> cache.get(PERFORMANCE_METRICS, "student_101", "class_4b")
        >>> cache.invalidate("student_101", "class_4b")
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis],
        ttl_minutes: int = 5,
        key_prefix: str = "query:"
    ):
        self.redis = redis_client
        self.ttl = timedelta(minutes=ttl_minutes)
        self.key_prefix = key_prefix

        if self.redis is None:
            logger.info("QueryCache running without Redis; every lookup is a miss")
        else:
            logger.info(f"QueryCache initialized with {ttl_minutes} minute TTL")

    @property
    def enabled(self) -> bool:
        return self.redis is not None

    def make_key(self, kind: str, subject_id: str, scope_id: Optional[str] = None) -> str:
        """Full Redis key for a query kind and (subject, scope) pair."""
        return f"{self.key_prefix}{kind}:{subject_id}:{scope_id or '*'}"

    def get(self, kind: str, subject_id: str, scope_id: Optional[str] = None) -> Optional[Any]:
        """Return the cached JSON value, or None on miss or cache failure."""
        if self.redis is None:
            return None

        key = self.make_key(kind, subject_id, scope_id)
        try:
            data = self.redis.get(key)
        except redis.RedisError as e:
            logger.error(f"Error reading cache {key}: {e}", extra={"cache_key": key})
            return None

        if data is None:
            logger.debug(f"Cache miss: {key}")
            return None

        logger.debug(f"Cache hit: {key}")
        try:
            return json.loads(data)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry: {key}", extra={"cache_key": key})
            return None

    def set(self, kind: str, subject_id: str, scope_id: Optional[str], value: Any) -> bool:
        """Store a JSON-serializable value with the cache TTL."""
        if self.redis is None:
            return False

        key = self.make_key(kind, subject_id, scope_id)
        try:
            self.redis.setex(key, self.ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.error(f"Error setting cache {key}: {e}", extra={"cache_key": key})
            return False

        logger.debug(f"Cache set: {key} (TTL: {self.ttl})")
        return True

    def invalidate(
        self,
        subject_id: str,
        scope_id: Optional[str] = None,
        kinds: Iterable[str] = QUERY_KINDS
    ) -> int:
        """Drop cached queries of the given kinds for one (subject, scope) pair.

        Returns:
            Number of keys deleted
        """
        if self.redis is None:
            return 0

        keys = [self.make_key(kind, subject_id, scope_id) for kind in kinds]
        try:
            deleted = int(self.redis.delete(*keys))
        except redis.RedisError as e:
            logger.error(f"Error invalidating cache for {subject_id}/{scope_id}: {e}")
            return 0

        logger.info(
            f"Invalidated {deleted} cache entries for {subject_id}/{scope_id}",
            extra={"user_id": subject_id, "class_id": scope_id}
        )
        return deleted

    def invalidate_subject(self, subject_id: str) -> int:
        """Drop every cached query of a subject, across all scopes."""
        if self.redis is None:
            return 0

        pattern = f"{self.key_prefix}*:{subject_id}:*"
        try:
            keys = list(self.redis.scan_iter(match=pattern))
            deleted = int(self.redis.delete(*keys)) if keys else 0
        except redis.RedisError as e:
            logger.error(f"Error clearing cache pattern {pattern}: {e}")
            return 0

        logger.info(f"Cleared {deleted} cache entries matching: {pattern}")
        return deleted
