from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(activity_id: str) -> str:
    return f"generation:{activity_id}:mutex"


def _namespaced_key(key: str) -> str:
    return f"bookingcore:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("generation_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_generation_lock(activity_id: str, ttl_s: int) -> bool:
    """
    Try to take the per-activity generation mutex.

    Fails open (returns True) when Redis is unreachable; a second writer then
    at worst hits the (activity_id, start_time) unique constraint.
    """
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_generation_lock("acquire", "redis_unavailable")
        logger.warning(
            "generation_lock_redis_unavailable",
            extra={"activity_id": activity_id},
        )
        return True
    try:
        acquired = bool(
            client.set(_namespaced_key(_lock_key(activity_id)), str(time.time()), nx=True, ex=ttl_s)
        )
    except Exception as exc:
        prometheus_metrics.record_generation_lock("acquire", "error")
        logger.warning(
            "generation_lock_acquire_failed",
            extra={
                "activity_id": activity_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True
    prometheus_metrics.record_generation_lock("acquire", "success" if acquired else "blocked")
    return acquired


def release_generation_lock(activity_id: str) -> None:
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_generation_lock("release", "redis_unavailable")
        return
    try:
        deleted = client.delete(_namespaced_key(_lock_key(activity_id)))
        prometheus_metrics.record_generation_lock("release", "success" if deleted else "not_found")
    except Exception as exc:
        prometheus_metrics.record_generation_lock("release", "error")
        logger.warning(
            "generation_lock_release_failed",
            extra={
                "activity_id": activity_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def generation_lock(activity_id: str, ttl_s: Optional[int] = None) -> Iterator[bool]:
    """Hold the generation mutex for the duration of the block; yields whether it was acquired."""
    if not settings.generation_lock_enabled:
        yield True
        return
    acquired = acquire_generation_lock(activity_id, ttl_s or settings.generation_lock_ttl_seconds)
    try:
        yield acquired
    finally:
        if acquired:
            release_generation_lock(activity_id)
