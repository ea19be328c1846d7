# backend/bookingcore/tasks/celery_app.py
"""
Celery application configuration for the booking engine.

Redis is both broker and result backend. Beat drives the two periodic jobs:
the daily rolling-window extension and the pending-payment expiry sweep.
"""

import logging
import os
from typing import Any, Dict

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from ..core.config import settings
from ..core.request_context import configure_logging

logger = logging.getLogger(__name__)

EXTEND_ROLLING_WINDOW_TASK = "bookingcore.tasks.session_tasks.extend_rolling_window"
EXPIRE_PENDING_BOOKINGS_TASK = "bookingcore.tasks.session_tasks.expire_pending_bookings"


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    """Periodic jobs; times are UTC."""
    return {
        "extend-rolling-window": {
            "task": EXTEND_ROLLING_WINDOW_TASK,
            "schedule": crontab(hour=settings.rolling_window_cron_hour, minute=0),
            "kwargs": {"horizon_days": settings.generation_horizon_days},
            "options": {"queue": "maintenance"},
        },
        "expire-pending-bookings": {
            "task": EXPIRE_PENDING_BOOKINGS_TASK,
            "schedule": crontab(minute="*/5"),
            "options": {"queue": "bookings"},
        },
    }


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    # Priority: CELERY_BROKER_URL -> settings.redis_url
    broker_url = os.getenv("CELERY_BROKER_URL") or settings.redis_url
    result_backend = os.getenv("CELERY_RESULT_BACKEND") or broker_url

    celery_app = Celery("bookingcore", broker=broker_url, backend=result_backend)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": "UTC",
            "enable_utc": True,
            "worker_prefetch_multiplier": 1,
            "worker_hijack_root_logger": False,
            "task_soft_time_limit": 300,  # 5 minutes soft limit
            "task_time_limit": 600,  # 10 minutes hard limit
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_default_retry_delay": 60,
        }
    )

    celery_app.conf.imports = ("bookingcore.tasks.session_tasks",)
    celery_app.conf.task_routes = {
        EXTEND_ROLLING_WINDOW_TASK: {"queue": "maintenance"},
        EXPIRE_PENDING_BOOKINGS_TASK: {"queue": "bookings"},
    }
    celery_app.conf.beat_schedule = get_beat_schedule()

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Route worker logs through the application's format and context filter."""
    configure_logging()


celery_app = create_celery_app()
