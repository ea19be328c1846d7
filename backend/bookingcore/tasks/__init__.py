# backend/bookingcore/tasks/__init__.py
"""
Background jobs for the booking engine.

The Celery app is created lazily by importing tasks.celery_app; the plain
run_* functions in session_tasks can be called directly with a Session.
"""
