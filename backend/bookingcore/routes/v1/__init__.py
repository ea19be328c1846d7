# backend/bookingcore/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import activities, bookings, payments, sessions

__all__ = ["activities", "bookings", "payments", "sessions"]
