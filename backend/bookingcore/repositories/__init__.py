# backend/bookingcore/repositories/__init__.py
"""
Repository layer for the booking engine.

Repositories encapsulate data access; services own transactions.
"""

from .activity_repository import ActivityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .customer_repository import CustomerRepository
from .factory import RepositoryFactory
from .session_repository import SessionRepository

__all__ = [
    "ActivityRepository",
    "BaseRepository",
    "BookingRepository",
    "CustomerRepository",
    "RepositoryFactory",
    "SessionRepository",
]
