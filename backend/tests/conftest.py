# backend/tests/conftest.py
"""
Shared fixtures.

Each test gets its own in-memory SQLite database. The engine is configured
exactly like the application's SQLite engine (explicit BEGIN, foreign keys)
so SAVEPOINTs behave the way the services expect.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bookingcore.core.config import settings
from bookingcore.database import Base, configure_sqlite_engine

# Import models so Base.metadata is populated for create_all.
import bookingcore.models  # noqa: F401
from bookingcore.models.activity import Activity
from bookingcore.models.session import ActivitySession
from bookingcore.models.venue import Venue

ORG_ID = "org-escape"


class FixedClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def every_day_schedule(**overrides: Any) -> Dict[str, Any]:
    schedule: Dict[str, Any] = {
        "operatingDays": [
            "Monday",
            "Tuesday",
            "Wednesday",
            "Thursday",
            "Friday",
            "Saturday",
            "Sunday",
        ],
        "startTime": "09:00",
        "endTime": "12:00",
        "slotInterval": 60,
        "advanceBooking": 0,
    }
    schedule.update(overrides)
    return schedule


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_sqlite_engine(test_engine)
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    session = sessionmaker(bind=engine, autoflush=False, future=True)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _no_generation_lock(monkeypatch: pytest.MonkeyPatch) -> None:
    """Tests run without Redis; lock behaviour is exercised explicitly where needed."""
    monkeypatch.setattr(settings, "generation_lock_enabled", False)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_venue(db: Session) -> Callable[..., Venue]:
    def _make(organization_id: str = ORG_ID, timezone_name: str = "UTC", **kwargs: Any) -> Venue:
        venue = Venue(
            organization_id=organization_id,
            name=kwargs.pop("name", "Downtown"),
            timezone=timezone_name,
            **kwargs,
        )
        db.add(venue)
        db.commit()
        return venue

    return _make


@pytest.fixture
def make_activity(db: Session, make_venue: Callable[..., Venue]) -> Callable[..., Activity]:
    def _make(
        venue: Optional[Venue] = None,
        schedule: Optional[Dict[str, Any]] = None,
        capacity: int = 6,
        price: Decimal = Decimal("25.00"),
        **kwargs: Any,
    ) -> Activity:
        venue = venue or make_venue()
        activity = Activity(
            organization_id=venue.organization_id,
            venue_id=venue.id,
            name=kwargs.pop("name", "The Vault"),
            duration_minutes=kwargs.pop("duration_minutes", 60),
            capacity=capacity,
            price=price,
            status=kwargs.pop("status", "active"),
            schedule=schedule,
            **kwargs,
        )
        db.add(activity)
        db.commit()
        return activity

    return _make


@pytest.fixture
def make_session(
    db: Session, make_activity: Callable[..., Activity], clock: FixedClock
) -> Callable[..., ActivitySession]:
    def _make(
        activity: Optional[Activity] = None,
        start_time: Optional[datetime] = None,
        capacity: Optional[int] = None,
        remaining: Optional[int] = None,
        is_closed: bool = False,
    ) -> ActivitySession:
        activity = activity or make_activity()
        start = start_time or clock.now + timedelta(days=2)
        total = capacity if capacity is not None else activity.capacity
        session = ActivitySession(
            activity_id=activity.id,
            venue_id=activity.venue_id,
            organization_id=activity.organization_id,
            start_time=start,
            end_time=start + timedelta(minutes=activity.duration_minutes),
            capacity_total=total,
            capacity_remaining=remaining if remaining is not None else total,
            price_at_generation=activity.price,
            is_closed=is_closed,
        )
        db.add(session)
        db.commit()
        return session

    return _make


@pytest.fixture
def org_id() -> str:
    return ORG_ID


@pytest.fixture
def schedule_factory() -> Callable[..., Dict[str, Any]]:
    return every_day_schedule
