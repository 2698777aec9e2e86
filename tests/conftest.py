import asyncio
import fnmatch
import os
from datetime import datetime

# Must be set before the package reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["REFERENCE_TIMEZONE"] = "UTC"
os.environ["BUSY_CACHE_ENABLED"] = "false"

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from mutual_availability.database import Base  # noqa: E402
from mutual_availability.domain.availability.errors import SubjectNotFound  # noqa: E402
from mutual_availability.domain.availability.providers import ProviderRegistry  # noqa: E402
from mutual_availability.domain.availability.schemas import (  # noqa: E402
    BusyInterval,
    DayPreference,
    SchedulingPreferences,
    TimeOfDayWindow,
    Weekday,
)
from mutual_availability.domain.availability.service import AvailabilityOrchestrator  # noqa: E402
from mutual_availability.models import CalendarConnection, Relationship, User  # noqa: E402
from mutual_availability.shared.crypto import encrypt_token  # noqa: E402

# 2024-01-01 is a Monday
MONDAY = datetime(2024, 1, 1).date()
TUESDAY = datetime(2024, 1, 2).date()
FIXED_NOW = datetime(2023, 12, 25, 0, 0)


def busy(start: datetime, end: datetime, **kwargs) -> BusyInterval:
    return BusyInterval(start=start, end=end, **kwargs)


def monday_preferences(start_hour=9, end_hour=17, **kwargs) -> SchedulingPreferences:
    return SchedulingPreferences(
        day_preferences=[
            DayPreference(
                weekday=Weekday.MONDAY,
                windows=[TimeOfDayWindow(start_hour=start_hour, end_hour=end_hour)],
            )
        ],
        **kwargs,
    )


class FakeGateway:
    """In-memory ProviderGateway; intervals are keyed by user_id"""

    def __init__(self, intervals=None, error=None, delay=0.0):
        self.intervals = intervals or {}
        self.error = error
        self.delay = delay
        self.calls = []

    async def fetch_busy_intervals(self, user_id, provider, start, end):
        self.calls.append((user_id, provider, start, end))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.intervals.get(user_id, []))


class FakeDirectory:
    """In-memory SubjectDirectory"""

    def __init__(self, users=(), relationships=None, connections=None, preferences=None):
        self.users = set(users)
        self.relationships = relationships or {}
        self.connections = connections or {}
        self.preferences = dict(preferences or {})

    def relationship_user_ids(self, relationship_id):
        if relationship_id not in self.relationships:
            raise SubjectNotFound(f"Relationship {relationship_id} not found or not active")
        return list(self.relationships[relationship_id])

    def resolve_user_ids(self, subject):
        if subject.relationship_id:
            return self.relationship_user_ids(subject.relationship_id)
        user_ids = [subject.user_id] if subject.user_id else list(subject.user_ids or [])
        if not user_ids or any(u not in self.users for u in user_ids):
            raise SubjectNotFound()
        return list(dict.fromkeys(user_ids))

    def calendar_pairs(self, user_ids):
        return [(u, p) for u in user_ids for p in self.connections.get(u, [])]

    def get_preferences(self, owner_key):
        return self.preferences.get(owner_key)

    def save_preferences(self, owner_key, preferences):
        self.preferences[owner_key] = preferences
        return preferences


class FakeRedis:
    """Just enough of redis.Redis for the cache"""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def keys(self, pattern):
        return [k for k in self.store if fnmatch.fnmatch(k, pattern)]

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_orchestrator(fixed_clock):
    def _make(directory, gateways=None, clock=None, **kwargs):
        return AvailabilityOrchestrator(
            registry=ProviderRegistry(gateways or {}),
            directory=directory,
            clock=clock or fixed_clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db_session):
    """Two active partners, one inactive user, an active and a pending relationship"""
    db_session.add_all(
        [
            User(id="u1", display_name="Alex"),
            User(id="u2", display_name="Sam"),
            User(id="u3", display_name="Former", is_active=False),
            User(id="u4", display_name="Robin"),
        ]
    )
    db_session.add_all(
        [
            Relationship(id="r1", initiator_id="u1", partner_id="u2", status="active"),
            Relationship(id="r2", initiator_id="u4", partner_id=None, status="pending"),
            Relationship(id="r3", initiator_id="u4", partner_id="u3", status="active"),
        ]
    )
    db_session.add_all(
        [
            CalendarConnection(
                user_id="u1",
                provider="google",
                access_token=encrypt_token("google-token-u1"),
                calendar_id="alex@example.com",
            ),
            CalendarConnection(
                user_id="u1",
                provider="outlook",
                access_token=encrypt_token("outlook-token-u1"),
                use_for_availability=False,
            ),
            CalendarConnection(
                user_id="u2",
                provider="outlook",
                access_token=encrypt_token("outlook-token-u2"),
                calendar_id="sam@example.com",
            ),
        ]
    )
    db_session.commit()
    return db_session
