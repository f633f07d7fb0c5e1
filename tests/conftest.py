"""Shared test fixtures and helpers."""

import json
import threading
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker

from booking_engine.database import build_engine, init_db
from booking_engine.models.tables import ProviderProfiles, Users
from booking_engine.services import availability_store, booking_ledger, events, wallet

# Fixed store clock for service-level tests: Monday 2030-01-07 09:00 UTC
NOW = datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc)
TARGET = date(2030, 1, 9)


class RecordingRedis:
    """Stand-in for the Redis client: records pushed events, can be made to fail."""

    def __init__(self):
        self.pushed: list[tuple[str, dict]] = []
        self.fail = False
        self._lock = threading.Lock()

    def rpush(self, key: str, value: str) -> int:
        if self.fail:
            raise ConnectionError("redis is down")
        with self._lock:
            self.pushed.append((key, json.loads(value)))
            return len(self.pushed)

    def ping(self) -> bool:
        if self.fail:
            raise ConnectionError("redis is down")
        return True

    def types(self) -> list[str]:
        return [event["type"] for _, event in self.pushed]


@pytest.fixture(autouse=True)
def event_log(monkeypatch):
    recorder = RecordingRedis()
    monkeypatch.setattr(events, "redis_client", recorder)
    return recorder


@pytest.fixture
def engine(tmp_path):
    # File database so worker threads share one store
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ──────────────────────────────────────────────────────────────────────────────
# Factories
# ──────────────────────────────────────────────────────────────────────────────

def make_user(db, role: str = "seeker", funds_cents: int = 0, name: Optional[str] = None) -> Users:
    user = Users(
        external_id=f"ext_{uuid.uuid4().hex[:12]}",
        email=f"{uuid.uuid4().hex[:8]}@example.com",
        name=name or role.title(),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    if funds_cents:
        wallet.add_funds(db, user.id, funds_cents)
        db.refresh(user)
    return user


def make_provider(
    db,
    rate_cents: int = 1000,
    weekly: Optional[tuple[time, time]] = (time(9, 0), time(17, 0)),
    **policy,
) -> Users:
    """Verified provider; by default available 09:00-17:00 every day."""
    user = make_user(db, role="provider")
    db.add(ProviderProfiles(
        user_id=user.id,
        title="Career Coach",
        rate_per_15min_cents=rate_cents,
        is_verified=True,
    ))
    db.commit()
    if policy:
        availability_store.set_policy(db, user.id, **policy)
    if weekly:
        for day in range(7):
            availability_store.add_rule(db, user.id, day, weekly[0], weekly[1])
    return user


def book(
    db,
    seeker: Users,
    provider: Users,
    start: time = time(10, 0),
    duration: int = 60,
    on: date = TARGET,
    now: datetime = NOW,
):
    return booking_ledger.create_booking(
        db,
        seeker_id=seeker.id,
        provider_id=provider.id,
        scheduled_date=on,
        start_time=start,
        duration_minutes=duration,
        now=now,
    )


def after_session(on: date = TARGET) -> datetime:
    """A store clock safely past every session on the given date."""
    return datetime.combine(on, time(0, 0), tzinfo=timezone.utc) + timedelta(days=2)


@pytest.fixture
def provider(db):
    return make_provider(db)


@pytest.fixture
def seeker(db):
    return make_user(db, funds_cents=100_00)
