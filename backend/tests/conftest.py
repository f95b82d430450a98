import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from confedit.main import app
from confedit.deps import get_db
from confedit.auth.models import User, UserRole
from confedit.auth.utils import create_token
from confedit.conferences.models import Conference, ConferenceEditor
from confedit.locks.deps import get_clock
from confedit.locks.manager import LockManager
from confedit.locks.policy import ExpiryPolicy
from confedit.locks.store import SqlLockStore
from confedit.shared.db import Base, make_engine
from confedit.shared.retry import RetryPolicy

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
TTL = timedelta(seconds=900)


class FakeClock:
    """Manually driven clock; ``at(s)`` jumps to T0 + s seconds."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def at(self, seconds: float) -> datetime:
        self.now = T0 + timedelta(seconds=seconds)
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class AllowAll:
    def can_edit(self, user_id, resource_id):
        return True


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def users(db):
    """alice, bob: editors; carol: viewer; root: admin. Ids are stable."""
    rows = {
        "alice": User(id=1, email="alice@example.com", name="Alice", password_hash="x", role=UserRole.editor),
        "bob": User(id=2, email="bob@example.com", name="Bob", password_hash="x", role=UserRole.editor),
        "carol": User(id=3, email="carol@example.com", name="Carol", password_hash="x", role=UserRole.viewer),
        "root": User(id=4, email="root@example.com", name="Root", password_hash="x", role=UserRole.admin),
    }
    db.add_all(rows.values())
    db.commit()
    return rows


@pytest.fixture
def conferences(db, users):
    """42: created by alice, bob assigned. 7: alice only. 9: nobody."""
    db.add_all(
        [
            Conference(id=42, name="PyCon", created_by=1),
            Conference(id=7, name="EuroSciPy", created_by=1),
            Conference(id=9, name="Orphan", created_by=None),
        ]
    )
    db.flush()
    db.add(ConferenceEditor(conference_id=42, user_id=2, assigned_by=4))
    db.commit()
    return [42, 7, 9]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(db):
    return SqlLockStore(db)


@pytest.fixture
def policy():
    return ExpiryPolicy(ttl=TTL, skew_tolerance=timedelta(seconds=2))


@pytest.fixture
def no_wait_retry():
    return RetryPolicy(attempts=3, base_delay=0.0, max_delay=0.0, jitter=False)


@pytest.fixture
def manager(store, policy, clock, users, no_wait_retry):
    return LockManager(store, policy, AllowAll(), clock=clock, retry=no_wait_retry)


@pytest.fixture
def client(session_factory, clock, conferences):
    from fastapi.testclient import TestClient

    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_token(user_id)}"}
