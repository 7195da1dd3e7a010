from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.core.config import AppConfig
from app.events.commands import EventCommandService
from app.events.query import EventQueryEngine
from app.events.schemas import EventCreate
from app.events.store import EventStore
from app.storage.database import build_engine, get_session_factory, init_db, reset_engine
from app.storage.models import User


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False, future=True)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def make_user(session):
    def _make(email="owner@example.com", **prefs):
        user = User(email=email, name=email.split("@")[0], **prefs)
        session.add(user)
        session.commit()
        return user
    return _make


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def store(session):
    return EventStore(session)


@pytest.fixture
def commands(store):
    return EventCommandService(store)


@pytest.fixture
def queries(store, config):
    return EventQueryEngine(store, config)


@pytest.fixture
def make_event(commands):
    def _make(owner_id, start, hours=1, **fields):
        data = EventCreate(title=fields.pop("title", "Event"), start=start, end=start + timedelta(hours=hours), **fields)
        return commands.create_event(owner_id, data)
    return _make


@pytest.fixture
def utc():
    def _utc(*args):
        return datetime(*args, tzinfo=timezone.utc)
    return _utc


@pytest.fixture
def api(monkeypatch):
    """TestClient over a fresh in-memory database, plus a helper to add users."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setenv("RUN_SCHEDULER", "0")
    reset_engine()

    from app.main import app

    with TestClient(app) as client:
        def add_user(email="owner@example.com", **prefs):
            with get_session_factory()() as s:
                user = User(email=email, name=email.split("@")[0], **prefs)
                s.add(user)
                s.commit()
                return user.id

        client.add_user = add_user
        yield client
    app.state.scheduler = None
    reset_engine()
