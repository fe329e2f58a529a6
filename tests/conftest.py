"""Test fixtures: in-memory SQLite, a fresh broadcaster and a mocked notifier."""

from __future__ import annotations

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
for _key in ("CLAUDE_API_KEY", "GEMINI_API_KEY", "DEEPSEEK_API_KEY", "KIMI_API_KEY"):
    os.environ[_key] = ""

from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session, sessionmaker

from schoolops.config.database import build_engine, get_db, init_db
from schoolops.models import Category, User
from schoolops.services.background import drain
from schoolops.services.broadcaster import EventBroadcaster
from schoolops.services.notifier import WhatsAppNotifier, get_notifier
from schoolops.services.presence import PresenceTracker


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = Session(bind=engine)
    yield session
    session.close()


@pytest.fixture
def broadcaster():
    return EventBroadcaster(heartbeat_interval=3600, sweep_interval=3600, stale_timeout=300)


@pytest.fixture
def twilio_client():
    client = MagicMock()
    client.send_message.return_value = "SM00000000000000000000000000000001"
    return client


@pytest.fixture
def notifier(twilio_client):
    return WhatsAppNotifier(client=twilio_client, enabled=True)


@pytest_asyncio.fixture
async def client(engine, broadcaster, notifier):
    """HTTPX async test client against the API app."""
    from schoolops.main import app

    session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.state.broadcaster = broadcaster
    app.state.presence = PresenceTracker()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    await drain()
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db: Session) -> User:
    user = User(name="Grace Admin", phone_number="+15550000001", role="Admin")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def teacher(db: Session) -> User:
    user = User(name="Tom Teacher", phone_number="+15550000002", role="Teacher")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def maintenance_worker(db: Session) -> User:
    user = User(name="Mia Maintenance", phone_number="+15550000003", role="Maintenance")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def maintenance(db: Session) -> Category:
    category = Category(name="Maintenance")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


@pytest.fixture
def discipline(db: Session) -> Category:
    category = Category(name="Discipline")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category
