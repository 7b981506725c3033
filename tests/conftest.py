from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.security import get_current_user
from app.db.base import Base, get_db
from app.db.models.booking import utcnow
from app.db.models.service import Service
from app.db.models.user import User
from app.services.booking_lifecycle import BookingLifecycleService
from app.services.notifications import get_notification_channel


class RecordingChannel:
    """Stands in for the real-time channel and keeps what was published."""

    def __init__(self):
        self.events = []

    def publish(self, user_id, event, payload):
        self.events.append((user_id, event, payload))

    def names(self):
        return [e[1] for e in self.events]


class BrokenChannel:
    def publish(self, user_id, event, payload):
        raise ConnectionError("socket server down")


def make_session_factory(url="sqlite:///:memory:"):
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url == "sqlite:///:memory:":
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def seed(Session):
    db = Session()
    client = User(email="client@example.com", name="Asha Client", password_hash="x", role="client")
    provider = User(email="provider@example.com", name="Ravi Provider", password_hash="x", role="provider")
    stranger = User(email="other@example.com", name="Other Client", password_hash="x", role="client")
    admin = User(email="admin@example.com", name="Admin", password_hash="x", role="admin")
    db.add_all([client, provider, stranger, admin])
    db.commit()

    service = Service(provider_id=provider.id, title="Deep cleaning", price=500)
    db.add(service)
    db.commit()
    db.close()
    return {
        "client": client,
        "provider": provider,
        "stranger": stranger,
        "admin": admin,
        "service": service,
    }


def future(days=3):
    return utcnow() + timedelta(days=days)


@pytest.fixture
def Session():
    return make_session_factory()


@pytest.fixture
def parties(Session):
    return seed(Session)


@pytest.fixture
def db(Session):
    session = Session()
    yield session
    session.close()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def lifecycle(db, channel):
    return BookingLifecycleService(db, channel)


@pytest.fixture
def pending_booking(lifecycle, parties):
    return lifecycle.create_booking(parties["client"], parties["service"].id, future(), "Front door code 1234")


@pytest.fixture
def api(Session, channel):
    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_notification_channel] = lambda: channel
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: user
    return _login
