"""
Test Configuration and Fixtures

Each test gets its own in-memory SQLite database. The application settings
are pointed at SQLite (and at the console mail transport) before any
storeadmin module is imported.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("MAIL_TRANSPORT", "console")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("FRONTEND_STORE_URL", "https://shop.example.com")
os.environ.setdefault("MAIL_FROM", "no-reply@shop.example.com")

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storeadmin.database import Base
from storeadmin.models import Customer
from storeadmin.services.errors import DeliveryError
from storeadmin.services.mail_transport import MailTransport, DeliveryReceipt
from storeadmin.services.token_mailer import MailerConfig


class RecordingTransport(MailTransport):
    """Mail transport double that keeps sent messages in memory"""

    name = "recording"

    def __init__(self, error: Exception = None):
        self.sent = []
        self.error = error

    def send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return DeliveryReceipt(
            transport=self.name,
            message_id=f"<{len(self.sent)}@test.local>",
            accepted=[message.to]
        )


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def db_engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a test database session"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def make_customer(db_session):
    """Factory for persisted customers"""
    def _make(email="customer@example.com", customer_id=None, **kwargs):
        customer = Customer(email=email, **kwargs)
        if customer_id is not None:
            customer.id = customer_id
        db_session.add(customer)
        db_session.commit()
        db_session.refresh(customer)
        return customer
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer(email="customer@example.com", name="Test Customer")


@pytest.fixture
def recording_transport():
    return RecordingTransport()


@pytest.fixture
def failing_transport():
    return RecordingTransport(error=DeliveryError("relay refused message", transport="recording"))


@pytest.fixture
def frozen_clock():
    return FrozenClock(datetime(2026, 1, 15, 12, 0, 0))


@pytest.fixture
def mailer_config():
    return MailerConfig(
        frontend_base_url="https://shop.example.com",
        from_address="no-reply@shop.example.com",
        token_ttl=timedelta(hours=1),
    )


@pytest.fixture
def client(db_session, recording_transport):
    """Test client wired to the test database and the recording transport"""
    from fastapi.testclient import TestClient
    from storeadmin.main import app
    from storeadmin.database import get_db
    from storeadmin.services.mail_transport import get_mail_transport

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_transport] = lambda: recording_transport

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
