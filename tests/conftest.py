# tests/conftest.py
import os

# przed importem app - settings czyta env przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import pytest  # noqa: E402

from app.data import models  # noqa: E402,F401
from app.data.database import Base, SessionLocal, engine  # noqa: E402
from app.services.idempotency_service import WebhookEventRegistry  # noqa: E402
from app.services.lock_service import LockService  # noqa: E402
from tests.helpers import FakeGateway, FakeRedis, FakeSender, RecordingPublisher  # noqa: E402


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def registry(fake_redis):
    return WebhookEventRegistry(client=fake_redis)


@pytest.fixture
def locks(fake_redis):
    return LockService(client=fake_redis)


@pytest.fixture
def gateway():
    return FakeGateway()
