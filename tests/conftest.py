"""
Pytest configuration and fixtures for the test-management backend.
"""

import os
from datetime import datetime, timedelta, timezone

# Test-friendly environment before importing the application
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-that-is-long-enough-for-hs256")
os.environ.setdefault("OTP_DEBUG", "1")
os.environ["RESEND_API_KEY"] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from testmgmt.config import settings  # noqa: E402
from testmgmt.database import build_session_factory, init_db  # noqa: E402
from testmgmt.dependencies import (  # noqa: E402
    build_auth_service,
    get_auth_service,
    get_user_store,
)
from testmgmt.main import create_app  # noqa: E402
from testmgmt.services.otp import OtpChallengeManager, SqlAlchemyChallengeStore  # noqa: E402
from testmgmt.services.users import UserStore  # noqa: E402

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent = []
        self.result = True
        self.error = None

    def send(self, destination, code, purpose) -> bool:
        self.sent.append((destination, code, purpose))
        if self.error is not None:
            raise self.error
        return self.result

    def last_code(self, destination=None) -> str:
        for sent_to, code, _ in reversed(self.sent):
            if destination is None or sent_to == destination:
                return code
        raise AssertionError(f"no code sent to {destination}")


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def start():
    return T0


@pytest.fixture
def clock(start):
    return FakeClock(start)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store(session_factory):
    return SqlAlchemyChallengeStore(session_factory)


@pytest.fixture
def manager(store, notifier, clock):
    return OtpChallengeManager(store, notifier, clock=clock)


@pytest.fixture
def user_store(session_factory):
    return UserStore(session_factory)


@pytest.fixture
def make_client(session_factory):
    """Build a TestClient whose routes use the given auth service."""

    def _make(service):
        users = UserStore(session_factory)
        application = create_app(initialize_db=False)
        application.dependency_overrides[get_auth_service] = lambda: service
        application.dependency_overrides[get_user_store] = lambda: users
        return TestClient(application)

    return _make


@pytest.fixture
def client(make_client, session_factory, notifier):
    service = build_auth_service(settings, session_factory, notifier)
    with make_client(service) as test_client:
        yield test_client
