import os
import re
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="accounts-uploads-"))

import accounts.main as main  # noqa: E402  (import after env vars are set)
from accounts.application.services.account_service import AccountService  # noqa: E402
from accounts.application.services.auth_guard import AuthGuard  # noqa: E402
from accounts.domain.models.user import User  # noqa: E402
from accounts.infrastructure.database import Base, SessionLocal, engine  # noqa: E402
from accounts.infrastructure.repositories.user_repository import SQLAlchemyUserRepository  # noqa: E402
from accounts.interfaces.deps import (  # noqa: E402
    get_list_cache,
    get_mailer,
    get_otp_generator,
    get_password_hasher,
    get_token_issuer,
)

STRONG_PASSWORD = "Secret@123"


class FakeMailer:
    """Captures outgoing mail instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to_email, subject, body):
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.sent.append((to_email, subject, body))

    def last_otp(self, to_email):
        for recipient, _, body in reversed(self.sent):
            if recipient == to_email:
                return re.search(r"(\d+)$", body).group(1)
        raise AssertionError(f"no mail sent to {to_email}")


class FakeListCache:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl=None):
        self.store[key] = value
        return True

    def delete_prefix(self, prefix):
        keys = [key for key in self.store if key.startswith(prefix)]
        for key in keys:
            del self.store[key]
        return len(keys)

    def close(self):
        return None


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def cache():
    return FakeListCache()


@pytest.fixture()
def repo(db):
    return SQLAlchemyUserRepository(db, User)


@pytest.fixture()
def service(repo, mailer, cache):
    return AccountService(
        repo=repo,
        hasher=get_password_hasher(),
        otp_generator=get_otp_generator(),
        tokens=get_token_issuer(),
        mailer=mailer,
        cache=cache,
    )


@pytest.fixture()
def guard(repo):
    return AuthGuard(repo, get_token_issuer(), "support@example.com")


@pytest.fixture()
def client(mailer, cache):
    """Provide a TestClient with the mailer and list cache swapped for fakes."""
    main.app.dependency_overrides[get_mailer] = lambda: mailer
    main.app.dependency_overrides[get_list_cache] = lambda: cache

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()
