"""
Shared fixtures: a temporary SQLite database, in-memory object storage,
captured outgoing email and authenticated test users.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment is prepared first
_DB_DIR = Path(tempfile.mkdtemp(prefix="portal-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
for _name in (
    "ZOHO_CLIENT_ID",
    "ZOHO_CLIENT_SECRET",
    "ZOHO_REFRESH_TOKEN",
    "ZOHO_SIGN_WEBHOOK_SECRET",
    "ZOHO_BILLING_WEBHOOK_SECRET",
    "ZOHO_ORG_ID",
    "CALENDLY_API_TOKEN",
    "CALENDLY_WEBHOOK_SIGNING_KEY",
    "SIGN_EMBED_HOST",
    "SITE_URL",
    "RESEND_API_KEY",
    "SUPPORT_TO_EMAIL",
):
    os.environ.pop(_name, None)

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from portal import email_service, storage  # noqa: E402
from portal.database import Base, SessionLocal, engine  # noqa: E402
from portal.main import app  # noqa: E402
from portal.models import User  # noqa: E402
from portal.security_utils import create_access_token, hash_password  # noqa: E402

PASSWORD = "Str0ng!Pass"


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
def client():
    with TestClient(app) as test_client:
        yield test_client


class FakeStorage:
    """In-memory stand-in for the S3 calls in portal.storage"""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_uploads = False

    def upload_bytes(self, bucket, key, data, content_type=None):
        if self.fail_uploads:
            raise storage.StorageError(f"Failed to upload {key}")
        self.objects[(bucket, key)] = data
        return key

    def download_bytes(self, bucket, key):
        if (bucket, key) not in self.objects:
            raise storage.StorageError(f"Failed to read {key}")
        return self.objects[(bucket, key)]

    def remove(self, bucket, keys):
        for key in keys:
            if key:
                self.objects.pop((bucket, key), None)

    def presigned_url(self, bucket, key, expires=3600):
        return f"https://storage.test/{bucket}/{key}?expires={expires}"


@pytest.fixture(autouse=True)
def fake_storage(monkeypatch):
    fake = FakeStorage()
    monkeypatch.setattr(storage, "upload_bytes", fake.upload_bytes)
    monkeypatch.setattr(storage, "download_bytes", fake.download_bytes)
    monkeypatch.setattr(storage, "remove", fake.remove)
    monkeypatch.setattr(storage, "presigned_url", fake.presigned_url)
    return fake


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Captures email_service.send_email calls instead of calling Resend"""
    outbox: list[dict] = []

    async def fake_send_email(to, subject, mjml_content, from_address=None, reply_to=None):
        outbox.append(
            {"to": to, "subject": subject, "body": mjml_content, "reply_to": reply_to}
        )
        return {"id": f"email-{len(outbox)}"}

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return outbox


@pytest.fixture()
def make_user(db):
    def _make_user(
        email: str = "client@example.com",
        role: str = "client",
        verified: bool = True,
        full_name: str = "Casey Client",
        **extra,
    ) -> User:
        user = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            email_verified=verified,
            role=role,
            full_name=full_name,
            **extra,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture()
def client_user(make_user):
    return make_user()


@pytest.fixture()
def admin_user(make_user):
    return make_user(email="admin@example.com", role="admin", full_name="Avery Admin")


@pytest.fixture()
def headers_for():
    return auth_headers


class MockHTTP:
    """
    Answers httpx.AsyncClient requests made by the vendor clients.

    Routes are keyed by method and URL without the query string; each route
    holds a queue of responses and the last one repeats.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, json=None, content: bytes = b""):
        self.routes.setdefault((method, url), []).append((status, json, content))

    def add_handler(self, method: str, url: str, handler):
        self.routes.setdefault((method, url), []).append(handler)

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if (r.method, _route_url(r)) == (method, url)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, _route_url(request)))
        if not queue:
            raise AssertionError(f"Unexpected request {request.method} {request.url}")
        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(entry):
            return entry(request)
        status, body, content = entry
        if body is not None:
            return httpx.Response(status, json=body)
        return httpx.Response(status, content=content)


def _route_url(request: httpx.Request) -> str:
    return str(request.url.copy_with(query=None))


@pytest.fixture()
def mock_http(monkeypatch):
    mock = MockHTTP()
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(mock.handle)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return mock
