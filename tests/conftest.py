"""Shared fixtures: a fresh SQLite database, fake storage and mailer, and an app client per test."""

import asyncio
import itertools
import os
import tempfile
from types import SimpleNamespace
from uuid import UUID

import pytest

_TMP_DIR = tempfile.mkdtemp(prefix="community-tests-")

# Settings are read at import time, so the environment is fixed before any community import
os.environ["DEBUG"] = "true"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'app.db')}"
os.environ["ENABLE_RATE_LIMITING"] = "false"
os.environ["PAYMENT_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["EMAIL_API_KEY"] = ""
os.environ["STORAGE_ENDPOINT_URL"] = ""
os.environ["STORAGE_ACCESS_KEY_ID"] = ""
os.environ["STORAGE_SECRET_ACCESS_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from community.cache import reset_cache  # noqa: E402
from community.database.gamification import GamificationRepository  # noqa: E402
from community.database.profiles import ProfilesRepository  # noqa: E402
from community.database.session import get_session, get_session_factory  # noqa: E402
from community.mailer import get_email_sender  # noqa: E402
from community.main import create_app  # noqa: E402
from community.models import Base  # noqa: E402
from community.storage.objects import get_storage  # noqa: E402

WEBHOOK_SECRET = "test-webhook-secret"
PASSWORD = "secret123"


class FakeStorage:
    """Keeps uploads in memory under the same keys the bucket would use"""

    base_url = "https://files.example.com"

    def __init__(self):
        self.objects = {}
        self.deleted = []

    def public_url(self, key):
        return f"{self.base_url}/{key}"

    def key_from_url(self, url):
        prefix = self.public_url("")
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    async def object_exists(self, key):
        return key in self.objects

    async def store_upload(self, file_data, user_id, filename, content_type=None):
        key = f"resources/{user_id}/{filename}"
        self.objects[key] = file_data
        return {
            "file_url": self.public_url(key),
            "file_name": filename,
            "file_size": len(file_data),
            "mime_type": content_type or "application/octet-stream",
            "thumbnail_url": None,
        }

    async def delete_object(self, key):
        self.objects.pop(key, None)
        self.deleted.append(key)


class FakeMailer:
    """Records every email instead of calling the provider"""

    configured = True

    def __init__(self):
        self.sent = []

    async def send(self, to, subject, html):
        self.sent.append({"to": to, "subject": subject, "html": html})
        return True

    def subjects(self):
        return [email["subject"] for email in self.sent]


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a per-test SQLite file with roles and point rules seeded"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def prepare():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            await ProfilesRepository(session).ensure_default_roles()
            await GamificationRepository(session).ensure_default_rules()

    asyncio.run(prepare())
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def run_db(session_factory):
    """Run fn(session) to completion against the test database and return its result"""
    def _run(fn):
        async def runner():
            async with session_factory() as session:
                return await fn(session)
        return asyncio.run(runner())
    return _run


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(session_factory, storage, mailer):
    """Create test client with database, storage and email replaced."""
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_email_sender] = lambda: mailer

    reset_cache()
    yield TestClient(app)
    reset_cache()


@pytest.fixture
def set_role(run_db):
    def _set_role(user_id, role):
        async def update(session):
            await ProfilesRepository(session).update_user_role(UUID(str(user_id)), role)
        run_db(update)
    return _set_role


@pytest.fixture
def make_user(client, set_role):
    """Sign up a member through the API; the returned namespace carries id, email, token and headers"""
    counter = itertools.count(1)

    def _make_user(role=None, **fields):
        n = next(counter)
        payload = {
            "email": f"member{n}@example.com",
            "password": PASSWORD,
            "display_name": f"Member{n}",
            **fields,
        }
        response = client.post("/auth/signup", json=payload)
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        if role:
            set_role(data["user_id"], role)
        return SimpleNamespace(
            id=data["user_id"],
            email=data["email"],
            display_name=payload["display_name"],
            token=data["access_token"],
            refresh_token=data["refresh_token"],
            headers={"Authorization": f"Bearer {data['access_token']}"},
        )

    return _make_user


@pytest.fixture
def member(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def premium(make_user):
    return make_user(role="premium")
