"""Shared pytest fixtures for server tests."""

from __future__ import annotations

import asyncio
import os
import re
from collections.abc import Callable, Generator
from email.message import EmailMessage
from typing import Any

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "10")
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import main
from projectcamp.core.security import create_access_token
from projectcamp.db.base import Base
from projectcamp.db.session import get_db
from projectcamp.models.user import User
from projectcamp.schemas.auth import UserCreate
from projectcamp.services.auth import register_user


@compiles(UUID, "sqlite")
def compile_uuid_sqlite(_element, _compiler, **_kw) -> str:
    """Render UUID columns as TEXT for the SQLite test database."""

    return "TEXT"


TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(
    bind=test_engine,
    autocommit=False,
    autoflush=False,
    future=True,
)

Base.metadata.create_all(bind=test_engine)

DEFAULT_PASSWORD = "Str0ng!Pass"
_LINK_PATTERN = re.compile(r"https?://\S+")


class SyncASGITestClient:
    """Synchronous wrapper around httpx.AsyncClient for ASGI apps."""

    def __init__(self, app) -> None:
        transport = httpx.ASGITransport(app=app)
        self._client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        return asyncio.run(self._client.request(method, url, **kwargs))

    def get(self, url: str, **kwargs) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def delete(self, url: str, **kwargs) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def put(self, url: str, **kwargs) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def __enter__(self) -> "SyncASGITestClient":
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:
        asyncio.run(self._client.aclose())


@pytest.fixture(autouse=True)
def verify_connection_tracker(monkeypatch: pytest.MonkeyPatch) -> Generator[dict[str, int], None, None]:
    """Track how many times the startup connection verifier is called."""

    tracker = {"calls": 0, "migrations": 0}

    def fake_verify_connection() -> None:
        tracker["calls"] += 1

    def fake_run_migrations() -> None:
        tracker["migrations"] += 1

    monkeypatch.setattr(main, "verify_connection", fake_verify_connection)
    monkeypatch.setattr(main, "run_migrations", fake_run_migrations)
    yield tracker


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    """Provide a clean database session for each test."""

    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def override_get_db(db_session: Session) -> Generator[None, None, None]:
    """Override the FastAPI dependency to use the test session."""

    def _get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            pass

    main.app.dependency_overrides[get_db] = _get_db
    yield
    main.app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def client() -> Generator[SyncASGITestClient, None, None]:
    """Synchronous test client backed by httpx's ASGI transport."""

    with SyncASGITestClient(main.app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def capture_outbound_email(monkeypatch: pytest.MonkeyPatch) -> Generator[list[dict[str, Any]], None, None]:
    """Record outbound emails instead of talking to an SMTP server.

    Each entry carries the recipient, subject, plain-text body and every link
    found in that body.
    """

    sent: list[dict[str, Any]] = []

    def _capture(message: EmailMessage) -> None:
        body = message.get_body(preferencelist=("plain",)).get_content()
        sent.append(
            {
                "recipient": message["To"],
                "subject": message["Subject"],
                "body": body,
                "links": _LINK_PATTERN.findall(body),
            }
        )

    monkeypatch.setattr("projectcamp.services.email.send_email", _capture)
    yield sent


@pytest.fixture()
def token_from_email() -> Callable[[dict[str, Any], str], str]:
    """Return a helper extracting the secret from the first link under ``path``."""

    def _extract(email: dict[str, Any], path: str) -> str:
        for link in email["links"]:
            marker = f"{path.rstrip('/')}/"
            if marker in link:
                return link.split(marker, 1)[1]
        raise AssertionError(f"No link containing {path!r} in {email['links']!r}")

    return _extract


@pytest.fixture()
def user_factory(db_session: Session) -> Callable[..., User]:
    """Register users through the service layer with a strong default password."""

    counter = {"value": 0}

    def _create(
        username: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        full_name: str = "Test User",
    ) -> User:
        counter["value"] += 1
        username = username or f"user{counter['value']}"
        email = email or f"{username}@example.com"
        payload = UserCreate(username=username, email=email, password=password, full_name=full_name)
        return register_user(db_session, payload)

    return _create


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build an Authorization header carrying a fresh access token for ``user``."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.username, user.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers
