"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules:
singleton resets, in-memory transport and adapter fakes, and a stub identity
provider served through httpx.MockTransport.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from shared.config import get_settings
from shared.http import reset_http_client_factory, set_http_client_factory
from shared.models import User
from modules.oauth import OAuthProviderConfig, reset_flow_state_store, reset_oauth_service
from modules.sessions import (
    CookieOptions,
    IAdapter,
    Session,
    SessionAndUser,
    SessionRecord,
    SessionRecordUpdate,
    reset_background_refresh_manager,
    reset_refresh_coordinator,
    reset_session_manager,
)
from api.dependencies import reset_container


# Test signing secret (only for testing)
TEST_SECRET = "test-secret-key-for-testing-only"
PROVIDER_BASE = "https://provider.test"


def _reset_all() -> None:
    reset_flow_state_store()
    reset_oauth_service()
    reset_refresh_coordinator()
    reset_background_refresh_manager()
    reset_session_manager()
    reset_container()
    reset_http_client_factory()
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Reset every process-wide singleton before and after each test."""
    monkeypatch.setenv("AUTH_SECRET", TEST_SECRET)
    _reset_all()
    yield
    _reset_all()


# ----------------------------------------------------------------------
# Transport fakes
# ----------------------------------------------------------------------


class FakeRequest:
    """IRequestContext over plain dicts."""

    def __init__(
        self,
        cookies: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        self.cookies = dict(cookies or {})
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}

    def get_cookie(self, name: str) -> Optional[str]:
        return self.cookies.get(name)

    def get_header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


class FakeResponse:
    """IResponseContext that records cookie writes."""

    def __init__(self) -> None:
        self.cookies: dict[str, tuple[str, CookieOptions]] = {}
        self.deleted: list[str] = []

    def set_cookie(self, name: str, value: str, options: CookieOptions) -> None:
        self.cookies[name] = (value, options)

    def delete_cookie(self, name: str, options: CookieOptions) -> None:
        self.deleted.append(name)
        self.cookies.pop(name, None)


@pytest.fixture
def make_request():
    """Factory for fake request contexts."""
    return FakeRequest


@pytest.fixture
def response() -> FakeResponse:
    return FakeResponse()


# ----------------------------------------------------------------------
# Persistence adapter fake
# ----------------------------------------------------------------------


class FakeAdapter(IAdapter):
    """In-memory adapter implementing every session capability."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.sessions: dict[str, SessionRecord] = {}
        self.calls: list[str] = []

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        self.calls.append("create_session")
        self.sessions[record.session_token] = record
        return record

    async def get_session_and_user(self, session_token: str) -> Optional[SessionAndUser]:
        self.calls.append("get_session_and_user")
        record = self.sessions.get(session_token)
        if record is None:
            return None
        user = self.users.get(record.user_id) or User(id=record.user_id)
        return SessionAndUser(session=record, user=user)

    async def update_session(self, update: SessionRecordUpdate) -> Optional[SessionRecord]:
        self.calls.append("update_session")
        record = self.sessions.get(update.session_token)
        if record is None:
            return None
        changes = update.model_dump(exclude_none=True, exclude={"session_token"})
        record = record.model_copy(update=changes)
        self.sessions[update.session_token] = record
        return record

    async def delete_session(self, session_token: str) -> None:
        self.calls.append("delete_session")
        self.sessions.pop(session_token, None)


class ReadOnlyAdapter:
    """Adapter that can look sessions up but not create, update or delete them."""

    def __init__(self, sessions: Optional[dict[str, SessionAndUser]] = None):
        self.sessions = dict(sessions or {})

    async def get_session_and_user(self, session_token: str) -> Optional[SessionAndUser]:
        return self.sessions.get(session_token)


@pytest.fixture
def adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def read_only_adapter_cls():
    return ReadOnlyAdapter


# ----------------------------------------------------------------------
# Identity provider stub
# ----------------------------------------------------------------------


class ProviderStub:
    """
    Fake identity provider behind httpx.MockTransport.

    Responses are (status, body) pairs so every request gets a fresh
    httpx.Response. ``delay`` makes token requests yield to the event loop,
    which lets concurrent callers overlap.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_reply: tuple[int, Any] = (
            200,
            {
                "access_token": "access-1",
                "refresh_token": "refresh-1",
                "token_type": "bearer",
                "expires_in": 3600,
            },
        )
        self.refresh_reply: tuple[int, Any] = (
            200,
            {"access_token": "access-2", "refresh_token": "refresh-2", "expires_in": 3600},
        )
        self.userinfo_reply: tuple[int, Any] = (
            200,
            {"id": 42, "login": "octocat", "email": "octo@example.com", "avatar_url": "https://img.test/o.png"},
        )
        self.delay = 0.0
        self.error: Optional[Exception] = None

    @staticmethod
    def _build(reply: tuple[int, Any]) -> httpx.Response:
        status, body = reply
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=str(body))

    def form(self, request: httpx.Request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path == "/token":
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.form(request).get("grant_type") == "refresh_token":
                return self._build(self.refresh_reply)
            return self._build(self.token_reply)
        if request.url.path == "/userinfo":
            return self._build(self.userinfo_reply)
        return httpx.Response(404)


@pytest.fixture
def provider_stub() -> ProviderStub:
    """Route all outbound provider traffic to a ProviderStub."""
    stub = ProviderStub()
    set_http_client_factory(
        lambda: httpx.AsyncClient(transport=httpx.MockTransport(stub.handler))
    )
    return stub


@pytest.fixture
def provider() -> OAuthProviderConfig:
    """A GitHub-like provider: state check, PKCE on, no nonce."""
    return OAuthProviderConfig(
        id="github",
        name="GitHub",
        authorization=f"{PROVIDER_BASE}/authorize",
        token=f"{PROVIDER_BASE}/token",
        userinfo=f"{PROVIDER_BASE}/userinfo",
        client_id="client-123",
        client_secret="client-secret",
    )


# ----------------------------------------------------------------------
# Sessions
# ----------------------------------------------------------------------


@pytest.fixture
def user() -> User:
    return User(id="user-1", name="Ada", email="ada@example.com", image="https://img.test/a.png")


@pytest.fixture
def make_session(user):
    """Factory for sessions expiring ``seconds`` from now."""

    def _make(seconds: int = 3600, **fields: Any) -> Session:
        expires = (datetime.now(timezone.utc) + timedelta(seconds=seconds)).replace(microsecond=0)
        return Session(user=fields.pop("user", user), expires=expires, **fields)

    return _make
