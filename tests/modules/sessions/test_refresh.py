import asyncio
import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from shared.config import Settings
from modules.oauth import TokenSet
from modules.sessions import (
    REFRESH_ERROR,
    RefreshCoordinator,
    TokenRefreshError,
    auto_refresh_session,
    clear_refresh_error,
    create_session_manager,
    get_refresh_coordinator,
    get_session_with_refresh,
    handle_refresh_error,
    has_refresh_error,
    refresh_access_token,
    refresh_oauth_tokens,
    reset_refresh_coordinator,
    should_refresh_token,
    should_refresh_tokens,
)

COOKIE = "portcullis.session-token"


class TestRefreshOAuthTokens:
    @pytest.mark.asyncio
    async def test_success(self, provider, provider_stub, user):
        result = await refresh_oauth_tokens(provider, "refresh-1", user)

        assert result.success is True
        assert result.tokens.access_token == "access-2"
        assert result.tokens.refresh_token == "refresh-2"
        assert result.user == user

        form = provider_stub.form(provider_stub.requests_to("/token")[0])
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "refresh-1"
        assert form["client_id"] == "client-123"

    @pytest.mark.asyncio
    async def test_keeps_old_refresh_token(self, provider, provider_stub):
        provider_stub.refresh_reply = (200, {"access_token": "access-2"})
        result = await refresh_oauth_tokens(provider, "refresh-1")
        assert result.tokens.refresh_token == "refresh-1"

    @pytest.mark.asyncio
    async def test_provider_rejects(self, provider, provider_stub):
        provider_stub.refresh_reply = (400, {"error": "invalid_grant"})
        result = await refresh_oauth_tokens(provider, "refresh-1")

        assert result.success is False
        assert "400" in result.error
        assert result.tokens is None

    @pytest.mark.asyncio
    async def test_network_error(self, provider, provider_stub):
        provider_stub.error = httpx.ConnectTimeout("timed out")
        result = await refresh_oauth_tokens(provider, "refresh-1")
        assert result.success is False

    @pytest.mark.asyncio
    async def test_malformed_body(self, provider, provider_stub):
        provider_stub.refresh_reply = (200, {"access_token": "abc", "expires_in": "3600s"})
        result = await refresh_oauth_tokens(provider, "refresh-1")

        assert result.success is False
        assert result.tokens is None
        assert "malformed" in result.error

    @pytest.mark.asyncio
    async def test_no_refresh_token(self, provider, provider_stub):
        result = await refresh_oauth_tokens(provider, None)
        assert result.success is False
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_raising_variant(self, provider, provider_stub):
        tokens = await refresh_access_token(provider, "refresh-1")
        assert tokens.access_token == "access-2"

        provider_stub.refresh_reply = (401, "nope")
        with pytest.raises(TokenRefreshError) as exc:
            await refresh_access_token(provider, "refresh-1")
        assert exc.value.code == "TOKEN_REFRESH_FAILED"


class TestShouldRefresh:
    def test_requires_both_tokens(self, make_session):
        assert not should_refresh_tokens(make_session(10), threshold=300)
        assert not should_refresh_tokens(make_session(10, access_token="a"), threshold=300)
        assert should_refresh_tokens(make_session(10, access_token="a", refresh_token="r"), threshold=300)

    def test_threshold(self, make_session):
        session = make_session(600, access_token="a", refresh_token="r")
        assert not should_refresh_tokens(session, threshold=300)
        assert should_refresh_tokens(session, threshold=900)

    def test_default_threshold_from_settings(self, make_session):
        assert should_refresh_tokens(make_session(299, access_token="a", refresh_token="r"))
        assert not should_refresh_tokens(make_session(600, access_token="a", refresh_token="r"))

    def test_token_set_variant(self):
        now = int(time.time())
        assert should_refresh_token(TokenSet(access_token="a", refresh_token="r", expires_at=now + 100))
        assert not should_refresh_token(TokenSet(access_token="a", refresh_token="r", expires_at=now + 1000))
        assert not should_refresh_token({"access_token": "a", "expires_at": now})


class TestRefreshErrorMarker:
    def test_mark_and_clear(self, make_session):
        session = make_session()
        marked = handle_refresh_error("boom", session)

        assert marked.error == REFRESH_ERROR
        assert has_refresh_error(marked)
        assert not has_refresh_error(clear_refresh_error(marked))
        # The session itself is still usable
        assert marked.user == session.user


class TestRefreshCoordinator:
    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_request(self, provider, provider_stub, make_session):
        provider_stub.delay = 0.02
        coordinator = RefreshCoordinator(max_age=3600)
        session = make_session(60, access_token="access-1", refresh_token="refresh-1")

        results = await asyncio.gather(
            *(coordinator.refresh_tokens(session, provider) for _ in range(5))
        )

        assert len(provider_stub.requests_to("/token")) == 1
        assert all(r.success for r in results)
        assert {r.tokens.access_token for r in results} == {"access-2"}
        assert len(coordinator) == 0

    @pytest.mark.asyncio
    async def test_entry_removed_after_failure(self, provider, provider_stub, make_session):
        provider_stub.refresh_reply = (500, "oops")
        coordinator = RefreshCoordinator()
        session = make_session(60, access_token="a", refresh_token="r")

        result = await coordinator.refresh_tokens(session, provider)
        assert result.success is False
        assert not coordinator.is_refreshing(session.user.id)

        # A later attempt makes a new request
        await coordinator.refresh_tokens(session, provider)
        assert len(provider_stub.requests_to("/token")) == 2

    @pytest.mark.asyncio
    async def test_different_users_not_deduplicated(self, provider, provider_stub, make_session):
        from shared.models import User

        provider_stub.delay = 0.01
        coordinator = RefreshCoordinator()
        a = make_session(60, access_token="a", refresh_token="r")
        b = make_session(60, user=User(id="user-2"), access_token="b", refresh_token="r2")

        await asyncio.gather(coordinator.refresh_tokens(a, provider), coordinator.refresh_tokens(b, provider))
        assert len(provider_stub.requests_to("/token")) == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_refresh(self, provider, provider_stub, make_session):
        provider_stub.delay = 0.05
        coordinator = RefreshCoordinator()
        session = make_session(60, access_token="a", refresh_token="r")

        first = asyncio.ensure_future(coordinator.refresh_tokens(session, provider))
        await asyncio.sleep(0.01)
        second = asyncio.ensure_future(coordinator.refresh_tokens(session, provider))
        await asyncio.sleep(0)
        first.cancel()

        result = await second
        assert result.success is True
        assert len(provider_stub.requests_to("/token")) == 1

    @pytest.mark.asyncio
    async def test_refresh_session_success(self, provider, provider_stub, make_session):
        coordinator = RefreshCoordinator(max_age=3600)
        session = make_session(60, access_token="access-1", refresh_token="refresh-1", error=REFRESH_ERROR)

        refreshed = await coordinator.refresh_session(session, provider)
        assert refreshed.access_token == "access-2"
        assert refreshed.refresh_token == "refresh-2"
        assert refreshed.expires > session.expires
        assert refreshed.error is None

    @pytest.mark.asyncio
    async def test_refresh_session_failure_degrades(self, provider, provider_stub, make_session):
        provider_stub.refresh_reply = (400, {"error": "invalid_grant"})
        session = make_session(60, access_token="access-1", refresh_token="refresh-1")

        degraded = await RefreshCoordinator().refresh_session(session, provider)
        assert degraded.error == REFRESH_ERROR
        assert degraded.access_token == "access-1"
        assert degraded.expires == session.expires

    @pytest.mark.asyncio
    async def test_malformed_body_degrades_every_waiter(self, provider, provider_stub, make_session):
        provider_stub.refresh_reply = (200, {"access_token": 12345})
        provider_stub.delay = 0.05
        coordinator = RefreshCoordinator()
        session = make_session(access_token="a", refresh_token="r")

        results = await asyncio.gather(
            *(coordinator.refresh_session(session, provider) for _ in range(3))
        )
        assert all(r.error == REFRESH_ERROR for r in results)
        assert len(provider_stub.requests_to("/token")) == 1
        assert not coordinator.is_refreshing(session.user.id)

    def test_process_coordinator(self):
        coordinator = get_refresh_coordinator()
        assert coordinator is get_refresh_coordinator()
        reset_refresh_coordinator()
        assert get_refresh_coordinator() is not coordinator


class TestAutoRefresh:
    @pytest.mark.asyncio
    async def test_not_due(self, provider, provider_stub, make_session):
        session = make_session(3600, access_token="a", refresh_token="r")
        assert await auto_refresh_session(session, provider) is session
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_due(self, provider, provider_stub, make_session):
        session = make_session(60, access_token="a", refresh_token="r")
        refreshed = await auto_refresh_session(session, provider)
        assert refreshed.access_token == "access-2"

    @pytest.mark.asyncio
    async def test_uses_injected_idle_coordinator(self, provider, make_session):
        session = make_session(60, access_token="a", refresh_token="r")
        coordinator = RefreshCoordinator()
        assert len(coordinator) == 0

        with patch.object(
            coordinator, "refresh_session", AsyncMock(return_value=session)
        ) as refresh:
            await auto_refresh_session(session, provider, coordinator=coordinator)
        refresh.assert_awaited_once_with(session, provider)


class TestGetSessionWithRefresh:
    @pytest.fixture
    def manager(self):
        # update_age=0 so signing a short-lived session does not renew it
        return create_session_manager(Settings(session_max_age=3600, session_update_age=0))

    @pytest.fixture
    def signed(self, manager, make_session):
        async def _sign(seconds: int = 60, **fields):
            session = make_session(seconds, **fields)
            return await manager.strategy.update_session(session, {"error": None})

        return _sign

    @pytest.mark.asyncio
    async def test_no_session(self, manager, provider, make_request):
        assert await get_session_with_refresh(make_request(), provider, manager=manager) is None

    @pytest.mark.asyncio
    async def test_refreshes_and_rewrites_cookie(
        self, manager, signed, provider, provider_stub, make_request, response
    ):
        session = await signed(60, access_token="access-1", refresh_token="refresh-1")
        request = make_request(cookies={COOKIE: session.session_token})

        result = await get_session_with_refresh(request, provider, manager=manager, response=response)

        assert result.access_token == "access-2"
        assert result.refresh_token == "refresh-2"
        assert result.error is None
        assert result.expires > session.expires
        assert response.cookies[COOKIE][0] == result.session_token

    @pytest.mark.asyncio
    async def test_not_due(self, manager, signed, provider, provider_stub, make_request):
        session = await signed(3000, access_token="access-1", refresh_token="refresh-1")
        result = await get_session_with_refresh(
            make_request(cookies={COOKIE: session.session_token}), provider, manager=manager
        )
        assert result.access_token == "access-1"
        assert provider_stub.requests == []

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_session(
        self, manager, signed, provider, provider_stub, make_request
    ):
        provider_stub.refresh_reply = (400, {"error": "invalid_grant"})
        session = await signed(60, access_token="access-1", refresh_token="refresh-1")
        request = make_request(cookies={COOKIE: session.session_token})

        result = await get_session_with_refresh(request, provider, manager=manager)
        assert result is not None
        assert result.error == REFRESH_ERROR
        assert result.access_token == "access-1"

    @pytest.mark.asyncio
    async def test_without_provider_no_refresh(self, manager, signed, provider_stub, make_request):
        session = await signed(60, access_token="a", refresh_token="r")
        result = await get_session_with_refresh(
            make_request(cookies={COOKIE: session.session_token}), manager=manager
        )
        assert result.access_token == "a"
        assert provider_stub.requests == []
