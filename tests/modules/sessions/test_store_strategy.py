from datetime import datetime, timedelta, timezone

import pytest

from shared.models import User
from modules.sessions import (
    AdapterCapabilityError,
    AdapterOperationError,
    IAdapter,
    LinkedAccount,
    SessionAndUser,
    SessionNotFoundError,
    SessionRecord,
    SessionStrategyKind,
    StoreSessionStrategy,
    detect_capabilities,
)

COOKIE = "portcullis.session-token"


@pytest.fixture
def strategy(adapter) -> StoreSessionStrategy:
    return StoreSessionStrategy(adapter, max_age=3600, update_age=60, cookie_name=COOKIE)


def put_record(adapter, token: str, seconds: int, user_id: str = "user-1") -> SessionRecord:
    record = SessionRecord(
        session_token=token,
        user_id=user_id,
        expires=(datetime.now(timezone.utc) + timedelta(seconds=seconds)).replace(microsecond=0),
    )
    adapter.sessions[token] = record
    return record


class TestCapabilities:
    def test_full_adapter(self, adapter, strategy):
        assert strategy.kind is SessionStrategyKind.DATABASE
        assert detect_capabilities(adapter) == {
            "create_session", "get_session_and_user", "update_session", "delete_session",
        }

    def test_read_only_adapter(self, read_only_adapter_cls):
        assert detect_capabilities(read_only_adapter_cls()) == {"get_session_and_user"}

    @pytest.mark.asyncio
    async def test_missing_create(self, read_only_adapter_cls, user):
        strategy = StoreSessionStrategy(read_only_adapter_cls(), cookie_name=COOKIE)
        with pytest.raises(AdapterCapabilityError) as exc:
            await strategy.create_session(user)
        assert exc.value.code == "ADAPTER_ERROR"
        assert exc.value.capability == "create_session"

    @pytest.mark.asyncio
    async def test_missing_lookup(self, make_request):
        strategy = StoreSessionStrategy(object(), cookie_name=COOKIE)
        with pytest.raises(AdapterCapabilityError):
            await strategy.get_session(make_request(cookies={COOKIE: "tok"}))

    @pytest.mark.asyncio
    async def test_missing_lookup_without_cookie_is_none(self, make_request):
        strategy = StoreSessionStrategy(object(), cookie_name=COOKIE)
        assert await strategy.get_session(make_request()) is None

    @pytest.mark.asyncio
    async def test_missing_update(self, read_only_adapter_cls, make_session):
        strategy = StoreSessionStrategy(read_only_adapter_cls(), cookie_name=COOKIE)
        with pytest.raises(AdapterCapabilityError):
            await strategy.update_session(make_session(10, session_token="t"), {})

    @pytest.mark.asyncio
    async def test_missing_delete(self, read_only_adapter_cls, make_request, response):
        strategy = StoreSessionStrategy(read_only_adapter_cls(), cookie_name=COOKIE)
        with pytest.raises(AdapterCapabilityError):
            await strategy.delete_session(make_request(cookies={COOKIE: "t"}), response)
        # The cookie is cleared regardless
        assert response.deleted == [COOKIE]

    def test_protocol_stubs_are_not_capabilities(self):
        class LookupOnlyAdapter(IAdapter):
            async def get_session_and_user(self, session_token):
                return None

        assert detect_capabilities(LookupOnlyAdapter()) == {"get_session_and_user"}

    @pytest.mark.asyncio
    async def test_protocol_subclass_missing_create(self, user):
        class LookupOnlyAdapter(IAdapter):
            async def get_session_and_user(self, session_token):
                return None

        strategy = StoreSessionStrategy(LookupOnlyAdapter(), cookie_name=COOKIE)
        with pytest.raises(AdapterCapabilityError) as exc:
            await strategy.create_session(user)
        assert exc.value.code == "ADAPTER_ERROR"


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_persists_record(self, strategy, adapter, user):
        account = LinkedAccount(provider="github", provider_account_id="42", access_token="at")
        session = await strategy.create_session(user, account)

        record = adapter.sessions[session.session_token]
        assert record.user_id == user.id
        assert record.expires == session.expires
        assert record.access_token == "at"
        assert len(session.session_token) >= 43

    @pytest.mark.asyncio
    async def test_adapter_failure_wrapped(self, strategy, adapter, user):
        async def broken(record):
            raise RuntimeError("db down")

        adapter.create_session = broken
        with pytest.raises(AdapterOperationError):
            await strategy.create_session(user)


class TestGetSession:
    @pytest.mark.asyncio
    async def test_valid(self, strategy, adapter, user, make_request):
        adapter.users[user.id] = user
        put_record(adapter, "tok", 600)

        session = await strategy.get_session(make_request(cookies={COOKIE: "tok"}))
        assert session.user == user
        assert session.session_token == "tok"

    @pytest.mark.asyncio
    async def test_unknown_token(self, strategy, make_request):
        assert await strategy.get_session(make_request(cookies={COOKIE: "nope"})) is None

    @pytest.mark.asyncio
    async def test_expired_record_deleted(self, strategy, adapter, make_request):
        put_record(adapter, "old", -5)

        assert await strategy.get_session(make_request(cookies={COOKIE: "old"})) is None
        assert "old" not in adapter.sessions
        assert adapter.calls.count("delete_session") == 1

    @pytest.mark.asyncio
    async def test_expired_without_delete_capability(self, read_only_adapter_cls, make_request):
        record = SessionRecord(
            session_token="old",
            user_id="u",
            expires=datetime.now(timezone.utc) - timedelta(seconds=5),
        )
        adapter = read_only_adapter_cls({"old": SessionAndUser(session=record, user=User(id="u"))})
        strategy = StoreSessionStrategy(adapter, cookie_name=COOKIE)
        assert await strategy.get_session(make_request(cookies={COOKIE: "old"})) is None

    @pytest.mark.asyncio
    async def test_failed_reap_still_none(self, strategy, adapter, make_request):
        put_record(adapter, "old", -5)

        async def broken(token):
            raise RuntimeError("db down")

        adapter.delete_session = broken
        assert await strategy.get_session(make_request(cookies={COOKIE: "old"})) is None

    @pytest.mark.asyncio
    async def test_lookup_failure_is_none(self, strategy, adapter, make_request):
        async def broken(token):
            raise RuntimeError("db down")

        adapter.get_session_and_user = broken
        assert await strategy.get_session(make_request(cookies={COOKIE: "tok"})) is None

    @pytest.mark.asyncio
    async def test_naive_expiry_treated_as_utc(self, strategy, adapter, make_request):
        naive = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=600)
        adapter.sessions["tok"] = SessionRecord(session_token="tok", user_id="user-1", expires=naive)
        assert await strategy.get_session(make_request(cookies={COOKIE: "tok"})) is not None


class TestUpdateSession:
    @pytest.mark.asyncio
    async def test_outside_window_no_adapter_write(self, strategy, adapter, make_session):
        put_record(adapter, "tok", 3000)
        session = make_session(3000, session_token="tok")

        updated = await strategy.update_session(session, {})
        assert updated.expires == session.expires
        assert "update_session" not in adapter.calls

    @pytest.mark.asyncio
    async def test_inside_window_extends(self, strategy, adapter, make_session):
        put_record(adapter, "tok", 10)
        session = make_session(10, session_token="tok")

        updated = await strategy.update_session(session, {"access_token": "new"})
        assert updated.expires > session.expires
        assert adapter.sessions["tok"].expires == updated.expires
        assert adapter.sessions["tok"].access_token == "new"

    @pytest.mark.asyncio
    async def test_record_gone(self, strategy, make_session):
        with pytest.raises(SessionNotFoundError) as exc:
            await strategy.update_session(make_session(10, session_token="gone"), {})
        assert exc.value.code == "SESSION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_no_session_token(self, strategy, make_session):
        with pytest.raises(SessionNotFoundError):
            await strategy.update_session(make_session(10), {})


class TestDeleteAndRefresh:
    @pytest.mark.asyncio
    async def test_delete(self, strategy, adapter, make_request, response):
        put_record(adapter, "tok", 600)
        await strategy.delete_session(make_request(cookies={COOKIE: "tok"}), response)

        assert "tok" not in adapter.sessions
        assert response.deleted == [COOKIE]

    @pytest.mark.asyncio
    async def test_delete_without_cookie(self, strategy, adapter, make_request, response):
        await strategy.delete_session(make_request(), response)
        assert "delete_session" not in adapter.calls
        assert response.deleted == [COOKIE]

    @pytest.mark.asyncio
    async def test_refresh_extends_record(self, strategy, adapter, make_session):
        put_record(adapter, "tok", 3000)
        session = make_session(3000, session_token="tok")

        refreshed = await strategy.refresh_session(session)
        assert refreshed.expires >= session.expires
        assert adapter.sessions["tok"].expires == refreshed.expires
