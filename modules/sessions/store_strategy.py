"""
Store-backed session strategy.

The client holds an opaque random token; the authoritative record lives in
the persistence adapter. Adapter capabilities are detected once at
construction and missing ones raise AdapterCapabilityError when used.
"""

import logging
from typing import Any, Optional

from shared.models import User
from modules.security import generate_session_token

from .cookies import delete_session_cookie, get_session_cookie
from .exceptions import AdapterCapabilityError, AdapterOperationError, SessionNotFoundError
from .interfaces import IAdapter, IRequestContext, IResponseContext, ISessionStrategy
from .models import (
    LinkedAccount,
    Session,
    SessionAndUser,
    SessionRecord,
    SessionRecordUpdate,
    SessionStrategyKind,
)
from .utils import (
    DEFAULT_MAX_AGE,
    DEFAULT_UPDATE_AGE,
    expires_in,
    merge_session,
    should_refresh_session,
    utcnow,
)

logger = logging.getLogger(__name__)

SESSION_CAPABILITIES = (
    "create_session",
    "get_session_and_user",
    "update_session",
    "delete_session",
)


def _implements(adapter: Any, name: str) -> bool:
    if not callable(getattr(adapter, name, None)):
        return False
    # Stubs inherited from the IAdapter protocol are not implementations
    return getattr(type(adapter), name, None) is not getattr(IAdapter, name)


def detect_capabilities(adapter: Any) -> frozenset[str]:
    """Names of the optional session operations the adapter implements."""
    return frozenset(name for name in SESSION_CAPABILITIES if _implements(adapter, name))


class StoreSessionStrategy(ISessionStrategy):
    """Sessions as opaque tokens referencing adapter-held records."""

    kind = SessionStrategyKind.DATABASE

    def __init__(
        self,
        adapter: IAdapter,
        max_age: Optional[int] = None,
        update_age: Optional[int] = None,
        cookie_name: Optional[str] = None,
    ):
        self._adapter = adapter
        self._capabilities = detect_capabilities(adapter)
        self.max_age = DEFAULT_MAX_AGE if max_age is None else max_age
        self.update_age = DEFAULT_UPDATE_AGE if update_age is None else update_age
        self.cookie_name = cookie_name or ""

    @property
    def capabilities(self) -> frozenset[str]:
        return self._capabilities

    def supports(self, capability: str) -> bool:
        return capability in self._capabilities

    def _require(self, capability: str) -> None:
        if capability not in self._capabilities:
            raise AdapterCapabilityError(capability)

    async def create_session(
        self, user: User, account: Optional[LinkedAccount] = None
    ) -> Session:
        self._require("create_session")

        session_token = generate_session_token()
        expires = expires_in(self.max_age)
        record = SessionRecord(
            session_token=session_token,
            user_id=user.id,
            expires=expires,
            access_token=account.access_token if account else None,
            refresh_token=account.refresh_token if account else None,
        )

        try:
            stored = await self._adapter.create_session(record)
        except Exception as e:
            raise AdapterOperationError("create_session", str(e)) from e

        logger.debug(f"Created store-backed session for user={user.id}")
        return Session(
            user=user,
            expires=stored.expires if stored is not None else expires,
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            session_token=session_token,
        )

    async def get_session(self, request: IRequestContext) -> Optional[Session]:
        session_token = get_session_cookie(request, self.cookie_name or None)
        if not session_token:
            return None

        self._require("get_session_and_user")

        try:
            result = await self._adapter.get_session_and_user(session_token)
            if result is None:
                return None
            if not isinstance(result, SessionAndUser):
                result = SessionAndUser.model_validate(result)
        except Exception as e:
            logger.warning(f"Session lookup failed: {e}")
            return None

        record = result.session
        if record.expires <= utcnow():
            await self._reap(session_token)
            return None

        return Session(
            user=result.user,
            expires=record.expires,
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            session_token=session_token,
        )

    async def _reap(self, session_token: str) -> None:
        """Best-effort removal of an expired record."""
        if not self.supports("delete_session"):
            return
        try:
            await self._adapter.delete_session(session_token)
            logger.debug("Deleted expired session record")
        except Exception as e:
            logger.warning(f"Failed to delete expired session: {e}")

    async def _persist(self, session: Session, expires) -> Session:
        self._require("update_session")
        if not session.session_token:
            raise SessionNotFoundError("Session has no session token")

        update = SessionRecordUpdate(
            session_token=session.session_token,
            expires=expires,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )
        try:
            stored = await self._adapter.update_session(update)
        except Exception as e:
            raise AdapterOperationError("update_session", str(e)) from e

        if stored is None:
            raise SessionNotFoundError()
        return session.model_copy(update={"expires": stored.expires})

    async def update_session(self, session: Session, update: dict[str, Any]) -> Session:
        """
        Merge ``update`` and slide the expiry.

        The adapter is only written when the session is inside the
        ``update_age`` window; outside it the update stays in memory.
        """
        self._require("update_session")
        updated = merge_session(session, update)
        if not should_refresh_session(session, self.update_age):
            return updated
        return await self._persist(updated, expires_in(self.max_age))

    async def delete_session(
        self, request: IRequestContext, response: IResponseContext
    ) -> None:
        session_token = get_session_cookie(request, self.cookie_name or None)
        delete_session_cookie(response, self.cookie_name or None)

        if not session_token:
            return

        self._require("delete_session")
        try:
            await self._adapter.delete_session(session_token)
        except Exception as e:
            raise AdapterOperationError("delete_session", str(e)) from e

    async def refresh_session(self, session: Session) -> Session:
        """Extend the persisted record to a full ``max_age``."""
        return await self._persist(session, expires_in(self.max_age))
