"""
Session module interfaces.

Three contracts meet here: the strategy the manager delegates to, the
persistence adapter the store-backed strategy calls, and the transport
collaborator that reads and writes cookies.
"""

from typing import Any, Optional, Protocol, Union, runtime_checkable

from shared.models import User

from .models import (
    CookieOptions,
    LinkedAccount,
    Session,
    SessionAndUser,
    SessionRecord,
    SessionRecordUpdate,
    SessionStrategyKind,
    VerificationToken,
)


@runtime_checkable
class IRequestContext(Protocol):
    """Inbound side of the transport: named cookie and header lookup."""

    def get_cookie(self, name: str) -> Optional[str]:
        ...

    def get_header(self, name: str) -> Optional[str]:
        ...


@runtime_checkable
class IResponseContext(Protocol):
    """Outbound side of the transport: cookie writes."""

    def set_cookie(self, name: str, value: str, options: CookieOptions) -> None:
        ...

    def delete_cookie(self, name: str, options: CookieOptions) -> None:
        ...


@runtime_checkable
class ISessionStrategy(Protocol):
    """
    Interface both session strategies implement.

    Selected once at configuration time. Every strategy exposes the full
    method set; store-backed operations whose adapter capability is missing
    raise AdapterCapabilityError.
    """

    kind: SessionStrategyKind
    max_age: int
    update_age: int
    cookie_name: str

    async def create_session(
        self, user: User, account: Optional[LinkedAccount] = None
    ) -> Session:
        """Issue a new session for ``user``."""
        ...

    async def get_session(self, request: IRequestContext) -> Optional[Session]:
        """Resolve the request's session, or None if absent/invalid/expired."""
        ...

    async def update_session(self, session: Session, update: dict[str, Any]) -> Session:
        """Merge ``update`` and renew the expiry when inside the update window."""
        ...

    async def delete_session(
        self, request: IRequestContext, response: IResponseContext
    ) -> None:
        """End the request's session and clear the cookie."""
        ...

    async def refresh_session(self, session: Session) -> Session:
        """Unconditionally extend the session to a full ``max_age``."""
        ...


class IAdapter(Protocol):
    """
    Persistence contract for users, linked accounts, sessions and
    verification tokens.

    Session and verification-token methods are optional; strategies detect
    their presence at construction.
    """

    async def create_user(self, user: dict[str, Any]) -> User:
        ...

    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    async def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    async def get_user_by_account(
        self, provider: str, provider_account_id: str
    ) -> Optional[User]:
        ...

    async def update_user(self, user: dict[str, Any]) -> User:
        ...

    async def delete_user(self, user_id: str) -> None:
        ...

    async def link_account(self, account: LinkedAccount) -> LinkedAccount:
        ...

    async def unlink_account(self, provider: str, provider_account_id: str) -> None:
        ...

    # Optional session capabilities

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        ...

    async def get_session_and_user(
        self, session_token: str
    ) -> Optional[Union[SessionAndUser, dict[str, Any]]]:
        ...

    async def update_session(self, update: SessionRecordUpdate) -> Optional[SessionRecord]:
        ...

    async def delete_session(self, session_token: str) -> None:
        ...

    # Optional verification-token capabilities

    async def create_verification_token(
        self, token: VerificationToken
    ) -> VerificationToken:
        ...

    async def use_verification_token(
        self, identifier: str, token: str
    ) -> Optional[VerificationToken]:
        ...
