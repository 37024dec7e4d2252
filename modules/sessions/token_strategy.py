"""
Token-encoded session strategy.

The session lives entirely in a signed JWT carried by the client; there is
no server-side record. The JWT's ``exp`` claim and the Session's ``expires``
always agree.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError

from shared.exceptions import ConfigurationError
from shared.models import User
from modules.security import decode_jwt, encode_jwt

from .cookies import delete_session_cookie, get_session_cookie
from .interfaces import IRequestContext, IResponseContext, ISessionStrategy
from .models import LinkedAccount, Session, SessionStrategyKind
from .utils import (
    DEFAULT_MAX_AGE,
    DEFAULT_UPDATE_AGE,
    expires_in,
    jwt_from_session,
    merge_session,
    session_from_jwt,
    should_refresh_session,
)

logger = logging.getLogger(__name__)


class TokenSessionStrategy(ISessionStrategy):
    """Sessions as self-contained signed tokens."""

    kind = SessionStrategyKind.JWT

    def __init__(
        self,
        secret: str,
        max_age: Optional[int] = None,
        update_age: Optional[int] = None,
        cookie_name: Optional[str] = None,
    ):
        if not secret:
            raise ConfigurationError(
                "JWT secret is required for JWT session strategy",
                code="CONFIGURATION_ERROR",
            )
        self._secret = secret
        self.max_age = DEFAULT_MAX_AGE if max_age is None else max_age
        self.update_age = DEFAULT_UPDATE_AGE if update_age is None else update_age
        self.cookie_name = cookie_name or ""

    def _sign(self, session: Session) -> Session:
        """Return ``session`` with a freshly signed token for its current state."""
        token = encode_jwt(jwt_from_session(session), self._secret, self.max_age)
        return session.model_copy(update={"session_token": token})

    async def create_session(
        self, user: User, account: Optional[LinkedAccount] = None
    ) -> Session:
        session = Session(
            user=user,
            expires=expires_in(self.max_age),
            access_token=account.access_token if account else None,
            refresh_token=account.refresh_token if account else None,
        )
        logger.debug(f"Created token session for user={user.id}")
        return self._sign(session)

    async def get_session(self, request: IRequestContext) -> Optional[Session]:
        token = get_session_cookie(request, self.cookie_name or None)
        if not token:
            return None

        claims = decode_jwt(token, self._secret)
        if not claims or not claims.get("sub"):
            return None

        try:
            return session_from_jwt(claims, token)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.debug(f"Discarding malformed session token: {e}")
            return None

    async def update_session(self, session: Session, update: dict[str, Any]) -> Session:
        """
        Merge ``update`` and slide the expiry.

        The expiry moves to ``now + max_age`` only when less than
        ``update_age`` remains; otherwise it is left alone.
        """
        renew = should_refresh_session(session, self.update_age)
        if not renew and not update:
            return session

        updated = merge_session(session, update)
        if renew:
            updated = updated.model_copy(update={"expires": expires_in(self.max_age)})
        return self._sign(updated)

    async def delete_session(
        self, request: IRequestContext, response: IResponseContext
    ) -> None:
        # Nothing to revoke server-side; the token simply stops being sent
        delete_session_cookie(response, self.cookie_name or None)

    async def refresh_session(self, session: Session) -> Session:
        """Re-sign with a full ``max_age``, keeping any embedded upstream tokens."""
        renewed = session.model_copy(update={"expires": expires_in(self.max_age)})
        return self._sign(renewed)
