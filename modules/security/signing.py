"""
Signed session tokens.

HS256 JWTs via PyJWT. Decoding never raises: an invalid, tampered or expired
token is simply absent, because "no valid session" is the normal outcome for
an anonymous request.
"""

import logging
import time
import uuid
from typing import Any, Optional

import jwt as pyjwt

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
DEFAULT_MAX_AGE = 30 * 24 * 60 * 60


def encode_jwt(
    payload: dict[str, Any],
    secret: str,
    max_age: int = DEFAULT_MAX_AGE,
) -> str:
    """
    Sign a payload as a JWT.

    Sets ``iat`` and ``exp = now + max_age`` unless the payload already
    carries them, and always adds a unique ``jti``.

    Args:
        payload: Claims to embed (``sub`` should be the user id)
        secret: HMAC signing secret
        max_age: Lifetime in seconds

    Returns:
        Encoded JWT string
    """
    now = int(time.time())
    claims = dict(payload)
    claims.setdefault("iat", now)
    claims.setdefault("exp", now + max_age)
    claims["jti"] = uuid.uuid4().hex
    return pyjwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def decode_jwt(token: Optional[str], secret: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT.

    Returns:
        The claims, or None if the token is missing, invalid or expired
    """
    if not token:
        return None

    try:
        claims = pyjwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp"], "verify_exp": True},
        )
    except pyjwt.ExpiredSignatureError:
        logger.debug("Session token expired")
        return None
    except pyjwt.InvalidTokenError as e:
        logger.debug(f"Rejected session token: {e}")
        return None

    # PyJWT allows exp == now; a token must still have lifetime left
    if claims["exp"] <= time.time():
        return None

    return claims
