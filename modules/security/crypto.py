"""
Random token generation, PKCE and constant-time comparison.

All randomness comes from the ``secrets`` module. Token alphabets are
URL-safe so values can travel in query strings and cookies unescaped.
"""

import base64
import hashlib
import hmac
import secrets

from .models import PKCEChallenge

# RFC 7636 verifier alphabet ("unreserved" characters)
_VERIFIER_ALPHABET = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)
PKCE_VERIFIER_LENGTH = 128


def generate_secure_random(length: int = 32) -> str:
    """Return ``length`` random bytes encoded as unpadded base64url."""
    return secrets.token_urlsafe(length)


def generate_token(length: int = 32) -> str:
    """Return ``length`` random bytes as a hex string."""
    return secrets.token_hex(length)


def generate_state() -> str:
    """OAuth ``state`` parameter (256 bits)."""
    return secrets.token_urlsafe(32)


def generate_nonce() -> str:
    """OpenID Connect ``nonce`` parameter (128 bits)."""
    return secrets.token_urlsafe(16)


def generate_session_token() -> str:
    """Opaque lookup key for a store-backed session."""
    return secrets.token_urlsafe(32)


def generate_verification_token() -> str:
    """Token for email verification and magic links."""
    return secrets.token_urlsafe(48)


def pkce_challenge(code_verifier: str) -> str:
    """Derive the S256 challenge: base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce() -> PKCEChallenge:
    """Generate a fresh PKCE verifier/challenge pair."""
    verifier = "".join(
        secrets.choice(_VERIFIER_ALPHABET) for _ in range(PKCE_VERIFIER_LENGTH)
    )
    return PKCEChallenge(
        code_verifier=verifier,
        code_challenge=pkce_challenge(verifier),
    )


def verify_pkce(code_verifier: str, code_challenge: str) -> bool:
    """Check a verifier against a previously issued S256 challenge."""
    try:
        expected = pkce_challenge(code_verifier)
    except UnicodeEncodeError:
        return False
    return constant_time_equal(expected, code_challenge)


def constant_time_equal(a: str, b: str) -> bool:
    """Compare two strings without leaking where they differ."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def sha256_hex(value: str) -> str:
    """SHA-256 of a UTF-8 string as lowercase hex."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
