"""
Security primitives module.

Cryptographic building blocks shared by the OAuth flow and session modules.

Public API:
- Random tokens: generate_state, generate_nonce, generate_session_token, ...
- PKCE: generate_pkce, verify_pkce
- Comparison/hashing: constant_time_equal, sha256_hex
- Signed tokens: encode_jwt, decode_jwt
"""

from .crypto import (
    generate_state,
    generate_nonce,
    generate_token,
    generate_secure_random,
    generate_session_token,
    generate_verification_token,
    generate_pkce,
    verify_pkce,
    pkce_challenge,
    constant_time_equal,
    sha256_hex,
)
from .signing import encode_jwt, decode_jwt, JWT_ALGORITHM
from .models import PKCEChallenge
from .urls import sanitize_redirect_url, is_valid_callback_url

__all__ = [
    "generate_state",
    "generate_nonce",
    "generate_token",
    "generate_secure_random",
    "generate_session_token",
    "generate_verification_token",
    "generate_pkce",
    "verify_pkce",
    "pkce_challenge",
    "constant_time_equal",
    "sha256_hex",
    "encode_jwt",
    "decode_jwt",
    "JWT_ALGORITHM",
    "PKCEChallenge",
    "sanitize_redirect_url",
    "is_valid_callback_url",
]
