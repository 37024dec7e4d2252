"""
OAuth flow module data models.

Provider descriptors, upstream token sets and the ephemeral flow state that
correlates an authorization redirect with its callback.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from shared.models import User


class EndpointConfig(BaseModel):
    """An endpoint URL with extra parameters to send along."""

    url: str
    params: dict[str, str] = Field(default_factory=dict)


Endpoint = Union[str, EndpointConfig]


def _endpoint_url(endpoint: Endpoint) -> str:
    return endpoint if isinstance(endpoint, str) else endpoint.url


def _endpoint_params(endpoint: Endpoint) -> dict[str, str]:
    return {} if isinstance(endpoint, str) else dict(endpoint.params)


class TokenSet(BaseModel):
    """
    Tokens issued by an identity provider.

    ``expires_at`` is an absolute UNIX timestamp; the flow engine fills it in
    from ``expires_in`` when the provider only sends the relative form.
    """

    access_token: str
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    id_token: Optional[str] = None

    model_config = ConfigDict(extra="allow")


ProfileMapper = Callable[[dict[str, Any], TokenSet], Union[User, dict, Awaitable[Any]]]


class OAuthProviderConfig(BaseModel):
    """
    Descriptor for an OAuth2 / OpenID Connect identity provider.

    Provider registries build these; the flow engine only reads them.
    """

    id: str = Field(..., description="Provider identifier, e.g. 'github'")
    name: str = Field("", description="Human readable name")
    type: Literal["oauth"] = "oauth"
    authorization: Endpoint
    token: Endpoint
    userinfo: Optional[Endpoint] = None
    client_id: str
    client_secret: str = ""
    issuer: Optional[str] = None
    checks: list[Literal["pkce", "state", "nonce"]] = Field(default_factory=lambda: ["state"])
    enable_pkce: bool = True
    profile: Optional[ProfileMapper] = Field(None, exclude=True)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def authorization_url(self) -> str:
        return _endpoint_url(self.authorization)

    @property
    def authorization_params(self) -> dict[str, str]:
        return _endpoint_params(self.authorization)

    @property
    def token_url(self) -> str:
        return _endpoint_url(self.token)

    @property
    def token_params(self) -> dict[str, str]:
        return _endpoint_params(self.token)

    @property
    def userinfo_url(self) -> Optional[str]:
        return _endpoint_url(self.userinfo) if self.userinfo is not None else None

    def requires(self, check: str) -> bool:
        """Whether the provider mandates a given anti-forgery check."""
        return check in self.checks


class OAuthFlowState(BaseModel):
    """Server-side record of one in-progress sign-in, keyed by ``state``."""

    state: str
    nonce: Optional[str] = None
    code_verifier: Optional[str] = None
    code_challenge: Optional[str] = None
    code_challenge_method: Optional[str] = None
    provider: str
    callback_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.created_at).total_seconds()

    def is_expired(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        return self.age_seconds(now) > ttl_seconds


class AuthorizationRequest(BaseModel):
    """What the caller needs to redirect the user and survive the round trip."""

    url: str
    state: str
    code_verifier: Optional[str] = None
    nonce: Optional[str] = None


class CallbackParams(BaseModel):
    """Query parameters delivered to the OAuth callback."""

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
    error_uri: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class OAuthFlowResult(BaseModel):
    """Outcome of a completed sign-in."""

    user: User
    tokens: TokenSet
    profile: dict[str, Any]
