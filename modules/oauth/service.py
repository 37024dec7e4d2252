"""
OAuth authorization flow service.

Builds authorization redirects with state/PKCE/nonce, validates callbacks
against the stored flow state, exchanges codes for tokens and normalizes the
provider profile into a User.
"""

import inspect
import logging
import time
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from shared.config import Settings, get_settings
from shared.http import create_http_client
from shared.models import User
from modules.security import generate_nonce, generate_pkce, generate_state

from .interfaces import IFlowStateStore, IOAuthService
from .models import (
    AuthorizationRequest,
    OAuthFlowResult,
    OAuthFlowState,
    OAuthProviderConfig,
    TokenSet,
)
from .exceptions import (
    InvalidStateError,
    StateProviderMismatchError,
    StateExpiredError,
    TokenExchangeError,
    MissingAccessTokenError,
    UserinfoNotSupportedError,
    UserinfoRequestError,
    ProfileProcessingError,
)
from .profile import default_profile
from .store import get_flow_state_store

logger = logging.getLogger(__name__)


def finalize_token_set(payload: dict[str, Any]) -> TokenSet:
    """
    Validate a token endpoint response body.

    Raises:
        MissingAccessTokenError: The response has no access token
        TokenExchangeError: The response fields have the wrong shape
    """
    if not payload.get("access_token"):
        raise MissingAccessTokenError()

    tokens = dict(payload)
    try:
        if tokens.get("expires_in") and not tokens.get("expires_at"):
            tokens["expires_at"] = int(time.time()) + int(tokens["expires_in"])
        return TokenSet.model_validate(tokens)
    except (TypeError, ValueError) as e:
        # pydantic.ValidationError is a ValueError
        raise TokenExchangeError(
            "Token response is malformed", body=str(payload)
        ) from e


class OAuthService(IOAuthService):
    """
    Implementation of the OAuth authorization flow.

    The flow-state store is injected so tests and multi-instance
    deployments can supply their own; by default the process-wide
    in-memory store is used.
    """

    def __init__(
        self,
        store: Optional[IFlowStateStore] = None,
        settings: Optional[Settings] = None,
    ):
        self._store = store if store is not None else get_flow_state_store()
        self._settings = settings or get_settings()

    @property
    def store(self) -> IFlowStateStore:
        return self._store

    @property
    def state_ttl(self) -> int:
        return self._settings.oauth_state_ttl

    # ------------------------------------------------------------------
    # Authorization request
    # ------------------------------------------------------------------

    def generate_authorization_request(
        self,
        provider: OAuthProviderConfig,
        callback_url: str,
        enable_pkce: Optional[bool] = None,
        scopes: Optional[list[str]] = None,
        additional_params: Optional[dict[str, str]] = None,
    ) -> AuthorizationRequest:
        """
        Build the authorization URL and persist the flow state.

        Args:
            provider: Provider descriptor
            callback_url: Where the provider should redirect back to
            enable_pkce: Override the provider's PKCE default. A provider
                listing "pkce" in its checks always gets PKCE.
            scopes: Explicit scopes; take precedence over any other scope
            additional_params: Extra query parameters

        Returns:
            AuthorizationRequest with the URL and the values the caller
            must keep across the redirect
        """
        state = generate_state()
        nonce = generate_nonce() if provider.requires("nonce") else None

        use_pkce = provider.enable_pkce if enable_pkce is None else enable_pkce
        pkce = generate_pkce() if use_pkce or provider.requires("pkce") else None

        self._store.set(
            OAuthFlowState(
                state=state,
                nonce=nonce,
                code_verifier=pkce.code_verifier if pkce else None,
                code_challenge=pkce.code_challenge if pkce else None,
                code_challenge_method=pkce.code_challenge_method if pkce else None,
                provider=provider.id,
                callback_url=callback_url,
            )
        )

        extra = dict(additional_params or {})
        provider_params = provider.authorization_params

        params: dict[str, str] = {
            "client_id": provider.client_id,
            "redirect_uri": callback_url,
            "response_type": "code",
            "state": state,
        }
        params.update({k: v for k, v in extra.items() if k != "scope"})

        if pkce:
            params["code_challenge"] = pkce.code_challenge
            params["code_challenge_method"] = pkce.code_challenge_method

        if nonce:
            params["nonce"] = nonce

        # Caller scope wins over the provider's declared scope
        if scopes:
            params["scope"] = " ".join(scopes)
        elif extra.get("scope"):
            params["scope"] = extra["scope"]
        elif provider_params.get("scope"):
            params["scope"] = provider_params["scope"]

        for key, value in provider_params.items():
            if key != "scope":
                params[key] = value

        separator = "&" if "?" in provider.authorization_url else "?"
        url = f"{provider.authorization_url}{separator}{urlencode(params)}"

        logger.debug(
            f"Generated authorization request for provider={provider.id} "
            f"pkce={pkce is not None} nonce={nonce is not None}"
        )

        return AuthorizationRequest(
            url=url,
            state=state,
            code_verifier=pkce.code_verifier if pkce else None,
            nonce=nonce,
        )

    # ------------------------------------------------------------------
    # State validation
    # ------------------------------------------------------------------

    def get_flow_state(self, state: str) -> Optional[OAuthFlowState]:
        """Look up a flow state without any checks."""
        return self._store.get(state)

    def validate_state(self, state: str, expected_provider_id: str) -> OAuthFlowState:
        """
        Check a callback ``state`` against the stored flow state.

        Does not consume the state; exchange_code_for_tokens does. An
        expired state is deleted so a retry reports "invalid", not "expired".

        Raises:
            InvalidStateError: Unknown state
            StateProviderMismatchError: State issued for another provider
            StateExpiredError: State older than the TTL
        """
        flow_state = self._store.get(state)
        if flow_state is None:
            raise InvalidStateError(state)

        if flow_state.provider != expected_provider_id:
            logger.warning(
                f"OAuth state provider mismatch: expected={expected_provider_id} "
                f"received={flow_state.provider}"
            )
            raise StateProviderMismatchError(expected_provider_id, flow_state.provider)

        if flow_state.is_expired(self.state_ttl):
            self._store.delete(state)
            raise StateExpiredError(flow_state.age_seconds())

        return flow_state

    def sweep_expired_states(self) -> int:
        """Delete every flow state older than the TTL; returns the count removed."""
        return self._store.sweep(self.state_ttl)

    # ------------------------------------------------------------------
    # Token exchange
    # ------------------------------------------------------------------

    async def exchange_code_for_tokens(
        self,
        provider: OAuthProviderConfig,
        code: str,
        state: str,
        callback_url: str,
    ) -> TokenSet:
        """
        Exchange an authorization code for tokens.

        The flow state is deleted before the token request is sent, so a
        second exchange with the same state fails even while the first is
        still in flight.

        Raises:
            AuthorizationError: Bad state, provider failure or missing token
        """
        flow_state = self.validate_state(state, provider.id)
        self._store.delete(state)

        # The validation above and the delete are atomic under asyncio, but
        # stores backed by external caches may not be
        if flow_state.is_expired(self.state_ttl):
            raise StateExpiredError(flow_state.age_seconds())

        data = {
            "grant_type": "authorization_code",
            "client_id": provider.client_id,
            "client_secret": provider.client_secret,
            "code": code,
            "redirect_uri": callback_url,
        }
        if flow_state.code_verifier:
            data["code_verifier"] = flow_state.code_verifier
        data.update(provider.token_params)

        try:
            async with create_http_client() as client:
                response = await client.post(provider.token_url, data=data)
        except httpx.HTTPError as e:
            logger.warning(f"Token exchange request to {provider.id} failed: {e}")
            raise TokenExchangeError(f"Token exchange request failed: {e}") from e

        if not response.is_success:
            logger.warning(
                f"Token exchange with {provider.id} returned {response.status_code}"
            )
            raise TokenExchangeError(
                f"Token exchange failed: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenExchangeError(
                "Token exchange returned a non-JSON body",
                status=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(payload, dict):
            raise TokenExchangeError(
                "Token exchange returned an unexpected body",
                status=response.status_code,
                body=response.text,
            )

        tokens = finalize_token_set(payload)
        logger.info(f"Exchanged authorization code with provider={provider.id}")
        return tokens

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def fetch_user_profile(
        self, provider: OAuthProviderConfig, tokens: TokenSet
    ) -> dict[str, Any]:
        """
        Fetch the raw profile from the provider's userinfo endpoint.

        Raises:
            UserinfoNotSupportedError: The provider has no userinfo endpoint
            UserinfoRequestError: The request failed or returned non-success
        """
        userinfo_url = provider.userinfo_url
        if not userinfo_url:
            raise UserinfoNotSupportedError(provider.id)

        try:
            async with create_http_client() as client:
                response = await client.get(
                    userinfo_url,
                    headers={"Authorization": f"Bearer {tokens.access_token}"},
                )
        except httpx.HTTPError as e:
            logger.warning(f"Userinfo request to {provider.id} failed: {e}")
            raise UserinfoRequestError(f"User info request failed: {e}") from e

        if not response.is_success:
            raise UserinfoRequestError(
                f"User info request failed: {response.status_code} {response.reason_phrase}",
                status=response.status_code,
                body=response.text,
            )

        try:
            profile = response.json()
        except ValueError as e:
            raise UserinfoRequestError(
                "User info response is not JSON",
                status=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(profile, dict):
            raise UserinfoRequestError(
                "User info response is not an object",
                status=response.status_code,
                body=response.text,
            )
        return profile

    async def normalize_profile(
        self,
        provider: OAuthProviderConfig,
        raw_profile: dict[str, Any],
        tokens: TokenSet,
    ) -> User:
        """
        Turn a raw provider profile into a User.

        Uses the provider's own mapping when it has one (sync or async),
        otherwise the generic field heuristics.

        Raises:
            ProfileProcessingError: The mapping failed; the raw profile is
                attached for diagnostics
        """
        try:
            if provider.profile is None:
                return default_profile(raw_profile)

            result = provider.profile(raw_profile, tokens)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, User):
                return result
            return User.model_validate(result)
        except Exception as e:
            logger.warning(f"Profile processing for {provider.id} failed: {e}")
            raise ProfileProcessingError(str(e), raw_profile) from e

    async def complete_oauth_flow(
        self,
        provider: OAuthProviderConfig,
        code: str,
        state: str,
        callback_url: str,
    ) -> OAuthFlowResult:
        """Exchange the code, fetch the profile and normalize it."""
        tokens = await self.exchange_code_for_tokens(provider, code, state, callback_url)
        profile = await self.fetch_user_profile(provider, tokens)
        user = await self.normalize_profile(provider, profile, tokens)
        logger.info(f"Completed OAuth sign-in with provider={provider.id} user={user.id}")
        return OAuthFlowResult(user=user, tokens=tokens, profile=profile)


# Module-level instance getter
_service_instance: Optional[OAuthService] = None


def get_oauth_service() -> OAuthService:
    """Get the OAuth service singleton."""
    global _service_instance
    if _service_instance is None:
        _service_instance = OAuthService()
    return _service_instance


def reset_oauth_service() -> None:
    """Reset the OAuth service singleton (for testing)."""
    global _service_instance
    _service_instance = None
