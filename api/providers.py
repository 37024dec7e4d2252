"""
Identity provider registry.

Applications register their provider descriptors here at startup; routes
look them up by the id in the URL.
"""

import logging
from typing import Iterator, Optional

from shared.exceptions import NotFoundError
from modules.oauth.models import OAuthProviderConfig

logger = logging.getLogger(__name__)


class UnknownProviderError(NotFoundError):
    """No provider is registered under the requested id."""

    def __init__(self, provider_id: str):
        super().__init__(
            f"Unknown identity provider: {provider_id}",
            code="UNKNOWN_PROVIDER",
            details={"provider": provider_id},
        )


class ProviderRegistry:
    """Providers keyed by id."""

    def __init__(self, providers: Optional[list[OAuthProviderConfig]] = None):
        self._providers: dict[str, OAuthProviderConfig] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: OAuthProviderConfig) -> None:
        if provider.id in self._providers:
            logger.warning(f"Replacing registered provider={provider.id}")
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> OAuthProviderConfig:
        """
        Raises:
            UnknownProviderError: Nothing registered under ``provider_id``
        """
        provider = self._providers.get(provider_id)
        if provider is None:
            raise UnknownProviderError(provider_id)
        return provider

    def ids(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[OAuthProviderConfig]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)
