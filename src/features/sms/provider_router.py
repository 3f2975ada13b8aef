"""SMS provider selection with ordered fallback."""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .providers import SmsProvider, SmsProviderType

logger = logging.getLogger(__name__)


class SmsProviderRouter:
    """Selects an available SMS provider, preferring a given carrier.

    The provider table is built once from the registered providers and never
    mutated afterwards: one provider per tag, the last registrant for a tag
    wins, and fallback follows registration order.
    """

    def __init__(self, providers: Iterable[SmsProvider]):
        table: dict[SmsProviderType, SmsProvider] = {}
        for provider in providers:
            if provider.provider_type in table:
                logger.warning(f"Replacing registered SMS provider for {provider.provider_type}")
            table[provider.provider_type] = provider
        self._providers: Mapping[SmsProviderType, SmsProvider] = MappingProxyType(table)

        logger.info(f"SMS provider router initialized with {len(table)} providers: {list(table)}")

    @property
    def providers(self) -> Mapping[SmsProviderType, SmsProvider]:
        """Read-only view of the provider table."""
        return self._providers

    def get_provider(self, provider_type: SmsProviderType) -> SmsProvider | None:
        """Get a specific provider by tag, regardless of availability."""
        return self._providers.get(provider_type)

    async def select_provider(self, preferred: SmsProviderType) -> SmsProvider | None:
        """Select an available provider.

        Args:
            preferred: Provider tag to try first

        Returns:
            The preferred provider if available, otherwise the first available
            provider in registration order, or None when no provider is available

        """
        provider = self._providers.get(preferred)
        if provider is not None:
            if await provider.is_available():
                logger.debug(f"Using preferred provider: {provider.name}")
                return provider
            logger.warning(f"Preferred provider {provider.name} not available, trying fallbacks")

        for provider_type, fallback in self._providers.items():
            if provider_type == preferred:
                continue
            if await fallback.is_available():
                logger.info(f"Using fallback provider: {fallback.name}")
                return fallback

        logger.error("No SMS provider available")
        return None

    async def list_available_providers(self) -> list[tuple[SmsProviderType, SmsProvider]]:
        """Probe every registered provider and return the available ones."""
        available = []
        for provider_type, provider in self._providers.items():
            if await provider.is_available():
                available.append((provider_type, provider))
        return available
