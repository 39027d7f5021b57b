"""
ProviderRegistry — immutable lookup of configured OAuth providers.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping

from connectors.errors import ProviderNotConfigured
from connectors.models import OAuthConfig
from connectors.providers import PROVIDER_CATALOGUE, display_name, redirect_uri

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Read-only map of provider key → ``OAuthConfig``.

    Built once at startup and handed to ``OAuthManager``. A provider whose
    client id or secret was empty at build time is simply absent.
    """

    def __init__(self, configs: Iterable[OAuthConfig] = ()) -> None:
        self._configs: Mapping[str, OAuthConfig] = MappingProxyType(
            {c.provider_key: c for c in configs}
        )

    @classmethod
    def from_settings(cls, settings) -> "ProviderRegistry":
        """Register every catalogue provider that has client credentials."""
        configs: List[OAuthConfig] = []
        for provider, (label, auth_url, token_url, scopes, _slug) in PROVIDER_CATALOGUE.items():
            client_id, client_secret = settings.provider_credentials(provider)
            if not (client_id and client_secret):
                logger.warning(
                    "Provider %s skipped — not configured (missing client_id/secret)",
                    provider,
                )
                continue
            configs.append(
                OAuthConfig(
                    provider_key=provider,
                    client_id=client_id,
                    client_secret=client_secret,
                    redirect_uri=redirect_uri(settings.api_base_url, provider),
                    scopes=scopes,
                    auth_url=auth_url,
                    token_url=token_url,
                )
            )
            logger.info("Provider registered: %s (%s)", label, provider)
        return cls(configs)

    def config_for(self, provider: str) -> OAuthConfig:
        try:
            return self._configs[provider]
        except KeyError:
            raise ProviderNotConfigured(provider) from None

    def __contains__(self, provider: object) -> bool:
        return provider in self._configs

    def list_configured(self) -> List[str]:
        return list(self._configs)

    def list_providers(self) -> List[Dict[str, object]]:
        """Every known provider with its configuration status (no secrets)."""
        return [
            {
                "provider": provider,
                "display_name": display_name(provider),
                "configured": provider in self._configs,
            }
            for provider in PROVIDER_CATALOGUE
        ]
