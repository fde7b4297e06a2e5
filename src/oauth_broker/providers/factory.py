"""OAuth provider factory.

Creates provider instances for every vendor configured in settings.
"""

import httpx
from loguru import logger

from oauth_broker.providers.base import OAuthProvider
from oauth_broker.providers.bitbucket import BitbucketProvider
from oauth_broker.providers.github import GitHubProvider
from oauth_broker.providers.gitlab import GitLabProvider
from oauth_broker.providers.google import GoogleProvider
from oauth_broker.settings import BrokerSettings, ProviderSettings

SUPPORTED_PROVIDERS = ("bitbucket", "github", "gitlab", "google")


def create_provider(
    name: str,
    provider_settings: ProviderSettings,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 10.0,
) -> OAuthProvider:
    """Create one provider by vendor name.

    Args:
        name: Vendor name (bitbucket, github, gitlab, google)
        provider_settings: Credentials and overrides for the vendor
        http_client: Shared HTTP client (optional)
        timeout: Request timeout in seconds

    Returns:
        Configured provider

    Raises:
        ValueError: Unsupported vendor
    """
    common = {
        "client_id": provider_settings.client_id,
        "client_secret": provider_settings.client_secret.get_secret_value(),
        "redirect_uri": provider_settings.redirect_uri,
        "scopes": provider_settings.scopes,
        "http_client": http_client,
        "timeout": timeout,
    }
    name = name.lower()

    if name == "bitbucket":
        return BitbucketProvider(**common)

    elif name == "github":
        return GitHubProvider(**common)

    elif name == "gitlab":
        return GitLabProvider(base_url=provider_settings.base_url, **common)

    elif name == "google":
        return GoogleProvider(**common)

    else:
        raise ValueError(
            f"Unsupported OAuth provider: {name}. "
            f"Valid options: {', '.join(SUPPORTED_PROVIDERS)}"
        )


def build_providers(
    broker_settings: BrokerSettings,
    http_client: httpx.AsyncClient | None = None,
) -> list[OAuthProvider]:
    """Create every provider whose client ID and secret are configured.

    Example:
        >>> providers = build_providers(BrokerSettings())
        >>> [p.name for p in providers]
        ['bitbucket', 'github']
    """
    providers = []
    for name in SUPPORTED_PROVIDERS:
        provider_settings: ProviderSettings = getattr(broker_settings, name)
        if not provider_settings.configured:
            logger.debug(f"Skipping {name}: no client credentials configured")
            continue
        providers.append(
            create_provider(
                name,
                provider_settings,
                http_client=http_client,
                timeout=broker_settings.http_timeout,
            )
        )
    logger.info(f"Built OAuth providers: {[p.name for p in providers]}")
    return providers
