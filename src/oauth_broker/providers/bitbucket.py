"""Bitbucket Cloud OAuth 2.0 provider.

Bitbucket specifics:
- Client credentials go in an HTTP Basic header on the token endpoint
- Granted scopes come back in ``scopes`` rather than ``scope``
- The user resource carries no email; it lives behind /2.0/user/emails
"""

from typing import Any

import httpx
from loguru import logger

from oauth_broker.errors import ProviderProfileError
from oauth_broker.models import Profile, ProviderConfig, Token
from oauth_broker.providers.base import DEFAULT_TIMEOUT, HTTPOAuthProvider, select_email
from oauth_broker.utils.clock import Clock, now_ms

BITBUCKET_AUTHORIZATION_URL = "https://bitbucket.org/site/oauth2/authorize"
BITBUCKET_TOKEN_URL = "https://bitbucket.org/site/oauth2/access_token"
BITBUCKET_PROFILE_URL = "https://api.bitbucket.org/2.0/user"
BITBUCKET_EMAILS_URL = "https://api.bitbucket.org/2.0/user/emails"
BITBUCKET_SCOPES = ["account", "email"]


def create_bitbucket_config(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    scopes: list[str] | None = None,
) -> ProviderConfig:
    """Build a Bitbucket configuration with the default endpoints.

    Args:
        client_id: OAuth consumer key
        client_secret: OAuth consumer secret
        redirect_uri: Registered callback URL
        scopes: Requested scopes (``account email`` by default)

    Returns:
        ProviderConfig for Bitbucket Cloud
    """
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scopes=list(scopes) if scopes is not None else list(BITBUCKET_SCOPES),
        authorization_url=BITBUCKET_AUTHORIZATION_URL,
        token_url=BITBUCKET_TOKEN_URL,
        profile_url=BITBUCKET_PROFILE_URL,
    )


class BitbucketProvider(HTTPOAuthProvider):
    """Bitbucket Cloud provider.

    Example:
        >>> provider = BitbucketProvider("key", "secret", "https://app/oauth/bitbucket/callback")
        >>> provider.get_authorization_url("state-123")
        'https://bitbucket.org/site/oauth2/authorize?client_id=key&...'
    """

    name = "bitbucket"
    display_name = "Bitbucket"
    basic_auth = True

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
        emails_url: str = BITBUCKET_EMAILS_URL,
    ):
        super().__init__(
            create_bitbucket_config(client_id, client_secret, redirect_uri, scopes),
            http_client=http_client,
            timeout=timeout,
            clock=clock,
        )
        self.emails_url = emails_url

    def _token_scope(self, payload: dict[str, Any]) -> str | None:
        return payload.get("scopes") or payload.get("scope")

    async def fetch_profile(self, token: Token) -> Profile:
        user = await self._get_json(self.config.profile_url, token)
        provider_id = self._require_field(user, "uuid")
        email = await self._fetch_email(token)
        links = user.get("links") or {}

        return Profile(
            provider_id=provider_id,
            provider=self.name,
            email=email["email"] if email else None,
            email_verified=bool(email and email.get("is_confirmed")),
            display_name=user.get("display_name"),
            username=user.get("username") or user.get("nickname") or provider_id,
            avatar_url=(links.get("avatar") or {}).get("href"),
            profile_url=(links.get("html") or {}).get("href"),
            raw=user,
        )

    async def _fetch_email(self, token: Token) -> dict[str, Any] | None:
        """Primary confirmed email, else first confirmed, else None.

        A failing emails call is not fatal: the profile is returned without
        an email.
        """
        try:
            data = await self._get_json(self.emails_url, token, action="email fetch")
        except ProviderProfileError as e:
            logger.warning(f"Bitbucket email lookup skipped: {e}")
            return None

        entries = data.get("values", []) if isinstance(data, dict) else []
        return select_email(entries, primary_key="is_primary", verified_key="is_confirmed")
