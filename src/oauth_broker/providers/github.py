"""GitHub OAuth provider.

GitHub accepts the token request as JSON and only returns JSON when asked.
A public profile email is treated as verified; otherwise the email comes
from /user/emails with the same primary-then-verified policy as Bitbucket.
"""

from typing import Any

import httpx
from loguru import logger

from oauth_broker.errors import ProviderProfileError
from oauth_broker.models import Profile, ProviderConfig, Token
from oauth_broker.providers.base import DEFAULT_TIMEOUT, HTTPOAuthProvider, select_email
from oauth_broker.utils.clock import Clock, now_ms

GITHUB_AUTHORIZATION_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_PROFILE_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"
GITHUB_SCOPES = ["read:user", "user:email"]


def create_github_config(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    scopes: list[str] | None = None,
) -> ProviderConfig:
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scopes=list(scopes) if scopes is not None else list(GITHUB_SCOPES),
        authorization_url=GITHUB_AUTHORIZATION_URL,
        token_url=GITHUB_TOKEN_URL,
        profile_url=GITHUB_PROFILE_URL,
        extra_params={"allow_signup": "true"},
    )


class GitHubProvider(HTTPOAuthProvider):
    """GitHub OAuth App provider."""

    name = "github"
    display_name = "GitHub"
    accept = "application/vnd.github+json"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
        emails_url: str = GITHUB_EMAILS_URL,
    ):
        super().__init__(
            create_github_config(client_id, client_secret, redirect_uri, scopes),
            http_client=http_client,
            timeout=timeout,
            clock=clock,
        )
        self.emails_url = emails_url

    def _token_request_kwargs(self, data: dict[str, str]) -> dict[str, Any]:
        return {
            "json": {
                **data,
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret.get_secret_value(),
            },
            "headers": {"Accept": "application/json"},
        }

    async def fetch_profile(self, token: Token) -> Profile:
        user = await self._get_json(self.config.profile_url, token)
        provider_id = str(self._require_field(user, "id"))

        email = user.get("email")
        email_verified = bool(email)
        if not email:
            entry = await self._fetch_email(token)
            if entry:
                email = entry["email"]
                email_verified = bool(entry.get("verified"))

        return Profile(
            provider_id=provider_id,
            provider=self.name,
            email=email,
            email_verified=email_verified,
            display_name=user.get("name"),
            username=user.get("login") or provider_id,
            avatar_url=user.get("avatar_url"),
            profile_url=user.get("html_url"),
            raw=user,
        )

    async def _fetch_email(self, token: Token) -> dict[str, Any] | None:
        try:
            entries = await self._get_json(self.emails_url, token, action="email fetch")
        except ProviderProfileError as e:
            logger.warning(f"GitHub email lookup skipped: {e}")
            return None

        if not isinstance(entries, list):
            return None
        return select_email(entries, primary_key="primary", verified_key="verified")
