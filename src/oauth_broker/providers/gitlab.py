"""GitLab OAuth provider (gitlab.com or self-hosted)."""

import httpx

from oauth_broker.models import Profile, ProviderConfig, Token
from oauth_broker.providers.base import DEFAULT_TIMEOUT, HTTPOAuthProvider
from oauth_broker.utils.clock import Clock, now_ms

GITLAB_BASE_URL = "https://gitlab.com"
GITLAB_SCOPES = ["read_user", "openid", "email"]


def create_gitlab_config(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    scopes: list[str] | None = None,
    base_url: str | None = None,
) -> ProviderConfig:
    """Build a GitLab configuration.

    Args:
        client_id: Application ID
        client_secret: Application secret
        redirect_uri: Registered callback URL
        scopes: Requested scopes
        base_url: Instance URL for self-hosted GitLab (gitlab.com by default)

    Returns:
        ProviderConfig rooted at the instance URL
    """
    base_url = (base_url or GITLAB_BASE_URL).rstrip("/")
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scopes=list(scopes) if scopes is not None else list(GITLAB_SCOPES),
        authorization_url=f"{base_url}/oauth/authorize",
        token_url=f"{base_url}/oauth/token",
        profile_url=f"{base_url}/api/v4/user",
    )


class GitLabProvider(HTTPOAuthProvider):
    """GitLab provider. The email is verified iff ``confirmed_at`` is set."""

    name = "gitlab"
    display_name = "GitLab"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
    ):
        super().__init__(
            create_gitlab_config(client_id, client_secret, redirect_uri, scopes, base_url),
            http_client=http_client,
            timeout=timeout,
            clock=clock,
        )

    async def fetch_profile(self, token: Token) -> Profile:
        user = await self._get_json(self.config.profile_url, token)
        provider_id = str(self._require_field(user, "id"))
        email = user.get("email")

        return Profile(
            provider_id=provider_id,
            provider=self.name,
            email=email,
            email_verified=bool(email and user.get("confirmed_at")),
            display_name=user.get("name"),
            username=user.get("username") or provider_id,
            avatar_url=user.get("avatar_url"),
            profile_url=user.get("web_url"),
            raw=user,
        )
