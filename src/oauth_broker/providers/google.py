"""Google OAuth provider.

Requests offline access so the exchange yields a refresh token. Google
accounts have no handle, so ``Profile.username`` is the email local part
(or the subject when no email was granted).
"""

import httpx

from oauth_broker.models import Profile, ProviderConfig, Token
from oauth_broker.providers.base import DEFAULT_TIMEOUT, HTTPOAuthProvider
from oauth_broker.utils.clock import Clock, now_ms

GOOGLE_AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_PROFILE_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
GOOGLE_SCOPES = ["openid", "email", "profile"]


def create_google_config(
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    scopes: list[str] | None = None,
    prompt: str | None = None,
) -> ProviderConfig:
    extra_params = {"access_type": "offline"}
    if prompt:
        extra_params["prompt"] = prompt
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scopes=list(scopes) if scopes is not None else list(GOOGLE_SCOPES),
        authorization_url=GOOGLE_AUTHORIZATION_URL,
        token_url=GOOGLE_TOKEN_URL,
        profile_url=GOOGLE_PROFILE_URL,
        extra_params=extra_params,
    )


class GoogleProvider(HTTPOAuthProvider):
    """Google provider backed by the OpenID userinfo endpoint."""

    name = "google"
    display_name = "Google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: list[str] | None = None,
        prompt: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
    ):
        super().__init__(
            create_google_config(client_id, client_secret, redirect_uri, scopes, prompt),
            http_client=http_client,
            timeout=timeout,
            clock=clock,
        )

    async def fetch_profile(self, token: Token) -> Profile:
        user = await self._get_json(self.config.profile_url, token)
        subject = str(self._require_field(user, "sub"))
        email = user.get("email")

        return Profile(
            provider_id=subject,
            provider=self.name,
            email=email,
            email_verified=bool(user.get("email_verified")),
            display_name=user.get("name"),
            username=email.split("@", 1)[0] if email else subject,
            avatar_url=user.get("picture"),
            profile_url=None,
            raw=user,
        )
