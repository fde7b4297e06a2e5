"""Unit tests for the GitHub, GitLab and Google providers."""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from oauth_broker.errors import ProviderExchangeError, ProviderProfileError
from oauth_broker.models import Token
from oauth_broker.providers.github import (
    GITHUB_EMAILS_URL,
    GITHUB_PROFILE_URL,
    GITHUB_TOKEN_URL,
    GitHubProvider,
)
from oauth_broker.providers.gitlab import GitLabProvider
from oauth_broker.providers.google import (
    GOOGLE_PROFILE_URL,
    GOOGLE_TOKEN_URL,
    GoogleProvider,
)

REDIRECT = "https://app.example.com/oauth/callback"


def _query(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


@pytest.fixture
def token(clock):
    return Token(access_token="access-1", obtained_at=clock.now)


class TestGitHub:
    @pytest.fixture
    def github(self, clock):
        return GitHubProvider("gh-client", "gh-secret", REDIRECT, clock=clock)

    def test_authorization_url(self, github):
        params = _query(github.get_authorization_url("s1"))

        assert github.get_authorization_url("s1").startswith(
            "https://github.com/login/oauth/authorize?"
        )
        assert params["scope"] == "read:user user:email"
        assert params["allow_signup"] == "true"
        assert params["state"] == "s1"

    @pytest.mark.asyncio
    async def test_exchange_sends_json_body(self, github, clock, respx_mock):
        route = respx_mock.post(GITHUB_TOKEN_URL).mock(
            return_value=httpx.Response(
                200,
                json={"access_token": "gho_1", "token_type": "bearer", "scope": "read:user"},
            )
        )

        token = await github.exchange_code("code-1")

        request = route.calls.last.request
        assert json.loads(request.content) == {
            "grant_type": "authorization_code",
            "code": "code-1",
            "redirect_uri": REDIRECT,
            "client_id": "gh-client",
            "client_secret": "gh-secret",
        }
        assert request.headers["Accept"] == "application/json"
        assert "Authorization" not in request.headers
        assert token.scope == "read:user"
        assert token.obtained_at == clock.now

    @pytest.mark.asyncio
    async def test_bad_verification_code(self, github, respx_mock):
        """GitHub reports a bad code with 200 and an error field."""
        respx_mock.post(GITHUB_TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"error": "bad_verification_code"})
        )

        with pytest.raises(ProviderExchangeError) as exc_info:
            await github.exchange_code("bad")

        assert exc_info.value.status_code == 400
        assert exc_info.value.provider == "github"

    @pytest.mark.asyncio
    async def test_public_email_used_directly(self, github, token, respx_mock):
        respx_mock.get(GITHUB_PROFILE_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": 42,
                    "login": "octocat",
                    "name": "The Octocat",
                    "email": "octo@github.com",
                    "avatar_url": "https://avatars.example.com/42",
                    "html_url": "https://github.com/octocat",
                },
            )
        )

        profile = await github.fetch_profile(token)

        assert profile.provider_id == "42"
        assert profile.username == "octocat"
        assert profile.email == "octo@github.com"
        assert profile.email_verified is True
        assert profile.profile_url == "https://github.com/octocat"

    @pytest.mark.asyncio
    async def test_private_email_falls_back_to_emails_endpoint(self, github, token, respx_mock):
        respx_mock.get(GITHUB_PROFILE_URL).mock(
            return_value=httpx.Response(200, json={"id": 42, "login": "octocat", "email": None})
        )
        emails_route = respx_mock.get(GITHUB_EMAILS_URL).mock(
            return_value=httpx.Response(
                200,
                json=[
                    {"email": "noreply@github.com", "primary": False, "verified": True},
                    {"email": "octo@example.com", "primary": True, "verified": True},
                ],
            )
        )

        profile = await github.fetch_profile(token)

        assert emails_route.called
        assert profile.email == "octo@example.com"
        assert profile.email_verified is True

    @pytest.mark.asyncio
    async def test_emails_endpoint_forbidden(self, github, token, respx_mock):
        respx_mock.get(GITHUB_PROFILE_URL).mock(
            return_value=httpx.Response(200, json={"id": 42, "login": "octocat"})
        )
        respx_mock.get(GITHUB_EMAILS_URL).mock(return_value=httpx.Response(404))

        profile = await github.fetch_profile(token)

        assert profile.email is None
        assert profile.email_verified is False


class TestGitLab:
    def test_default_instance(self, clock):
        gitlab = GitLabProvider("gl-client", "gl-secret", REDIRECT, clock=clock)

        assert gitlab.config.authorization_url == "https://gitlab.com/oauth/authorize"
        assert gitlab.config.token_url == "https://gitlab.com/oauth/token"
        assert gitlab.config.profile_url == "https://gitlab.com/api/v4/user"

    def test_self_hosted_instance(self, clock):
        gitlab = GitLabProvider(
            "gl-client",
            "gl-secret",
            REDIRECT,
            base_url="https://git.internal.example.com/",
            clock=clock,
        )

        url = gitlab.get_authorization_url("s1")
        assert url.startswith("https://git.internal.example.com/oauth/authorize?")
        assert gitlab.config.profile_url == "https://git.internal.example.com/api/v4/user"

    @pytest.mark.asyncio
    async def test_credentials_in_form_body(self, clock, respx_mock):
        gitlab = GitLabProvider("gl-client", "gl-secret", REDIRECT, clock=clock)
        route = respx_mock.post("https://gitlab.com/oauth/token").mock(
            return_value=httpx.Response(
                200,
                json={"access_token": "glpat", "refresh_token": "glr", "expires_in": 7200},
            )
        )

        token = await gitlab.exchange_code("code-1")

        form = parse_qs(route.calls.last.request.content.decode())
        assert form["client_id"] == ["gl-client"]
        assert form["client_secret"] == ["gl-secret"]
        assert token.expires_at == clock.now + 7200 * 1000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "confirmed_at,expected", [("2024-01-01T00:00:00Z", True), (None, False)]
    )
    async def test_email_verified_iff_confirmed(
        self, clock, token, respx_mock, confirmed_at, expected
    ):
        gitlab = GitLabProvider("gl-client", "gl-secret", REDIRECT, clock=clock)
        respx_mock.get("https://gitlab.com/api/v4/user").mock(
            return_value=httpx.Response(
                200,
                json={
                    "id": 7,
                    "username": "tanuki",
                    "name": "Tanuki",
                    "email": "tanuki@example.com",
                    "confirmed_at": confirmed_at,
                    "web_url": "https://gitlab.com/tanuki",
                },
            )
        )

        profile = await gitlab.fetch_profile(token)

        assert profile.provider_id == "7"
        assert profile.username == "tanuki"
        assert profile.email_verified is expected
        assert profile.profile_url == "https://gitlab.com/tanuki"


class TestGoogle:
    @pytest.fixture
    def google(self, clock):
        return GoogleProvider("g-client", "g-secret", REDIRECT, prompt="consent", clock=clock)

    def test_requests_offline_access(self, google):
        params = _query(google.get_authorization_url("s1"))

        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["scope"] == "openid email profile"

    def test_prompt_omitted_by_default(self, clock):
        google = GoogleProvider("g-client", "g-secret", REDIRECT, clock=clock)

        assert "prompt" not in _query(google.get_authorization_url("s1"))

    @pytest.mark.asyncio
    async def test_token_failure(self, google, respx_mock):
        respx_mock.post(GOOGLE_TOKEN_URL).mock(
            return_value=httpx.Response(400, json={"error": "invalid_grant"})
        )

        with pytest.raises(ProviderExchangeError) as exc_info:
            await google.exchange_code("code-1")

        assert exc_info.value.status_code == 400
        assert "invalid_grant" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_profile_from_userinfo(self, google, token, respx_mock):
        respx_mock.get(GOOGLE_PROFILE_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "sub": "1098",
                    "email": "jane.doe@example.com",
                    "email_verified": True,
                    "name": "Jane Doe",
                    "picture": "https://lh3.example.com/photo.jpg",
                },
            )
        )

        profile = await google.fetch_profile(token)

        assert profile.provider_id == "1098"
        assert profile.username == "jane.doe"
        assert profile.email_verified is True
        assert profile.avatar_url == "https://lh3.example.com/photo.jpg"
        assert profile.profile_url is None

    @pytest.mark.asyncio
    async def test_username_falls_back_to_subject(self, google, token, respx_mock):
        respx_mock.get(GOOGLE_PROFILE_URL).mock(
            return_value=httpx.Response(200, json={"sub": "1098"})
        )

        profile = await google.fetch_profile(token)

        assert profile.username == "1098"
        assert profile.email is None

    @pytest.mark.asyncio
    async def test_invalid_json_maps_to_502(self, google, token, respx_mock):
        respx_mock.get(GOOGLE_PROFILE_URL).mock(
            return_value=httpx.Response(200, text="<html>oops</html>")
        )

        with pytest.raises(ProviderProfileError) as exc_info:
            await google.fetch_profile(token)

        assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_github_email_entry_without_address(clock, token, respx_mock):
    github = GitHubProvider("gh-client", "gh-secret", REDIRECT, clock=clock)
    respx_mock.get(GITHUB_PROFILE_URL).mock(
        return_value=httpx.Response(200, json={"id": 42, "login": "octocat"})
    )
    respx_mock.get(GITHUB_EMAILS_URL).mock(
        return_value=httpx.Response(200, json=[{"primary": True, "verified": True}])
    )

    profile = await github.fetch_profile(token)

    assert profile.email is None
    assert profile.email_verified is False
