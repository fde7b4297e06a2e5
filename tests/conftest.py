"""Shared fixtures for OAuth broker tests."""

import pytest

from oauth_broker.manager import OAuthManager
from oauth_broker.models import ManagerConfig, Profile, Token
from oauth_broker.providers.base import OAuthProvider
from oauth_broker.providers.bitbucket import BitbucketProvider

SIGNING_SECRET = "test-signing-secret-0123456789abcdef0123456789"
REDIRECT_URI = "https://app.example.com/oauth/bitbucket/callback"
START_MS = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class StubProvider(OAuthProvider):
    """In-memory provider for manager tests that need no HTTP."""

    def __init__(self, name: str = "stub", clock=None):
        self.name = name
        self._clock = clock or FakeClock()
        self.exchanged: list[str] = []

    def get_authorization_url(self, state: str) -> str:
        return f"https://{self.name}.example.com/authorize?state={state}"

    async def exchange_code(self, code: str) -> Token:
        self.exchanged.append(code)
        return Token(access_token=f"token-for-{code}", obtained_at=self._clock())

    async def fetch_profile(self, token: Token) -> Profile:
        return Profile(
            provider_id="user-1",
            provider=self.name,
            email="user@example.com",
            email_verified=True,
            username="user1",
            raw={"id": "user-1"},
        )

    async def refresh_token(self, refresh_token: str) -> Token:
        return Token(access_token="refreshed", refresh_token=refresh_token, obtained_at=self._clock())


@pytest.fixture
def clock():
    """Fixed clock starting at START_MS."""
    return FakeClock()


@pytest.fixture
def manager_config():
    """Manager configuration with a short TTL and small capacity."""
    return ManagerConfig(
        signing_secret=SIGNING_SECRET,
        ttl_ms=60_000,
        max_pending_states=5,
        default_return_to="/home",
    )


@pytest.fixture
def manager(manager_config, clock):
    """Manager with no providers registered."""
    return OAuthManager(manager_config, clock=clock)


@pytest.fixture
def bitbucket(clock):
    """Bitbucket provider with test credentials."""
    return BitbucketProvider("bb-client", "bb-secret", REDIRECT_URI, clock=clock)


@pytest.fixture
def signing_secret():
    return SIGNING_SECRET


@pytest.fixture
def make_stub(clock):
    """Factory for StubProvider instances sharing the test clock."""

    def factory(name: str = "stub") -> StubProvider:
        return StubProvider(name, clock)

    return factory
