"""Multi-provider OAuth 2.0 authorization-code broker.

This package provides:
- A provider registry behind one uniform interface
- HMAC-signed, time-bounded, single-use state tokens (CSRF and replay safe)
- The callback pipeline: validate state, exchange code, fetch profile

Supported providers:
- Bitbucket, GitHub, GitLab, Google

It exposes no HTTP routes and keeps no sessions; a thin web layer calls
``initiate_flow`` and ``handle_callback``.
"""

from oauth_broker.errors import (
    InvalidStateError,
    OAuthError,
    ProviderConflictError,
    ProviderExchangeError,
    ProviderNotFoundError,
    ProviderProfileError,
)
from oauth_broker.manager import OAuthManager, create_manager
from oauth_broker.models import (
    CallbackResult,
    FlowInitiation,
    FlowState,
    ManagerConfig,
    Profile,
    ProviderConfig,
    Token,
)
from oauth_broker.providers import (
    BitbucketProvider,
    GitHubProvider,
    GitLabProvider,
    GoogleProvider,
    OAuthProvider,
)

__version__ = "0.1.0"

__all__ = [
    "OAuthManager",
    "create_manager",
    "OAuthProvider",
    "BitbucketProvider",
    "GitHubProvider",
    "GitLabProvider",
    "GoogleProvider",
    "CallbackResult",
    "FlowInitiation",
    "FlowState",
    "ManagerConfig",
    "Profile",
    "ProviderConfig",
    "Token",
    "OAuthError",
    "InvalidStateError",
    "ProviderConflictError",
    "ProviderExchangeError",
    "ProviderNotFoundError",
    "ProviderProfileError",
]
