"""OAuth provider implementations.

Supported vendors:
- Bitbucket Cloud (HTTP Basic client auth, separate emails endpoint)
- GitHub (JSON token request, emails fallback)
- GitLab (gitlab.com or self-hosted)
- Google (offline access, OpenID userinfo)
"""

from oauth_broker.providers.base import HTTPOAuthProvider, OAuthProvider, select_email
from oauth_broker.providers.bitbucket import BitbucketProvider
from oauth_broker.providers.factory import SUPPORTED_PROVIDERS, build_providers, create_provider
from oauth_broker.providers.github import GitHubProvider
from oauth_broker.providers.gitlab import GitLabProvider
from oauth_broker.providers.google import GoogleProvider

__all__ = [
    "OAuthProvider",
    "HTTPOAuthProvider",
    "select_email",
    "BitbucketProvider",
    "GitHubProvider",
    "GitLabProvider",
    "GoogleProvider",
    "SUPPORTED_PROVIDERS",
    "build_providers",
    "create_provider",
]
