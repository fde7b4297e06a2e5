"""Error taxonomy for the OAuth broker.

Every component raises ``OAuthError`` (or one of its subclasses), carrying a
message, an HTTP-style status code and the provider it is attributed to.
The web layer maps these directly to responses.
"""

from typing import Any

INVALID_STATE_MESSAGE = "Invalid or expired OAuth state parameter"


class OAuthError(Exception):
    """OAuth failure with an HTTP-style status.

    Attributes:
        message: Human-readable description
        status_code: HTTP status the caller should respond with
        provider: Provider the failure is attributed to, if any
    """

    def __init__(self, message: str, status_code: int, provider: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider = provider

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an error response body."""
        return {
            "error": self.message,
            "status_code": self.status_code,
            "provider": self.provider,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code}, provider={self.provider!r})"
        )


class ProviderConflictError(OAuthError):
    """A provider with the same name is already registered."""

    def __init__(self, provider: str):
        super().__init__(f'Provider "{provider}" is already registered', 409, provider)


class ProviderNotFoundError(OAuthError):
    """No provider is registered under the requested name."""

    def __init__(self, provider: str):
        super().__init__(f'Provider "{provider}" is not registered', 404, provider)


class InvalidStateError(OAuthError):
    """State token rejected.

    Bad signature, expiry, replay and malformed input all produce this exact
    error so a remote caller cannot tell them apart.
    """

    def __init__(self):
        super().__init__(INVALID_STATE_MESSAGE, 400, None)


class ProviderExchangeError(OAuthError):
    """Token endpoint call failed (code exchange or refresh)."""


class ProviderProfileError(OAuthError):
    """Profile endpoint call failed."""
