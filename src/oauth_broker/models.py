"""Data models shared by the manager, the state codec and providers.

Providers map vendor payloads onto these models so the manager and its
callers only ever see one shape per concept.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from oauth_broker.utils.clock import now_ms

MIN_SECRET_LENGTH = 32


class ProviderConfig(BaseModel):
    """Static per-vendor configuration.

    Built once at startup. ``client_secret`` is a ``SecretStr`` so it never
    shows up in reprs or logs.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(description="OAuth client (consumer) ID")
    client_secret: SecretStr = Field(description="OAuth client secret")
    redirect_uri: str = Field(description="Callback URL registered with the vendor")
    scopes: list[str] = Field(default_factory=list, description="Requested scopes")
    authorization_url: str = Field(description="Vendor consent page")
    token_url: str = Field(description="Vendor token endpoint")
    profile_url: str = Field(description="Vendor user resource endpoint")
    extra_params: dict[str, str] = Field(
        default_factory=dict,
        description="Additional query parameters for the authorization URL",
    )


class Token(BaseModel):
    """Result of a code exchange or refresh.

    ``obtained_at`` is always the server clock at exchange time, never a
    vendor-reported timestamp.
    """

    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = Field(default=None, description="Lifetime in seconds")
    refresh_token: str | None = None
    scope: str | None = None
    obtained_at: int = Field(description="Epoch milliseconds when the token was obtained")

    @property
    def expires_at(self) -> int | None:
        """Expiry in epoch milliseconds, or None if the vendor gave no lifetime."""
        if self.expires_in is None:
            return None
        return self.obtained_at + self.expires_in * 1000

    def is_expired(self, now: int | None = None) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (now if now is not None else now_ms()) >= expires_at


class Profile(BaseModel):
    """Normalized identity returned by a provider."""

    provider_id: str = Field(description="Vendor's stable user identifier")
    provider: str = Field(description="Provider name (e.g. 'bitbucket')")
    email: str | None = None
    email_verified: bool = False
    display_name: str | None = None
    username: str
    avatar_url: str | None = None
    profile_url: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, description="Unmodified vendor payload")


class FlowState(BaseModel):
    """Context carried through the authorization redirect.

    ``issued_at`` and ``nonce`` are set by the state codec, never by callers.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: str
    return_to: str
    metadata: dict[str, str] = Field(default_factory=dict)
    issued_at: int = Field(description="Epoch milliseconds at issuance")
    nonce: str


class ManagerConfig(BaseModel):
    """Orchestrator-wide settings."""

    signing_secret: SecretStr = Field(description="HMAC key for state tokens")
    ttl_ms: int = Field(default=10 * 60 * 1000, gt=0, description="State lifetime in ms")
    max_pending_states: int = Field(default=1000, gt=0, description="Nonce store capacity")
    default_return_to: str = Field(default="/", description="Post-login redirect fallback")

    @field_validator("signing_secret")
    @classmethod
    def check_secret_length(cls, value: SecretStr) -> SecretStr:
        if len(value.get_secret_value()) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"signing_secret must be at least {MIN_SECRET_LENGTH} characters"
            )
        return value


class FlowInitiation(BaseModel):
    """Result of starting a flow."""

    authorization_url: str = Field(description="URL to redirect the user agent to")
    state: str = Field(description="Opaque state to pass through the redirect")
    provider: str


class CallbackResult(BaseModel):
    """Result of a completed callback."""

    token: Token
    profile: Profile
    state: FlowState
