"""Application settings using Pydantic Settings.

The library API never reads these implicitly: ``create_manager`` and
``build_providers`` take a ``BrokerSettings`` argument. The module-level
``settings`` instance exists for the CLI.
"""

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class StateSettings(BaseModel):
    """Signed-state and nonce store configuration.

    Only read through BrokerSettings (OAUTH_BROKER_STATE__*).
    """

    signing_secret: SecretStr = Field(
        default=SecretStr(""),
        description="HMAC secret for state tokens (high entropy, from a secret store)",
    )
    ttl_ms: int = Field(
        default=10 * 60 * 1000,
        description="State lifetime in milliseconds (keep it to minutes)",
    )
    max_pending_states: int = Field(
        default=1000,
        description="Maximum outstanding nonces before FIFO eviction",
    )
    default_return_to: str = Field(default="/", description="Fallback post-login redirect")

    store: str = Field(default="memory", description="Nonce store backend: memory | redis")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    redis_key_prefix: str = Field(
        default="oauth_broker:nonce",
        description="Key prefix for nonces in Redis",
    )


class ProviderSettings(BaseModel):
    """Credentials for one vendor, registered in its developer console."""

    client_id: str = Field(default="", description="OAuth client ID")
    client_secret: SecretStr = Field(default=SecretStr(""), description="OAuth client secret")
    redirect_uri: str = Field(default="", description="Registered callback URL")
    scopes: list[str] | None = Field(
        default=None,
        description="Scope override (vendor defaults when unset)",
    )
    base_url: str | None = Field(
        default=None,
        description="Instance base URL for self-hosted vendors (GitLab)",
    )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret.get_secret_value())


class BrokerSettings(BaseSettings):
    """OAuth broker configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OAUTH_BROKER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    state: StateSettings = Field(default_factory=StateSettings)

    bitbucket: ProviderSettings = Field(default_factory=ProviderSettings)
    github: ProviderSettings = Field(default_factory=ProviderSettings)
    gitlab: ProviderSettings = Field(default_factory=ProviderSettings)
    google: ProviderSettings = Field(default_factory=ProviderSettings)

    http_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for vendor token/profile calls",
    )


settings = BrokerSettings()
