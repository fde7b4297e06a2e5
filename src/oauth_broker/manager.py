"""Multi-provider OAuth manager.

Owns the provider registry and the state configuration, and composes the
state codec, nonce store and provider interface into the two halves of the
authorization-code flow:

    initiate_flow:   look up provider -> issue signed state -> build URL
    handle_callback: validate+consume state -> exchange code -> fetch profile

Construct one manager per application configuration and hand it to the web
layer explicitly; there is no module-level instance.
"""

import threading

import httpx
from loguru import logger

from oauth_broker.errors import InvalidStateError, ProviderConflictError, ProviderNotFoundError
from oauth_broker.models import CallbackResult, FlowInitiation, FlowState, ManagerConfig
from oauth_broker.providers.base import OAuthProvider
from oauth_broker.providers.factory import build_providers
from oauth_broker.settings import BrokerSettings
from oauth_broker.state.codec import StateCodec
from oauth_broker.state.nonce_store import NonceStore
from oauth_broker.state.nonce_store_factory import get_nonce_store
from oauth_broker.state.nonce_store_memory import InMemoryNonceStore
from oauth_broker.utils.clock import Clock, now_ms


class OAuthManager:
    """Registry of OAuth providers and orchestrator of their flows.

    Safe to share between concurrent request handlers. The only shared
    mutable resources are the registry (guarded by a lock) and the nonce
    store (atomic consume).

    Example:
        >>> manager = OAuthManager(ManagerConfig(signing_secret=secret))
        >>> manager.register_provider(BitbucketProvider(key, secret, redirect_uri))
        >>> flow = manager.initiate_flow("bitbucket", return_to="/dashboard")
        >>> # redirect to flow.authorization_url, then on callback:
        >>> result = await manager.handle_callback(code, state)
    """

    def __init__(
        self,
        config: ManagerConfig,
        store: NonceStore | None = None,
        clock: Clock = now_ms,
    ):
        """Initialize the manager.

        Args:
            config: Signing secret, TTL, capacity and default redirect
            store: Nonce store (in-memory store sized from config if None)
            clock: Epoch-millisecond clock shared with the codec and store
        """
        self.config = config
        if store is None:
            store = InMemoryNonceStore(max_entries=config.max_pending_states, clock=clock)
        self.store = store
        self.codec = StateCodec(config.signing_secret, config.ttl_ms, self.store, clock=clock)
        self._providers: dict[str, OAuthProvider] = {}
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"OAuthManager(providers={self.list_providers()!r})"

    def register_provider(self, provider: OAuthProvider) -> None:
        """Register a provider under its name.

        Raises:
            ProviderConflictError: A provider with that name is already registered
        """
        with self._lock:
            if provider.name in self._providers:
                raise ProviderConflictError(provider.name)
            self._providers[provider.name] = provider
        logger.info(f"Registered OAuth provider: {provider.name}")

    def unregister_provider(self, name: str) -> bool:
        """Remove a provider.

        Returns:
            True if a provider was removed, False if none was registered
        """
        with self._lock:
            removed = self._providers.pop(name, None) is not None
        if removed:
            logger.info(f"Unregistered OAuth provider: {name}")
        return removed

    def get_provider(self, name: str) -> OAuthProvider | None:
        with self._lock:
            return self._providers.get(name)

    def has_provider(self, name: str) -> bool:
        with self._lock:
            return name in self._providers

    def list_providers(self) -> list[str]:
        """Registered provider names in registration order."""
        with self._lock:
            return list(self._providers)

    def _require_provider(self, name: str) -> OAuthProvider:
        provider = self.get_provider(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def initiate_flow(
        self,
        provider_name: str,
        return_to: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> FlowInitiation:
        """Start an authorization-code flow.

        Args:
            provider_name: Registered provider to authenticate with
            return_to: Post-login redirect (``default_return_to`` if omitted)
            metadata: Caller metadata carried inside the signed state

        Returns:
            FlowInitiation with the authorization URL and opaque state

        Raises:
            ProviderNotFoundError: Provider is not registered
        """
        provider = self._require_provider(provider_name)

        state, flow_state = self.codec.encode(
            provider_name,
            return_to if return_to is not None else self.config.default_return_to,
            metadata,
        )
        # a provider failure must not leave a registered nonce
        authorization_url = provider.get_authorization_url(state)
        self.codec.register(flow_state)
        logger.info(f"Initiated OAuth flow with {provider_name}")

        return FlowInitiation(
            authorization_url=authorization_url,
            state=state,
            provider=provider_name,
        )

    async def handle_callback(self, code: str, state_string: str) -> CallbackResult:
        """Complete a flow from the vendor's callback.

        The state is consumed before any network call, so it cannot be
        reused even if the exchange later fails; retry by starting a new flow.

        Args:
            code: Authorization code from the callback
            state_string: State parameter from the callback

        Returns:
            CallbackResult with token, normalized profile and the trusted state

        Raises:
            InvalidStateError: State is forged, expired, malformed or spent
            ProviderNotFoundError: Provider was unregistered since issuance
            ProviderExchangeError: Vendor rejected the code exchange
            ProviderProfileError: Vendor rejected the profile request
        """
        state = self.codec.validate(state_string, consume=True)
        if state is None:
            raise InvalidStateError()

        provider = self._require_provider(state.provider)

        token = await provider.exchange_code(code)
        profile = await provider.fetch_profile(token)
        logger.info(f"Completed OAuth callback for {state.provider} user {profile.provider_id}")

        return CallbackResult(token=token, profile=profile, state=state)

    def validate_state(self, state_string: str) -> FlowState:
        """Check a state without consuming its nonce.

        Only for pre-checks; the callback path must go through
        ``handle_callback``, which spends the nonce.

        Raises:
            InvalidStateError: State is forged, expired, malformed or spent
        """
        state = self.codec.validate(state_string, consume=False)
        if state is None:
            raise InvalidStateError()
        return state

    def get_authorization_url(self, provider_name: str, state: str) -> str:
        """Build an authorization URL for an externally managed state.

        Raises:
            ProviderNotFoundError: Provider is not registered
        """
        return self._require_provider(provider_name).get_authorization_url(state)


def create_manager(
    broker_settings: BrokerSettings,
    providers: list[OAuthProvider] | None = None,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock = now_ms,
) -> OAuthManager:
    """Build a manager from settings.

    Args:
        broker_settings: Broker configuration
        providers: Providers to register (every configured vendor if None)
        http_client: Shared HTTP client for providers built from settings
        clock: Epoch-millisecond clock

    Returns:
        OAuthManager with its nonce store and providers in place

    Raises:
        ValueError: Invalid state configuration (e.g. missing signing secret)
    """
    state_settings = broker_settings.state
    config = ManagerConfig(
        signing_secret=state_settings.signing_secret,
        ttl_ms=state_settings.ttl_ms,
        max_pending_states=state_settings.max_pending_states,
        default_return_to=state_settings.default_return_to,
    )
    manager = OAuthManager(config, store=get_nonce_store(state_settings, clock), clock=clock)

    if providers is None:
        providers = build_providers(broker_settings, http_client=http_client)
    for provider in providers:
        manager.register_provider(provider)

    return manager
