"""Factory for nonce store backends.

Creates the NonceStore implementation selected by ``StateSettings.store``.
"""

from loguru import logger
from redis import Redis

from oauth_broker.settings import StateSettings
from oauth_broker.state.nonce_store import NonceStore
from oauth_broker.state.nonce_store_memory import InMemoryNonceStore
from oauth_broker.state.nonce_store_redis import RedisNonceStore
from oauth_broker.utils.clock import Clock, now_ms


def get_nonce_store(state_settings: StateSettings, clock: Clock = now_ms) -> NonceStore:
    """Create a nonce store from configuration.

    Args:
        state_settings: State configuration (``store`` selects the backend)
        clock: Epoch-millisecond clock shared with the state codec

    Returns:
        NonceStore implementation

    Raises:
        ValueError: If the store type is invalid
    """
    store_type = state_settings.store.lower()

    if store_type == "memory":
        logger.info("Initializing InMemoryNonceStore")
        return InMemoryNonceStore(max_entries=state_settings.max_pending_states, clock=clock)

    elif store_type == "redis":
        logger.info("Initializing RedisNonceStore")
        client = Redis.from_url(state_settings.redis_url, decode_responses=True)
        return RedisNonceStore(
            client,
            max_entries=state_settings.max_pending_states,
            key_prefix=state_settings.redis_key_prefix,
            clock=clock,
        )

    else:
        raise ValueError(
            f"Invalid nonce store type: {store_type}. "
            f"Valid options: memory, redis"
        )
