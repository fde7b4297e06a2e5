"""Signed OAuth state and replay protection.

- StateCodec: HMAC-SHA256 signed, time-bounded state tokens
- NonceStore: single-use registry of outstanding nonces (memory or Redis)
"""

from oauth_broker.state.codec import StateCodec, canonical_payload
from oauth_broker.state.nonce_store import NonceStore
from oauth_broker.state.nonce_store_factory import get_nonce_store
from oauth_broker.state.nonce_store_memory import InMemoryNonceStore
from oauth_broker.state.nonce_store_redis import RedisNonceStore

__all__ = [
    "StateCodec",
    "canonical_payload",
    "NonceStore",
    "get_nonce_store",
    "InMemoryNonceStore",
    "RedisNonceStore",
]
