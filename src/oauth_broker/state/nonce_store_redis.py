"""Redis-backed nonce store for multi-instance deployments.

Layout:
    {prefix}:{nonce}   -> expiry (ms), with a PX TTL so Redis sweeps it
    {prefix}:index     -> list of pending nonces in issuance order

A nonce is pending while it is both in the index and its key is alive.
Registration appends to the index and trims it to ``max_entries`` in one
MULTI/EXEC, so each overflowing nonce is evicted by exactly one caller.
Consumption removes the nonce from the index and deletes its key in one
MULTI/EXEC; only the caller that saw both removals wins.
"""

from loguru import logger
from redis import Redis

from oauth_broker.state.nonce_store import NonceStore
from oauth_broker.utils.clock import Clock, now_ms


def _decode(member: str | bytes) -> str:
    return member.decode() if isinstance(member, bytes) else member


class RedisNonceStore(NonceStore):
    """Nonce store shared across broker instances through Redis.

    The index is a list, so eviction order is issuance order even when
    several nonces are issued in the same millisecond.
    """

    def __init__(
        self,
        redis_client: Redis,
        max_entries: int = 1000,
        key_prefix: str = "oauth_broker:nonce",
        clock: Clock = now_ms,
    ):
        """Initialize the store.

        Args:
            redis_client: Connected Redis client
            max_entries: Capacity before the oldest nonce is evicted
            key_prefix: Namespace for nonce keys
            clock: Epoch-millisecond clock
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.redis = redis_client
        self.max_entries = max_entries
        self.key_prefix = key_prefix
        self.index_key = f"{key_prefix}:index"
        self._clock = clock

    def _make_key(self, nonce: str) -> str:
        return f"{self.key_prefix}:{nonce}"

    def register(self, nonce: str, expires_at: int) -> None:
        ttl_ms = max(expires_at - self._clock(), 1)
        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self._make_key(nonce), expires_at, px=ttl_ms)
        pipe.rpush(self.index_key, nonce)
        pipe.lrange(self.index_key, 0, -(self.max_entries + 1))
        pipe.ltrim(self.index_key, -self.max_entries, -1)
        evicted = [_decode(member) for member in pipe.execute()[2]]

        # already out of the index, so no longer consumable; drop the keys
        if evicted:
            self.redis.delete(*(self._make_key(n) for n in evicted))
            logger.debug(f"Nonce store at capacity, evicted {len(evicted)} nonces")

    def consume(self, nonce: str) -> bool:
        pipe = self.redis.pipeline(transaction=True)
        pipe.lrem(self.index_key, 1, nonce)
        pipe.delete(self._make_key(nonce))
        listed, deleted = pipe.execute()
        return listed == 1 and deleted == 1

    def contains(self, nonce: str) -> bool:
        pipe = self.redis.pipeline(transaction=True)
        pipe.lpos(self.index_key, nonce)
        pipe.exists(self._make_key(nonce))
        position, alive = pipe.execute()
        return position is not None and bool(alive)

    def clear(self) -> None:
        members = self.redis.lrange(self.index_key, 0, -1)
        self.redis.delete(self.index_key, *(self._make_key(_decode(m)) for m in members))

    def __len__(self) -> int:
        members = self.redis.lrange(self.index_key, 0, -1)
        if not members:
            return 0
        return int(self.redis.exists(*(self._make_key(_decode(m)) for m in members)))
