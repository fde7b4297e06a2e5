"""In-process nonce store.

Suitable for a single process. With several instances behind a load
balancer a callback may land on an instance that never saw the nonce; use
RedisNonceStore there.
"""

import threading
from collections import OrderedDict

from loguru import logger

from oauth_broker.state.nonce_store import NonceStore
from oauth_broker.utils.clock import Clock, now_ms


class InMemoryNonceStore(NonceStore):
    """Ordered map of nonce -> expiry guarded by a lock.

    Insertion order doubles as issuance order, so FIFO eviction is a
    ``popitem(last=False)``.

    Thread-safe: Yes (single lock around every read and mutation)
    """

    def __init__(self, max_entries: int = 1000, clock: Clock = now_ms):
        """Initialize the store.

        Args:
            max_entries: Capacity before the oldest nonce is evicted
            clock: Epoch-millisecond clock
        """
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, int] = OrderedDict()
        self._lock = threading.Lock()

    def register(self, nonce: str, expires_at: int) -> None:
        with self._lock:
            self._sweep(self._clock())
            while len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Nonce store at capacity, evicted {evicted[:8]}...")
            self._entries[nonce] = expires_at

    def consume(self, nonce: str) -> bool:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            expires_at = self._entries.pop(nonce, None)
            return expires_at is not None and expires_at >= now

    def contains(self, nonce: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(nonce)
            return expires_at is not None and expires_at >= self._clock()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _sweep(self, now: int) -> int:
        # caller holds the lock
        expired = [nonce for nonce, expires_at in self._entries.items() if expires_at < now]
        for nonce in expired:
            del self._entries[nonce]
        if expired:
            logger.debug(f"Swept {len(expired)} expired nonces")
        return len(expired)
