"""Abstract pending-nonce store interface.

Tracks the nonces of outstanding state tokens so each one can be consumed
exactly once. Implementations:
- InMemoryNonceStore: lock-guarded ordered map (single process)
- RedisNonceStore: shared expiring keys (multi-instance deployments)
"""

from abc import ABC, abstractmethod


class NonceStore(ABC):
    """Bounded, single-use registry of outstanding nonces.

    Contract:
        - ``register`` inserts a nonce with an absolute expiry (epoch ms).
          At capacity the oldest entry is evicted first.
        - ``consume`` is one atomic check-and-remove. Of two concurrent
          calls for the same nonce, exactly one returns True.
        - Expired entries are dropped opportunistically and are never
          reported as present.
    """

    @abstractmethod
    def register(self, nonce: str, expires_at: int) -> None:
        """Register a freshly issued nonce.

        Args:
            nonce: Random nonce from the state token
            expires_at: Expiry in epoch milliseconds
        """
        pass

    @abstractmethod
    def consume(self, nonce: str) -> bool:
        """Atomically check and remove a nonce.

        Args:
            nonce: Nonce to consume

        Returns:
            True if the nonce was pending and unexpired, False otherwise
        """
        pass

    @abstractmethod
    def contains(self, nonce: str) -> bool:
        """Check whether a nonce is pending without consuming it.

        Args:
            nonce: Nonce to look up

        Returns:
            True if pending and unexpired
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop every pending nonce."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass
