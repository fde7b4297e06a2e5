"""Signed-state codec for CSRF-safe OAuth redirects.

Token format:
    base64url(canonical_json(FlowState)) + "." + hex(HMAC-SHA256(secret, payload))

Canonical JSON uses sorted keys and compact separators so the same state
always signs to the same bytes. The payload is only decoded after the
signature has been checked in constant time.

Every rejection (bad signature, malformed payload, expiry, unknown or spent
nonce) collapses to ``None``; the reason goes to the log only.
"""

import base64
import hashlib
import hmac
import json
import secrets

from loguru import logger
from pydantic import SecretStr

from oauth_broker.models import FlowState
from oauth_broker.state.nonce_store import NonceStore
from oauth_broker.utils.clock import Clock, now_ms

NONCE_BYTES = 32


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def canonical_payload(state: FlowState) -> bytes:
    """Deterministic byte encoding of a flow state."""
    return json.dumps(
        state.model_dump(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


class StateCodec:
    """Issues and validates signed, single-use state tokens.

    The codec owns no mutable state of its own; replay protection lives in
    the NonceStore it is given.
    """

    def __init__(
        self,
        signing_secret: SecretStr | str,
        ttl_ms: int,
        store: NonceStore,
        clock: Clock = now_ms,
    ):
        """Initialize the codec.

        Args:
            signing_secret: HMAC key (never logged)
            ttl_ms: Maximum state age in milliseconds
            store: Pending-nonce store for single-use enforcement
            clock: Epoch-millisecond clock
        """
        if isinstance(signing_secret, SecretStr):
            signing_secret = signing_secret.get_secret_value()
        if not signing_secret:
            raise ValueError("State signing secret is required")
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")

        self._key = signing_secret.encode("utf-8")
        self.ttl_ms = ttl_ms
        self.store = store
        self._clock = clock

    def sign(self, payload_segment: str) -> str:
        """Hex HMAC-SHA256 of an encoded payload segment."""
        return hmac.new(self._key, payload_segment.encode("ascii"), hashlib.sha256).hexdigest()

    def issue(
        self,
        provider: str,
        return_to: str,
        metadata: dict[str, str] | None = None,
    ) -> str:
        """Create a signed state token and register its nonce.

        Args:
            provider: Provider the flow targets
            return_to: Post-login redirect
            metadata: Caller metadata to round-trip

        Returns:
            Opaque state string for the authorization URL
        """
        token, state = self.encode(provider, return_to, metadata)
        self.register(state)
        return token

    def encode(
        self,
        provider: str,
        return_to: str,
        metadata: dict[str, str] | None = None,
    ) -> tuple[str, FlowState]:
        """Build and sign a fresh state without registering its nonce.

        The token is not redeemable until ``register`` is called with the
        returned state.
        """
        state = FlowState(
            provider=provider,
            return_to=return_to,
            metadata=dict(metadata or {}),
            issued_at=self._clock(),
            nonce=secrets.token_hex(NONCE_BYTES),
        )
        payload_segment = _b64url_encode(canonical_payload(state))
        return f"{payload_segment}.{self.sign(payload_segment)}", state

    def register(self, state: FlowState) -> None:
        """Make an encoded state redeemable until ``issued_at + ttl_ms``."""
        self.store.register(state.nonce, state.issued_at + self.ttl_ms)
        logger.debug(f"Issued state for {state.provider} (nonce {state.nonce[:8]}...)")

    def verify(self, token: str) -> FlowState | None:
        """Check signature, structure and age without touching the nonce store.

        Args:
            token: State string from the callback

        Returns:
            Decoded FlowState, or None if the token is not acceptable
        """
        if not isinstance(token, str) or "." not in token:
            return self._reject("malformed token")

        payload_segment, _, signature = token.rpartition(".")
        if not payload_segment or not signature:
            return self._reject("malformed token")

        try:
            expected = self.sign(payload_segment)
        except UnicodeEncodeError:
            return self._reject("malformed token")
        if not hmac.compare_digest(
            expected.encode("ascii"), signature.encode("utf-8")
        ):
            return self._reject("signature mismatch")

        try:
            state = FlowState.model_validate(json.loads(_b64url_decode(payload_segment)))
        except ValueError:
            return self._reject("undecodable payload")

        age = self._clock() - state.issued_at
        if age > self.ttl_ms:
            return self._reject(f"expired ({age}ms old)")

        return state

    def validate(self, token: str, consume: bool = True) -> FlowState | None:
        """Verify a token and check its nonce.

        Args:
            token: State string from the callback
            consume: Spend the nonce (True) or only check it is pending (False)

        Returns:
            Decoded FlowState, or None if invalid, expired, unknown or spent
        """
        state = self.verify(token)
        if state is None:
            return None

        if consume:
            if not self.store.consume(state.nonce):
                return self._reject("nonce unknown or already consumed")
        elif not self.store.contains(state.nonce):
            return self._reject("nonce unknown or already consumed")

        return state

    @staticmethod
    def _reject(reason: str) -> None:
        logger.warning(f"Rejected OAuth state: {reason}")
        return None
