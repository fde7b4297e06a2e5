"""OAuth provider interface and shared HTTP plumbing.

Every vendor implements OAuthProvider. Vendors that speak plain OAuth 2.0
over HTTP (all of the bundled ones) extend HTTPOAuthProvider and only
override the parts where they differ: how client credentials are sent,
and how the user resource is normalized into a Profile.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
from urllib.parse import urlencode

import httpx
from loguru import logger

from oauth_broker.errors import OAuthError, ProviderExchangeError, ProviderProfileError
from oauth_broker.models import Profile, ProviderConfig, Token
from oauth_broker.utils.clock import Clock, now_ms

DEFAULT_TIMEOUT = 10.0
MAX_ERROR_BODY = 500


class OAuthProvider(ABC):
    """Abstract OAuth provider interface.

    The manager only talks to providers through these methods; it never
    branches on which vendor it holds.
    """

    name: str

    @abstractmethod
    def get_authorization_url(self, state: str) -> str:
        """Build the vendor consent URL.

        Pure URL construction, no network call.

        Args:
            state: Opaque state string to round-trip

        Returns:
            Authorization URL to redirect the user agent to
        """
        pass

    @abstractmethod
    async def exchange_code(self, code: str) -> Token:
        """Exchange an authorization code for a token.

        Args:
            code: Authorization code from the callback

        Returns:
            Token stamped with the server clock

        Raises:
            ProviderExchangeError: Vendor rejected the exchange
        """
        pass

    @abstractmethod
    async def fetch_profile(self, token: Token) -> Profile:
        """Fetch and normalize the authenticated user's profile.

        Args:
            token: Token from exchange_code

        Returns:
            Normalized Profile

        Raises:
            ProviderProfileError: Vendor rejected the profile request
        """
        pass

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> Token:
        """Obtain a new access token from a refresh token.

        Args:
            refresh_token: Refresh token from an earlier exchange

        Returns:
            New Token

        Raises:
            ProviderExchangeError: Vendor rejected the refresh
        """
        pass


def select_email(
    entries: list[dict[str, Any]],
    primary_key: str,
    verified_key: str,
) -> dict[str, Any] | None:
    """Pick an email entry: first primary+verified, else first verified, else None.

    Entries without an address or that are not objects are skipped, so a
    returned entry always has a non-empty ``email``.
    """
    usable = [entry for entry in entries if isinstance(entry, dict) and entry.get("email")]
    for entry in usable:
        if entry.get(primary_key) and entry.get(verified_key):
            return entry
    for entry in usable:
        if entry.get(verified_key):
            return entry
    return None


class HTTPOAuthProvider(OAuthProvider):
    """Authorization-code provider over httpx.

    Subclasses set ``name``/``display_name`` and implement ``fetch_profile``.
    Set ``basic_auth = True`` for vendors that want client credentials in an
    HTTP Basic header instead of the form body.
    """

    display_name: str = "OAuth"
    basic_auth: bool = False
    accept: str = "application/json"

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
    ):
        """Initialize the provider.

        Args:
            config: Vendor configuration
            http_client: Shared client (a short-lived one per call if None)
            timeout: Request timeout in seconds when no client is given
            clock: Epoch-millisecond clock for ``Token.obtained_at``
        """
        self.config = config
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock

    def __repr__(self) -> str:
        return f"{type(self).__name__}(client_id={self.config.client_id!r})"

    def get_authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "state": state,
            **self.config.extra_params,
        }
        return f"{self.config.authorization_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Token:
        payload = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.redirect_uri,
            },
            action="token exchange",
        )
        token = self._parse_token(payload)
        logger.info(f"Exchanged authorization code with {self.name}")
        return token

    async def refresh_token(self, refresh_token: str) -> Token:
        payload = await self._post_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            action="token refresh",
        )
        token = self._parse_token(payload, fallback_refresh_token=refresh_token)
        logger.info(f"Refreshed access token with {self.name}")
        return token

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _send(
        self,
        method: str,
        url: str,
        error_cls: type[OAuthError],
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{self.display_name} {action} request failed: {e!r}")
            raise error_cls(
                f"{self.display_name} {action} failed: {e}", 502, self.name
            ) from e

    def _token_request_kwargs(self, data: dict[str, str]) -> dict[str, Any]:
        """Request arguments for the token endpoint."""
        headers = {"Accept": "application/json"}
        secret = self.config.client_secret.get_secret_value()
        if self.basic_auth:
            return {
                "data": data,
                "headers": headers,
                "auth": (self.config.client_id, secret),
            }
        return {
            "data": {**data, "client_id": self.config.client_id, "client_secret": secret},
            "headers": headers,
        }

    async def _post_token(self, data: dict[str, str], action: str) -> dict[str, Any]:
        response = await self._send(
            "POST",
            self.config.token_url,
            ProviderExchangeError,
            action,
            **self._token_request_kwargs(data),
        )

        if response.is_error:
            logger.warning(f"{self.display_name} {action} failed with {response.status_code}")
            raise ProviderExchangeError(
                f"{self.display_name} {action} failed: {response.status_code} - "
                f"{response.text[:MAX_ERROR_BODY]}",
                response.status_code,
                self.name,
            )

        payload = self._decode_json(response, ProviderExchangeError, action)
        if not isinstance(payload, dict):
            raise ProviderExchangeError(
                f"{self.display_name} {action} returned an unexpected payload",
                502,
                self.name,
            )

        if payload.get("error"):
            logger.warning(f"{self.display_name} OAuth error: {payload['error']}")
            raise ProviderExchangeError(
                f"{self.display_name} OAuth error: "
                f"{payload.get('error_description') or payload['error']}",
                400,
                self.name,
            )
        return payload

    def _parse_token(
        self,
        payload: dict[str, Any],
        fallback_refresh_token: str | None = None,
    ) -> Token:
        access_token = payload.get("access_token")
        if not access_token:
            raise ProviderExchangeError(
                f"{self.display_name} token response missing access_token",
                502,
                self.name,
            )
        return Token(
            access_token=access_token,
            token_type=payload.get("token_type") or "bearer",
            expires_in=payload.get("expires_in"),
            refresh_token=payload.get("refresh_token") or fallback_refresh_token,
            scope=self._token_scope(payload),
            obtained_at=self._clock(),
        )

    def _token_scope(self, payload: dict[str, Any]) -> str | None:
        return payload.get("scope")

    async def _get_json(
        self,
        url: str,
        token: Token,
        action: str = "profile fetch",
    ) -> Any:
        """Bearer-authenticated GET returning decoded JSON.

        Raises:
            ProviderProfileError: Non-2xx status (vendor status forwarded),
                transport failure or invalid JSON (502)
        """
        response = await self._send(
            "GET",
            url,
            ProviderProfileError,
            action,
            headers={
                "Authorization": f"Bearer {token.access_token}",
                "Accept": self.accept,
            },
        )
        if response.is_error:
            logger.warning(f"{self.display_name} {action} failed with {response.status_code}")
            raise ProviderProfileError(
                f"{self.display_name} {action} failed: {response.status_code} - "
                f"{response.text[:MAX_ERROR_BODY]}",
                response.status_code,
                self.name,
            )
        return self._decode_json(response, ProviderProfileError, action)

    def _decode_json(
        self,
        response: httpx.Response,
        error_cls: type[OAuthError],
        action: str,
    ) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                f"{self.display_name} {action} returned invalid JSON",
                502,
                self.name,
            ) from e

    def _require_field(self, payload: Any, key: str) -> Any:
        if not isinstance(payload, dict) or payload.get(key) in (None, ""):
            raise ProviderProfileError(
                f"{self.display_name} profile response missing {key}",
                502,
                self.name,
            )
        return payload[key]
