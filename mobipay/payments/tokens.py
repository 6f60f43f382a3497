"""Per-provider bearer token cache.

Each provider gets one `TokenManager` owned by the gateway. Cached reads are
plain attribute reads; on a cache miss every concurrent caller awaits the same
in-flight exchange and receives its token or its error.
"""

import asyncio
import base64
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import httpx

from mobipay.common.config import MtnCredentials, OrangeCredentials
from mobipay.common.logging import logger
from mobipay.common.metrics import token_exchanges_total
from mobipay.payments.errors import AuthenticationError


DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


def basic_auth(username: str, password: str) -> str:
    raw = f"{username}:{password}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


class TokenManager(ABC):
    """Lazily acquires and caches one provider token until its expiry."""

    provider = "unknown"

    def __init__(
        self,
        safety_margin_seconds: float,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.safety_margin_seconds = safety_margin_seconds
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._token: AccessToken | None = None
        self._inflight: asyncio.Task | None = None

    def _cached(self) -> str | None:
        token = self._token
        if token is None:
            return None
        if token.expired(self._clock()):
            self._token = None
            return None
        return token.value

    async def get_token(self) -> str:
        """Return a valid token, exchanging credentials only on a cache miss."""

        value = self._cached()
        if value is not None:
            return value
        inflight = self._inflight
        if inflight is None or inflight.done():
            inflight = asyncio.create_task(self._acquire())
            inflight.add_done_callback(self._settle)
            self._inflight = inflight
        # Shielded so one cancelled caller does not abort the shared exchange.
        token = await asyncio.shield(inflight)
        return token.value

    def _settle(self, inflight: asyncio.Task) -> None:
        if self._inflight is inflight:
            self._inflight = None
        if inflight.cancelled() or inflight.exception() is not None:
            return
        self._token = inflight.result()

    def invalidate(self) -> None:
        self._token = None

    async def _acquire(self) -> AccessToken:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await self._exchange(client)
        except httpx.HTTPError as exc:
            token_exchanges_total.labels(provider=self.provider, outcome="error").inc()
            raise AuthenticationError(self.provider, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            token_exchanges_total.labels(provider=self.provider, outcome="rejected").inc()
            logger.error(
                "token exchange rejected provider=%s status=%s body=%s",
                self.provider,
                response.status_code,
                response.text[:500],
            )
            raise AuthenticationError(self.provider, f"HTTP {response.status_code}")

        try:
            body = response.json()
            value = body["access_token"]
            expires_in = float(body.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        except (ValueError, KeyError, TypeError) as exc:
            token_exchanges_total.labels(provider=self.provider, outcome="malformed").inc()
            raise AuthenticationError(self.provider, "malformed token response") from exc
        if not isinstance(value, str) or not value:
            token_exchanges_total.labels(provider=self.provider, outcome="malformed").inc()
            raise AuthenticationError(self.provider, "empty access token")

        lifetime = max(0.0, expires_in - self.safety_margin_seconds)
        token_exchanges_total.labels(provider=self.provider, outcome="ok").inc()
        logger.info("token acquired provider=%s lifetime_s=%s", self.provider, int(lifetime))
        return AccessToken(value=value, expires_at=self._clock() + lifetime)

    @abstractmethod
    async def _exchange(self, client: httpx.AsyncClient) -> httpx.Response:
        """Send the provider-specific credential exchange request."""


class MtnTokenManager(TokenManager):
    """MTN MoMo collection token: Basic auth of API user id and API key."""

    provider = "mtn"

    def __init__(self, credentials: MtnCredentials, **kwargs) -> None:
        super().__init__(credentials.token_safety_margin_seconds, **kwargs)
        self.credentials = credentials

    async def _exchange(self, client: httpx.AsyncClient) -> httpx.Response:
        creds = self.credentials
        return await client.post(
            f"{creds.base_url}/collection/token/",
            headers={
                "Authorization": basic_auth(creds.api_user_id or "", creds.api_key or ""),
                "Ocp-Apim-Subscription-Key": creds.primary_key or "",
                "X-Target-Environment": creds.environment,
            },
        )


class OrangeTokenManager(TokenManager):
    """Orange Money OAuth token: form-encoded client-credentials grant."""

    provider = "orange"

    def __init__(self, credentials: OrangeCredentials, **kwargs) -> None:
        super().__init__(credentials.token_safety_margin_seconds, **kwargs)
        self.credentials = credentials

    async def _exchange(self, client: httpx.AsyncClient) -> httpx.Response:
        creds = self.credentials
        return await client.post(
            f"{creds.base_url}/oauth/token",
            data={"grant_type": "client_credentials"},
            headers={
                "Authorization": basic_auth(creds.client_id or "", creds.client_secret or ""),
                "Accept": "application/json",
            },
        )
