"""One-time MTN MoMo sandbox provisioning calls.

Used by operators to mint the API user and API key that the collection token
exchange needs. Never called during checkout.
"""

from urllib.parse import urlsplit
from uuid import uuid4

import httpx

from mobipay.common.config import MtnCredentials
from mobipay.common.logging import logger
from mobipay.payments.errors import ProvisioningError


class MtnProvisioningClient:
    def __init__(
        self,
        credentials: MtnCredentials,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.credentials = credentials
        self.timeout = timeout
        self._transport = transport

    async def _post(self, path: str, headers: dict[str, str], json: dict | None = None) -> httpx.Response:
        if not self.credentials.primary_key:
            raise ProvisioningError("MTN_MOMO_PRIMARY_KEY is not configured")
        headers = {"Ocp-Apim-Subscription-Key": self.credentials.primary_key, **headers}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.credentials.base_url}{path}", headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise ProvisioningError(f"MTN provisioning call {path} failed: {exc}") from exc
        if not response.is_success:
            logger.error("mtn provisioning rejected path=%s status=%s body=%s", path, response.status_code, response.text[:500])
            raise ProvisioningError(f"MTN provisioning call {path} returned HTTP {response.status_code}")
        return response

    async def create_api_user(self, callback_host: str | None = None) -> str:
        """Register a new sandbox API user and return its id.

        Without `callback_host` the host of the configured callback URL is
        used, then `localhost`.
        """

        if not callback_host:
            callback_host = urlsplit(self.credentials.callback_url or "").hostname or "localhost"
        api_user_id = str(uuid4())
        await self._post(
            "/v1_0/apiuser",
            headers={"X-Reference-Id": api_user_id},
            json={"providerCallbackHost": callback_host},
        )
        logger.info("mtn api user created api_user_id=%s", api_user_id)
        return api_user_id

    async def generate_api_key(self, api_user_id: str) -> str:
        """Generate the API key paired with `api_user_id`."""

        response = await self._post(f"/v1_0/apiuser/{api_user_id}/apikey", headers={})
        try:
            api_key = response.json()["apiKey"]
        except (ValueError, KeyError, TypeError) as exc:
            raise ProvisioningError("MTN provisioning returned no apiKey") from exc
        logger.info("mtn api key generated api_user_id=%s", api_user_id)
        return api_key
