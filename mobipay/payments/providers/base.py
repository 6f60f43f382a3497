"""Capability interface shared by carrier clients.

A client turns a `PaymentRequest` into one carrier's wire calls and maps the
answer back to a `PaymentResponse`. Clients that can query a payment's state
set `supports_polling` and implement `poll`.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

import httpx

from mobipay.common.logging import logger
from mobipay.common.metrics import provider_request_duration_seconds, simulation_fallbacks_total
from mobipay.payments import phone
from mobipay.payments.errors import PhoneValidationError, ProviderRejection, TransportError
from mobipay.payments.schemas import PaymentMethod, PaymentRequest, PaymentResponse
from mobipay.payments.simulation import SimulationEngine, SimulationProfile
from mobipay.payments.tokens import TokenManager


def report_fallback(provider: str, kind: str, reference: str, error: BaseException | None = None) -> None:
    """Record that a live provider outcome is being replaced by a simulated one."""

    simulation_fallbacks_total.labels(provider=provider, kind=kind).inc()
    logger.warning(
        "fallback_to_simulation provider=%s kind=%s reference=%s error=%s",
        provider,
        kind,
        reference,
        repr(error) if error is not None else "-",
        extra={"fallback_kind": kind, "fallback_error": repr(error) if error is not None else None},
    )


def format_amount(amount: Decimal) -> str:
    """Render an amount without exponent or trailing zeros (5000, 12.5)."""

    return format(amount.normalize(), "f")


class ProviderClient(ABC):
    provider: str = "unknown"
    method: PaymentMethod
    carrier: phone.Carrier
    display_name: str = ""
    profile: SimulationProfile
    supports_polling: bool = False

    def __init__(
        self,
        tokens: TokenManager,
        simulator: SimulationEngine,
        profile: SimulationProfile | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.tokens = tokens
        self.simulator = simulator
        if profile is not None:
            self.profile = profile
        self.timeout = timeout
        self._transport = transport

    @property
    @abstractmethod
    def configured(self) -> bool:
        """True when every credential needed for live calls is present."""

    @abstractmethod
    async def initiate(self, request: PaymentRequest) -> PaymentResponse:
        """Start a payment with the carrier."""

    async def poll(self, transaction_id: str) -> PaymentResponse:
        """Read a payment's carrier-side state.

        The gateway only calls this when `supports_polling` is set; clients that
        set it override this method.
        """

        raise NotImplementedError(f"{self.provider} does not support status polling")

    def _require_msisdn(self, request: PaymentRequest) -> str:
        """Return the carrier subscriber id or raise `PhoneValidationError`."""

        if not request.customer_phone:
            raise PhoneValidationError(f"Phone number is required for {self.display_name}")
        if not phone.validate(request.customer_phone, self.carrier):
            raise PhoneValidationError(phone.format_hint(self.carrier))
        return phone.normalize_msisdn(request.customer_phone)

    async def _fallback(
        self, request: PaymentRequest, kind: str, error: BaseException | None = None
    ) -> PaymentResponse:
        report_fallback(self.provider, kind, request.reference, error)
        return await self.simulator.simulate(request, self.profile)

    async def _send(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue one provider call; HTTP error statuses raise `ProviderRejection`."""

        with provider_request_duration_seconds.labels(provider=self.provider, operation=operation).time():
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                raise TransportError(f"{self.provider} {operation} failed: {type(exc).__name__}: {exc}") from exc
        if response.status_code >= 400:
            logger.error(
                "provider call rejected provider=%s operation=%s status=%s body=%s",
                self.provider,
                operation,
                response.status_code,
                response.text[:500],
            )
            raise ProviderRejection(self.provider, response.status_code, response.text)
        return response
