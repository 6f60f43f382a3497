"""Payment gateway façade used by checkout and booking code.

Dispatches a `PaymentRequest` to the provider client registered for its
method and always answers with a `PaymentResponse`; nothing raised inside a
client reaches the caller.

Two status paths exist on purpose and are named by fidelity:

* `check_provider_status` / `check_mtn_payment_status` ask the carrier when it
  is configured.
* `simulate_payment_status` never leaves the process; it backs generic
  polling screens and its answers carry `simulated=True`.
"""

import time
from dataclasses import replace
from typing import Callable, Iterable

import httpx

from mobipay.common.config import CommonSettings, settings
from mobipay.common.logging import logger, payment_context, provider_ctx
from mobipay.common.metrics import (
    payment_latency_seconds,
    payment_outcomes_total,
    payment_requests_total,
    status_checks_total,
)
from mobipay.payments.errors import UnsupportedMethodError
from mobipay.payments.providers.base import ProviderClient
from mobipay.payments.providers.mtn import MtnMomoClient
from mobipay.payments.providers.orange import OrangeMoneyClient
from mobipay.payments.schemas import PaymentMethod, PaymentRequest, PaymentResponse, PaymentStatus
from mobipay.payments.simulation import MTN_PROFILE, ORANGE_PROFILE, SimulationEngine
from mobipay.payments.tokens import MtnTokenManager, OrangeTokenManager


def _method_label(method: PaymentMethod | str) -> str:
    try:
        return PaymentMethod(method).value
    except ValueError:
        return "UNSUPPORTED"


class PaymentGateway:
    """Single entry point for payment initiation and status checks."""

    def __init__(
        self,
        clients: Iterable[ProviderClient],
        simulator: SimulationEngine,
        status_completion_rate: float = 0.7,
        status_delay_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.simulator = simulator
        self.status_completion_rate = status_completion_rate
        self.status_delay_seconds = status_delay_seconds
        self._clock = clock
        self._clients: dict[PaymentMethod, ProviderClient] = {}
        for client in clients:
            self.register(client)

    def register(self, client: ProviderClient) -> None:
        self._clients[client.method] = client

    def client_for(self, method: PaymentMethod | str) -> ProviderClient:
        try:
            return self._clients[PaymentMethod(method)]
        except (ValueError, KeyError) as exc:
            raise UnsupportedMethodError(f"no provider client for {method!r}") from exc

    def _cash(self) -> PaymentResponse:
        # Cash is reconciled at the venue and never leaves PENDING here.
        return PaymentResponse(
            success=True,
            status=PaymentStatus.PENDING,
            payment_reference=f"CASH_{int(self._clock() * 1000)}",
            message="Cash payment selected. Pay at the event venue.",
        )

    async def _dispatch(self, request: PaymentRequest) -> PaymentResponse:
        if request.method == PaymentMethod.CASH:
            return self._cash()
        try:
            client = self.client_for(request.method)
        except UnsupportedMethodError:
            logger.warning("unsupported payment method method=%s", request.method)
            return PaymentResponse.failed("Unsupported payment method")
        provider_ctx.set(client.provider)
        try:
            return await client.initiate(request)
        except Exception as exc:
            logger.exception("payment initiation crashed reference=%s error=%s", request.reference, exc)
            return PaymentResponse.failed("Payment could not be processed. Please try again.")

    async def process_payment(self, request: PaymentRequest) -> PaymentResponse:
        """Initiate `request` with the carrier selected by its method."""

        method = _method_label(request.method)
        with payment_context(request.reference):
            payment_requests_total.labels(method=method).inc()
            with payment_latency_seconds.labels(method=method).time():
                response = await self._dispatch(request)
            payment_outcomes_total.labels(
                method=method,
                status=response.status.value,
                simulated=str(response.simulated).lower(),
            ).inc()
            logger.info(
                "payment processed method=%s status=%s simulated=%s",
                method,
                response.status.value,
                response.simulated,
            )
            return response

    async def check_provider_status(self, transaction_id: str, method: PaymentMethod | str) -> PaymentResponse:
        """Poll the carrier for `transaction_id` where the carrier supports it."""

        try:
            client = self.client_for(method)
        except UnsupportedMethodError:
            response = PaymentResponse.failed("Unsupported payment method", transaction_id=transaction_id)
        else:
            if client.supports_polling:
                try:
                    response = await client.poll(transaction_id)
                except Exception as exc:
                    logger.exception("status poll crashed transaction_id=%s error=%s", transaction_id, exc)
                    response = PaymentResponse.failed(
                        "Failed to check payment status", transaction_id=transaction_id
                    )
            else:
                response = PaymentResponse.failed(
                    f"Status polling is not supported for {client.display_name}",
                    transaction_id=transaction_id,
                )
        status_checks_total.labels(path="provider", status=response.status.value).inc()
        return response

    async def check_mtn_payment_status(self, transaction_id: str) -> PaymentResponse:
        return await self.check_provider_status(transaction_id, PaymentMethod.MTN_MOMO)

    async def simulate_payment_status(self, payment_reference: str, method: PaymentMethod | str) -> PaymentResponse:
        """Generic polling answer that never contacts a carrier."""

        try:
            response = await self.simulator.simulate_status(
                self.status_completion_rate,
                payment_reference=payment_reference,
                delay_seconds=self.status_delay_seconds,
            )
        except Exception as exc:
            logger.exception("simulated status check crashed reference=%s error=%s", payment_reference, exc)
            response = PaymentResponse.failed("Failed to verify payment status", simulated=True)
        logger.info(
            "simulated status check reference=%s method=%s status=%s",
            payment_reference,
            _method_label(method),
            response.status.value,
        )
        status_checks_total.labels(path="simulated", status=response.status.value).inc()
        return response

    # Name kept for existing polling screens.
    verify_payment_status = simulate_payment_status

    @classmethod
    def from_settings(
        cls,
        config: CommonSettings = settings,
        transport: httpx.AsyncBaseTransport | None = None,
        simulator: SimulationEngine | None = None,
    ) -> "PaymentGateway":
        """Wire token managers, clients and the simulator from configuration."""

        simulator = simulator or SimulationEngine(delay_scale=config.simulation_delay_scale)
        timeout = config.provider_timeout_seconds
        mtn_credentials = config.mtn_credentials()
        orange_credentials = config.orange_credentials()
        mtn = MtnMomoClient(
            mtn_credentials,
            MtnTokenManager(mtn_credentials, timeout=timeout, transport=transport),
            simulator,
            profile=replace(MTN_PROFILE, success_rate=config.simulation_mtn_success_rate),
            timeout=timeout,
            transport=transport,
            status_completion_rate=config.status_completion_rate,
        )
        orange = OrangeMoneyClient(
            orange_credentials,
            OrangeTokenManager(orange_credentials, timeout=timeout, transport=transport),
            simulator,
            profile=replace(ORANGE_PROFILE, success_rate=config.simulation_orange_success_rate),
            timeout=timeout,
            transport=transport,
        )
        logger.info(
            "payment gateway ready mtn_configured=%s orange_configured=%s",
            mtn.configured,
            orange.configured,
        )
        return cls(
            [mtn, orange],
            simulator,
            status_completion_rate=config.status_completion_rate,
        )
