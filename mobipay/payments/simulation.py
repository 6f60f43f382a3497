"""Stand-in provider outcomes used when a live carrier call is not possible.

Simulated responses are always flagged with `simulated=True`; a simulated
PENDING is not evidence that any carrier accepted the payment.
"""

import asyncio
import random
import string
import time
from dataclasses import dataclass
from typing import Callable

from mobipay.payments.schemas import PaymentRequest, PaymentResponse, PaymentStatus


@dataclass(frozen=True)
class SimulationProfile:
    """Provider-flavoured knobs for one simulated initiation flow."""

    name: str
    success_rate: float
    delay_seconds: float
    reference_prefix: str
    transaction_prefix: str
    success_message: str
    instructions: str
    timeout: str
    failure_message: str


MTN_PROFILE = SimulationProfile(
    name="mtn",
    success_rate=0.9,
    delay_seconds=2.0,
    reference_prefix="MTN",
    transaction_prefix="TXN",
    success_message="Payment request sent to your phone. Please confirm the transaction.",
    instructions="Check your phone for a USSD prompt to complete the payment",
    timeout="5 minutes",
    failure_message="Payment failed. Please check your account balance and try again.",
)

ORANGE_PROFILE = SimulationProfile(
    name="orange",
    success_rate=0.85,
    delay_seconds=1.5,
    reference_prefix="OM",
    transaction_prefix="OM",
    success_message="Payment request sent. Please complete the transaction on your Orange Money app.",
    instructions="Open your Orange Money app and approve the payment",
    timeout="10 minutes",
    failure_message="Payment failed. Please ensure you have sufficient balance.",
)

_TOKEN_ALPHABET = string.ascii_uppercase + string.digits


class SimulationEngine:
    """Weighted-random payment outcomes with artificial latency."""

    def __init__(
        self,
        rng: random.Random | None = None,
        delay_scale: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.rng = rng or random.Random()
        self.delay_scale = delay_scale
        self._clock = clock

    async def _delay(self, seconds: float) -> None:
        delay = max(0.0, seconds * self.delay_scale)
        if delay:
            await asyncio.sleep(delay)

    def _epoch_ms(self) -> int:
        return int(self._clock() * 1000)

    def _short_id(self, length: int = 6) -> str:
        return "".join(self.rng.choice(_TOKEN_ALPHABET) for _ in range(length))

    async def simulate(self, request: PaymentRequest, profile: SimulationProfile) -> PaymentResponse:
        """Simulate a payment initiation for `request` using `profile`."""

        await self._delay(profile.delay_seconds)
        if self.rng.random() < profile.success_rate:
            return PaymentResponse(
                success=True,
                status=PaymentStatus.PENDING,
                payment_reference=f"{profile.reference_prefix}_{self._epoch_ms()}",
                transaction_id=f"{profile.transaction_prefix}_{self._short_id()}",
                message=profile.success_message,
                additional_info={"instructions": profile.instructions, "timeout": profile.timeout},
                simulated=True,
            )
        return PaymentResponse.failed(profile.failure_message, simulated=True)

    async def simulate_status(
        self,
        completion_rate: float,
        payment_reference: str | None = None,
        transaction_id: str | None = None,
        delay_seconds: float = 0.0,
    ) -> PaymentResponse:
        """Simulate a status check: COMPLETED with `completion_rate`, else PENDING."""

        await self._delay(delay_seconds)
        if self.rng.random() < completion_rate:
            status, message = PaymentStatus.COMPLETED, "Payment completed successfully"
        else:
            status, message = PaymentStatus.PENDING, "Payment is still pending"
        return PaymentResponse(
            success=True,
            status=status,
            payment_reference=payment_reference,
            transaction_id=transaction_id,
            message=message,
            simulated=True,
        )
