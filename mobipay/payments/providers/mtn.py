"""MTN Mobile Money collection client (request-to-pay).

The carrier pushes a confirmation prompt to the payer's handset; initiation
returns 202 before the payer confirms, and the outcome is read back by
polling the same `X-Reference-Id`.
"""

from typing import Any
from uuid import uuid4

from mobipay.common.config import MtnCredentials
from mobipay.common.logging import logger
from mobipay.payments.errors import (
    AuthenticationError,
    PaymentError,
    PhoneValidationError,
    ProviderRejection,
)
from mobipay.payments.phone import Carrier
from mobipay.payments.providers.base import ProviderClient, format_amount
from mobipay.payments.schemas import PaymentMethod, PaymentRequest, PaymentResponse, PaymentStatus
from mobipay.payments.simulation import MTN_PROFILE
from mobipay.payments.tokens import MtnTokenManager


# Rejections answered directly; any other status falls back to simulation.
REJECTION_MESSAGES: dict[int, str] = {
    400: "Invalid payment request. Please check your phone number and try again.",
    401: "Authentication failed. Please contact support.",
    409: "Duplicate transaction. Please try again with a different reference.",
}


def _reason_text(reason: Any) -> str | None:
    if isinstance(reason, dict):
        return reason.get("message") or reason.get("code")
    if reason:
        return str(reason)
    return None


def map_collection_status(body: dict[str, Any], transaction_id: str) -> PaymentResponse:
    """Map a request-to-pay status body onto a `PaymentResponse`."""

    status = body.get("status")
    if status == "SUCCESSFUL":
        return PaymentResponse(
            success=True,
            status=PaymentStatus.COMPLETED,
            transaction_id=transaction_id,
            payment_reference=body.get("financialTransactionId"),
            message="Payment completed successfully",
        )
    if status == "PENDING":
        return PaymentResponse(
            success=True,
            status=PaymentStatus.PENDING,
            transaction_id=transaction_id,
            message="Payment is still pending confirmation",
        )
    if status == "FAILED":
        return PaymentResponse.failed(
            _reason_text(body.get("reason")) or "Payment failed",
            transaction_id=transaction_id,
        )
    return PaymentResponse.failed("Unknown payment status", transaction_id=transaction_id)


class MtnMomoClient(ProviderClient):
    provider = "mtn"
    method = PaymentMethod.MTN_MOMO
    carrier = Carrier.MTN
    display_name = "MTN Mobile Money"
    profile = MTN_PROFILE
    supports_polling = True

    def __init__(
        self,
        credentials: MtnCredentials,
        tokens: MtnTokenManager,
        *args,
        status_completion_rate: float = 0.7,
        **kwargs,
    ) -> None:
        super().__init__(tokens, *args, **kwargs)
        self.credentials = credentials
        self.status_completion_rate = status_completion_rate

    @property
    def configured(self) -> bool:
        return self.credentials.configured

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-Target-Environment": self.credentials.environment,
            "Ocp-Apim-Subscription-Key": self.credentials.primary_key or "",
        }

    async def initiate(self, request: PaymentRequest) -> PaymentResponse:
        try:
            msisdn = self._require_msisdn(request)
        except PhoneValidationError as exc:
            return PaymentResponse.failed(str(exc))

        if not self.configured:
            return await self._fallback(request, "unconfigured")

        try:
            token = await self.tokens.get_token()
        except AuthenticationError as exc:
            return await self._fallback(request, "authentication", exc)

        transaction_id = str(uuid4())
        headers = self._headers(token)
        headers["X-Reference-Id"] = transaction_id
        if self.credentials.callback_url:
            headers["X-Callback-Url"] = self.credentials.callback_url
        payload = {
            "amount": format_amount(request.amount),
            "currency": self.credentials.currency,
            "externalId": request.reference,
            "payer": {"partyIdType": "MSISDN", "partyId": msisdn},
            "payerMessage": request.description,
            "payeeNote": f"Payment for booking {request.reference}",
        }

        try:
            response = await self._send(
                "requesttopay",
                "POST",
                f"{self.credentials.base_url}/collection/v1_0/requesttopay",
                json=payload,
                headers=headers,
            )
        except ProviderRejection as exc:
            if exc.status_code == 401:
                self.tokens.invalidate()
            message = REJECTION_MESSAGES.get(exc.status_code)
            if message is None:
                return await self._fallback(request, "transport", exc)
            return PaymentResponse.failed(message)
        except PaymentError as exc:
            return await self._fallback(request, "transport", exc)
        except Exception as exc:
            return await self._fallback(request, "unexpected", exc)

        if response.status_code == 202:
            logger.info("request to pay accepted reference=%s transaction_id=%s", request.reference, transaction_id)
            return PaymentResponse(
                success=True,
                status=PaymentStatus.PENDING,
                payment_reference=transaction_id,
                transaction_id=transaction_id,
                message="Payment request sent to your phone. Please confirm the transaction.",
                additional_info={
                    "instructions": "Check your phone for a USSD prompt to complete the payment",
                    "timeout": "5 minutes",
                },
            )
        logger.warning(
            "request to pay not accepted reference=%s status=%s", request.reference, response.status_code
        )
        return PaymentResponse.failed("Failed to initiate payment. Please try again.")

    async def poll(self, transaction_id: str) -> PaymentResponse:
        """Read the request-to-pay state; errors become FAILED, never simulation."""

        if not self.configured:
            return await self.simulator.simulate_status(
                self.status_completion_rate, transaction_id=transaction_id
            )
        try:
            token = await self.tokens.get_token()
            response = await self._send(
                "status",
                "GET",
                f"{self.credentials.base_url}/collection/v1_0/requesttopay/{transaction_id}",
                headers=self._headers(token),
            )
            body = response.json()
            if not isinstance(body, dict):
                return PaymentResponse.failed("Unknown payment status", transaction_id=transaction_id)
            return map_collection_status(body, transaction_id)
        except Exception as exc:
            logger.error("mtn status check failed transaction_id=%s error=%r", transaction_id, exc)
            if isinstance(exc, ProviderRejection) and exc.status_code == 401:
                self.tokens.invalidate()
            return PaymentResponse.failed("Failed to check payment status", transaction_id=transaction_id)
