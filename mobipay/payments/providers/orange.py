"""Orange Money web-payment client.

Initiation returns a hosted payment page the end user is redirected to.
Confirmation arrives through the merchant notification URL, so this client
has no polling path.
"""

from decimal import Decimal

from mobipay.common.config import OrangeCredentials
from mobipay.common.logging import logger
from mobipay.payments.errors import PhoneValidationError
from mobipay.payments.phone import Carrier
from mobipay.payments.providers.base import ProviderClient
from mobipay.payments.schemas import PaymentMethod, PaymentRequest, PaymentResponse, PaymentStatus
from mobipay.payments.simulation import ORANGE_PROFILE
from mobipay.payments.tokens import OrangeTokenManager


def _json_amount(amount: Decimal) -> int | float:
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


class OrangeMoneyClient(ProviderClient):
    provider = "orange"
    method = PaymentMethod.ORANGE_MONEY
    carrier = Carrier.ORANGE
    display_name = "Orange Money"
    profile = ORANGE_PROFILE

    def __init__(self, credentials: OrangeCredentials, tokens: OrangeTokenManager, *args, **kwargs) -> None:
        super().__init__(tokens, *args, **kwargs)
        self.credentials = credentials

    @property
    def configured(self) -> bool:
        return self.credentials.configured

    def _payload(self, request: PaymentRequest) -> dict:
        creds = self.credentials
        return {
            "merchant_key": creds.merchant_key,
            "currency": creds.currency,
            "order_id": request.reference,
            "amount": _json_amount(request.amount),
            "return_url": creds.return_url,
            "cancel_url": creds.cancel_url,
            "notif_url": creds.notif_url,
            "lang": creds.lang,
            "reference": request.description,
        }

    async def initiate(self, request: PaymentRequest) -> PaymentResponse:
        try:
            self._require_msisdn(request)
        except PhoneValidationError as exc:
            return PaymentResponse.failed(str(exc))

        if not self.configured:
            return await self._fallback(request, "unconfigured")

        # Every live failure, auth included, degrades to simulation.
        try:
            token = await self.tokens.get_token()
            response = await self._send(
                "webpayment",
                "POST",
                f"{self.credentials.base_url}/webpayment",
                json=self._payload(request),
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
            body = response.json()
            payment_url = body.get("payment_url") if isinstance(body, dict) else None
            if not payment_url:
                logger.warning("orange webpayment returned no payment_url reference=%s", request.reference)
                return PaymentResponse.failed("Failed to initiate Orange Money payment. Please try again.")
            # A body with unexpected field types fails validation here and falls back.
            result = PaymentResponse(
                success=True,
                status=PaymentStatus.PENDING,
                payment_reference=body.get("pay_token") or request.reference,
                payment_url=payment_url,
                message="Please complete the payment in your Orange Money app.",
                additional_info={
                    "instructions": "You will be redirected to Orange Money to complete the payment",
                    "timeout": "10 minutes",
                },
            )
        except Exception as exc:
            return await self._fallback(request, "transport", exc)

        logger.info("orange webpayment created reference=%s", request.reference)
        return result
