"""Error taxonomy raised inside provider clients.

None of these reach gateway callers: the gateway turns every one of them into
a `PaymentResponse`.
"""


class PaymentError(Exception):
    """Base class for payment gateway failures."""


class PhoneValidationError(PaymentError):
    """Missing or malformed customer phone number."""


class AuthenticationError(PaymentError):
    """Credential exchange with a provider failed or was rejected."""

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider} authentication failed: {detail}")
        self.provider = provider
        self.detail = detail


class ProviderRejection(PaymentError):
    """Well-formed call answered with a failure status."""

    def __init__(self, provider: str, status_code: int, body: str = "") -> None:
        super().__init__(f"{provider} rejected request with HTTP {status_code}")
        self.provider = provider
        self.status_code = status_code
        self.body = body


class TransportError(PaymentError):
    """Network failure, timeout or malformed provider response."""


class UnsupportedMethodError(PaymentError):
    """Payment method with no registered provider client."""


class ProvisioningError(PaymentError):
    """Sandbox API user or API key could not be created."""
