"""Provider-agnostic request/response values exchanged with checkout code."""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class PaymentMethod(str, Enum):
    MTN_MOMO = "MTN_MOMO"
    ORANGE_MONEY = "ORANGE_MONEY"
    CASH = "CASH"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class PaymentRequest(_CamelModel):
    """Payment attempt built by the booking/checkout flow.

    `method` keeps unknown values as plain strings so the gateway can answer
    them with a FAILED response instead of a validation error.
    """

    amount: Decimal = Field(gt=0)
    currency: str = Field(min_length=1)
    method: PaymentMethod | str = Field(union_mode="left_to_right")
    customer_phone: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    reference: str = Field(min_length=1)
    description: str = ""
    metadata: dict[str, Any] | None = None


class PaymentResponse(_CamelModel):
    """Uniform outcome of every gateway call, live or simulated."""

    success: bool
    status: PaymentStatus
    payment_reference: str | None = None
    transaction_id: str | None = None
    message: str | None = None
    payment_url: str | None = None
    additional_info: dict[str, Any] | None = None
    simulated: bool = False

    @model_validator(mode="after")
    def _check_outcome(self) -> "PaymentResponse":
        if self.success and self.status == PaymentStatus.FAILED:
            raise ValueError("a FAILED payment cannot be successful")
        if self.status == PaymentStatus.PENDING and not (self.payment_reference or self.transaction_id):
            raise ValueError("a PENDING payment needs a reference to poll")
        return self

    @classmethod
    def failed(cls, message: str, **kwargs: Any) -> "PaymentResponse":
        return cls(success=False, status=PaymentStatus.FAILED, message=message, **kwargs)
