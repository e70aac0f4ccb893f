"""Request/response schemas for checkout endpoints.

Body models are deliberately lenient (`Any` for fields the service validates
itself) so every input problem surfaces as a `ValidationError` with a stable
message instead of a framework-generated 422.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from checkoutpay.common.payment_status import GatewayStatus


class OrderCreatePayload(BaseModel):
    """Body accepted by `POST /order`."""

    model_config = ConfigDict(extra="ignore")

    amount: Any = None
    currency: Any = None
    receipt: Any = None
    notes: Any = None
    customer_id: Any = None
    customer_email: Any = None
    customer_phone: Any = None


class VerificationPayload(BaseModel):
    """Body accepted by `POST /verify-payment`.

    Accepts the checkout widget's `razorpay_*` callback names as well as the
    short camelCase names.
    """

    model_config = ConfigDict(extra="ignore")

    order_id: Any = Field(default=None, validation_alias=AliasChoices("razorpay_order_id", "orderId", "order_id"))
    payment_id: Any = Field(
        default=None, validation_alias=AliasChoices("razorpay_payment_id", "paymentId", "payment_id")
    )
    signature: Any = Field(default=None, validation_alias=AliasChoices("razorpay_signature", "signature"))


class OrderRequest(BaseModel):
    """Validated order parameters forwarded to the gateway."""

    amount: int
    currency: str
    receipt: str
    notes: dict[str, Any]


class OrderDescriptor(BaseModel):
    """Caller-facing subset of the gateway order."""

    model_config = ConfigDict(frozen=True)

    id: str
    amount: int
    currency: str
    receipt: str | None = None
    status: str
    created_at: int | None = None


class VerificationRequest(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class VerificationResult(BaseModel):
    """Outcome of one verification call, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    verified: bool
    message: str
    order_id: str
    payment_id: str
    gateway_status: GatewayStatus | None = None
    amount: int | None = None
    currency: str | None = None
    method: str | None = None
    details_available: bool = False
    verified_at: datetime

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
