"""Request/response schemas for the payment routes.

Payment requests form a tagged union on `method`; each variant declares the
fields its vendor needs. Wire names are camelCase to match the web client.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_AMOUNT = 999_999

CARD = "card"
PAYPAL = "paypal"
GOOGLE_PAY = "google_pay"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BasePaymentRequest(_WireModel):
    """Fields every payment method requires."""

    amount: float = Field(allow_inf_nan=False)
    currency: str = Field(min_length=3, max_length=3)

    @field_validator("amount", mode="before")
    @classmethod
    def reject_booleans(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("amount must be numeric")
        return value


class CardPaymentRequest(BasePaymentRequest):
    method: Literal["card"]
    payment_method_id: str = Field(alias="paymentMethodId", min_length=1)


class PayPalPaymentRequest(BasePaymentRequest):
    method: Literal["paypal"]


class GooglePayData(_WireModel):
    token: str = Field(min_length=1)


class GooglePayPaymentRequest(BasePaymentRequest):
    method: Literal["google_pay"]
    payment_data: GooglePayData = Field(alias="paymentData")


PaymentRequest = Union[CardPaymentRequest, PayPalPaymentRequest, GooglePayPaymentRequest]

PAYMENT_MODELS: dict[str, type[BasePaymentRequest]] = {
    CARD: CardPaymentRequest,
    PAYPAL: PayPalPaymentRequest,
    GOOGLE_PAY: GooglePayPaymentRequest,
}


class CaptureRequest(_WireModel):
    order_id: str = Field(alias="orderId", min_length=1)


class PaymentIntentResponse(_WireModel):
    client_secret: str | None = Field(alias="clientSecret")
    payment_intent_id: str = Field(alias="paymentIntentId")


class PayPalOrderResponse(_WireModel):
    order_id: str = Field(alias="orderId")


class CaptureResponse(_WireModel):
    success: bool = True
    capture_id: str = Field(alias="captureId")


class GooglePayResponse(_WireModel):
    success: bool = True
    payment_intent_id: str = Field(alias="paymentIntentId")


class OrderRecord(_WireModel):
    """Payload handed to the order collaborator for one confirmed payment."""

    user_id: str | None = Field(alias="userId")
    payment_id: str = Field(alias="paymentId")
    payment_method: Literal["card", "paypal"] = Field(alias="paymentMethod")
    status: str = "confirmed"


class PaymentIntentObject(BaseModel):
    """Subset of a Stripe PaymentIntent read by the webhook handlers."""

    model_config = ConfigDict(extra="allow")

    id: str
    metadata: dict[str, str] = Field(default_factory=dict)
    last_payment_error: dict[str, Any] | None = None


class WebhookEventData(BaseModel):
    object_: dict[str, Any] = Field(alias="object")


class WebhookEvent(BaseModel):
    """Stripe event envelope, parsed only after its signature checks out."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str
    data: WebhookEventData
