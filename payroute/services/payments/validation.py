"""Payment request validation applied before any vendor call.

`validate_payment(...)` builds a FastAPI dependency for one endpoint. It picks the
request model for the declared `method`, checks transport security, reports
every field violation at once, then enforces the amount bounds.
"""

import json

from fastapi import Request
from pydantic import ValidationError

from payroute.common.config import CommonSettings
from payroute.common.errors import (
    InsecureTransport,
    InvalidAmount,
    InvalidPaymentMethod,
    PaymentError,
    PaymentValidationError,
    ValidationFault,
    validation_details,
)
from payroute.common.logging import logger
from payroute.services.payments.schemas import (
    MAX_AMOUNT,
    PAYMENT_MODELS,
    BasePaymentRequest,
    PaymentRequest,
)

FIELD_MESSAGES = {
    "amount": "Amount must be a number",
    "currency": "Invalid currency code",
    "paymentMethodId": "Payment method ID is required",
    "paymentData": "Invalid payment data",
    "paymentData.token": "Payment token is required",
}
AMOUNT_BOUNDS_MESSAGE = "Amount must be between 0 and 999,999"


def is_secure(request: Request) -> bool:
    # Behind a proxy this relies on uvicorn's --proxy-headers rewriting the scheme.
    return request.url.scheme == "https"


async def _json_body(request: Request) -> dict:
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError as exc:
        raise PaymentValidationError(
            details=[{"type": "body", "path": "", "msg": "Malformed JSON body", "location": "body"}]
        ) from exc
    return body if isinstance(body, dict) else {}


def payment_model(body: dict, allowed_methods: frozenset[str]) -> type[BasePaymentRequest]:
    method = body.get("method")
    if not isinstance(method, str) or method not in allowed_methods:
        raise InvalidPaymentMethod()
    return PAYMENT_MODELS[method]


def check_payment(body: dict, allowed_methods: frozenset[str]) -> PaymentRequest:
    """Validate one decoded body against the rules of its payment method."""

    model = payment_model(body, allowed_methods)
    try:
        payment = model.model_validate(body)
    except ValidationError as exc:
        raise PaymentValidationError(details=validation_details(exc.errors(), FIELD_MESSAGES)) from exc

    if not 0 < payment.amount <= MAX_AMOUNT:
        raise InvalidAmount(details=AMOUNT_BOUNDS_MESSAGE)
    return payment


def validate_payment(*methods: str):
    """Dependency factory accepting requests for the given payment methods."""

    allowed = frozenset(methods)

    async def dependency(request: Request) -> PaymentRequest:
        config: CommonSettings = request.app.state.settings
        try:
            body = await _json_body(request)
            # An unknown method is a 400 even over plain HTTP.
            payment_model(body, allowed)
            if config.is_production and not is_secure(request):
                raise InsecureTransport()
            return check_payment(body, allowed)
        except PaymentError as exc:
            logger.warning(
                "payment_validation_rejected path=%s status=%s message=%s details=%s",
                request.url.path,
                exc.status_code,
                exc.message,
                exc.details,
            )
            raise
        except Exception as exc:
            logger.exception("payment_validation_error path=%s error=%s", request.url.path, exc)
            raise ValidationFault(details=str(exc)) from exc

    return dependency
