"""Error taxonomy and its translation to HTTP responses.

Every failure a route can produce is a `PaymentError` subclass. Handlers raise
them at their own boundary and a single exception handler renders the
`{"error": {...}}` body, so the response shape is the same everywhere.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from payroute.common.logging import logger
from payroute.common.metrics import validation_failures_total


class PaymentError(Exception):
    """Base class for errors that map onto one HTTP response."""

    status_code = 500
    default_message = "Internal server error"
    code: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        details: Any = None,
        code: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        error: dict[str, Any] = {"message": self.message}
        if self.code is not None:
            error["code"] = self.code
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


# Client input (400)


class InvalidPaymentMethod(PaymentError):
    status_code = 400
    default_message = "Invalid payment method"


class PaymentValidationError(PaymentError):
    """Field-level failures; `details` lists every violation."""

    status_code = 400
    default_message = "Validation error"


class InvalidAmount(PaymentError):
    status_code = 400
    default_message = "Invalid amount"


class WebhookSignatureError(PaymentError):
    status_code = 400
    default_message = "Webhook Error"


# Authentication / transport


class AuthenticationError(PaymentError):
    status_code = 401
    default_message = "Not authorized"


class InsecureTransport(PaymentError):
    status_code = 403
    default_message = "Payment must be processed over HTTPS"


class RateLimitExceeded(PaymentError):
    status_code = 429
    default_message = "Too many requests"


# Server side (500)


class ValidationFault(PaymentError):
    """Unexpected crash inside the validation layer itself."""

    default_message = "Payment validation failed"


class VendorError(PaymentError):
    """A payment vendor rejected or failed a call."""


class PaymentNotCompleted(PaymentError):
    """Vendor call succeeded but the payment is not in a terminal success state."""

    code = "PAYMENT_NOT_COMPLETED"


class OrderCreationError(PaymentError):
    """The order collaborator refused or failed to record the order."""

    default_message = "Failed to create order"
    code = "ORDER_CREATION_FAILED"


class WebhookProcessingError(PaymentError):
    default_message = "Webhook processing failed"


_VALIDATION_KINDS = (InvalidPaymentMethod, PaymentValidationError, InvalidAmount, InsecureTransport)


def validation_details(errors: Sequence[Mapping[str, Any]], messages: Mapping[str, str] | None = None) -> list[dict]:
    """Flatten pydantic errors into one detail per failing body field.

    `messages` replaces pydantic's wording for known field paths.
    """

    messages = messages or {}
    details: list[dict] = []
    seen: set[str] = set()
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] == "body":
            loc = loc[1:]
        path = ".".join(loc)
        if path in seen:
            continue
        seen.add(path)
        detail = {
            "type": "field",
            "path": path,
            "msg": messages.get(path, err.get("msg", "Invalid value")),
            "location": "body",
        }
        if err.get("type") != "missing" and "input" in err:
            detail["value"] = jsonable_encoder(err["input"])
        details.append(detail)
    return details


async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    """Render any `PaymentError` as its JSON body and status."""

    if isinstance(exc, _VALIDATION_KINDS):
        service = request.app.state.settings.service_name
        validation_failures_total.labels(service=service, reason=type(exc).__name__).inc()
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Give FastAPI's own body validation the same 400 shape as ours."""

    return await payment_error_handler(request, PaymentValidationError(details=validation_details(exc.errors())))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s error=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content=PaymentError().to_body())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PaymentError, payment_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
