"""Payment route logic.

Each operation makes its vendor calls, translates vendor failures into the
error taxonomy, and records metrics. The webhook path verifies Stripe events
and hands confirmed payments to the order service.
"""

from contextlib import contextmanager

import httpx
import stripe

from payroute.common.auth import AuthenticatedUser
from payroute.common.errors import (
    OrderCreationError,
    PaymentNotCompleted,
    VendorError,
    WebhookProcessingError,
    WebhookSignatureError,
)
from payroute.common.logging import logger, payment_id_ctx
from payroute.common.metrics import (
    order_creation_total,
    payment_failure_total,
    payment_requests_total,
    payment_success_total,
    vendor_latency_seconds,
    webhook_events_total,
)
from payroute.services.payments.orders import OrderClient
from payroute.services.payments.paypal import PayPalClient, PayPalError, capture_id
from payroute.services.payments.schemas import (
    CARD,
    GOOGLE_PAY,
    PAYPAL,
    CaptureResponse,
    CardPaymentRequest,
    GooglePayPaymentRequest,
    GooglePayResponse,
    OrderRecord,
    PaymentIntentObject,
    PaymentIntentResponse,
    PayPalOrderResponse,
    PayPalPaymentRequest,
    WebhookEvent,
)
from payroute.services.payments.stripe_gateway import StripeGateway, stripe_error_message

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
PAYPAL_COMPLETED = "COMPLETED"

PAYPAL_FAILURES = (PayPalError, httpx.HTTPError)


def _detail(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class PaymentService:
    """Vendor call sequences behind the payment routes."""

    def __init__(
        self,
        stripe_gateway: StripeGateway,
        paypal: PayPalClient,
        orders: OrderClient,
        service_name: str = "payroute",
    ) -> None:
        self.stripe = stripe_gateway
        self.paypal = paypal
        self.orders = orders
        self.service_name = service_name

    @contextmanager
    def _vendor_call(self, vendor: str, operation: str):
        with vendor_latency_seconds.labels(service=self.service_name, vendor=vendor, operation=operation).time():
            yield

    def _requested(self, method: str) -> None:
        payment_requests_total.labels(service=self.service_name, method=method).inc()

    def _succeeded(self, method: str) -> None:
        payment_success_total.labels(service=self.service_name, method=method).inc()

    def _failed(self, method: str, error_code: str) -> None:
        payment_failure_total.labels(service=self.service_name, method=method, error_code=error_code).inc()

    async def create_card_payment(
        self, req: CardPaymentRequest, user: AuthenticatedUser
    ) -> PaymentIntentResponse:
        """Create and confirm a card payment intent.

        The caller's id is stored in intent metadata so the success webhook can
        attribute the order.
        """

        self._requested(CARD)
        try:
            with self._vendor_call("stripe", "create_payment_intent"):
                intent = await self.stripe.create_payment_intent(
                    req.amount,
                    req.currency,
                    req.payment_method_id,
                    metadata={"userId": user.id},
                )
        except stripe.StripeError as exc:
            logger.error("stripe_payment_intent_error code=%s error=%s", exc.code, exc)
            self._failed(CARD, exc.code or "stripe_error")
            raise VendorError(stripe_error_message(exc), code=exc.code) from exc

        payment_id_ctx.set(intent.id)
        self._succeeded(CARD)
        return PaymentIntentResponse(client_secret=intent.client_secret, payment_intent_id=intent.id)

    async def create_paypal_order(self, req: PayPalPaymentRequest) -> PayPalOrderResponse:
        self._requested(PAYPAL)
        try:
            with self._vendor_call("paypal", "create_order"):
                order = await self.paypal.create_order(req.amount, req.currency)
        except PAYPAL_FAILURES as exc:
            logger.error("paypal_order_creation_error error=%s", exc)
            self._failed(PAYPAL, "vendor_error")
            raise VendorError("Failed to create PayPal order", details=_detail(exc)) from exc

        payment_id_ctx.set(order["id"])
        logger.info("paypal_order_created order_id=%s", order["id"])
        return PayPalOrderResponse(order_id=order["id"])

    async def capture_paypal_payment(self, order_id: str, user: AuthenticatedUser) -> CaptureResponse:
        """Capture an approved PayPal order and record it as a confirmed order.

        A capture that comes back in any status other than COMPLETED is a
        `PaymentNotCompleted` error and no order is recorded.
        """

        payment_id_ctx.set(order_id)
        try:
            with self._vendor_call("paypal", "capture_order"):
                capture = await self.paypal.capture_order(order_id)
        except PAYPAL_FAILURES as exc:
            logger.error("paypal_capture_error order_id=%s error=%s", order_id, exc)
            self._failed(PAYPAL, "vendor_error")
            raise VendorError("Failed to capture PayPal payment", details=_detail(exc)) from exc

        status = capture.get("status")
        if status != PAYPAL_COMPLETED:
            logger.error("paypal_capture_not_completed order_id=%s status=%s", order_id, status)
            self._failed(PAYPAL, "not_completed")
            raise PaymentNotCompleted("Failed to capture PayPal payment", details="Payment not completed")

        try:
            await self._record_order(OrderRecord(user_id=user.id, payment_id=order_id, payment_method="paypal"))
        except OrderCreationError as exc:
            self._failed(PAYPAL, "order_creation")
            raise OrderCreationError("Failed to capture PayPal payment", details=exc.details) from exc

        self._succeeded(PAYPAL)
        return CaptureResponse(capture_id=capture_id(capture))

    async def create_google_pay_payment(
        self, req: GooglePayPaymentRequest, user: AuthenticatedUser
    ) -> GooglePayResponse:
        """Charge a Google Pay token through Stripe.

        Two calls: tokenize into a payment method, then confirm an intent. A
        payment method created before a failed confirm is left in place.
        """

        self._requested(GOOGLE_PAY)
        try:
            with self._vendor_call("stripe", "create_payment_method"):
                payment_method = await self.stripe.create_card_payment_method(req.payment_data.token)
            with self._vendor_call("stripe", "create_payment_intent"):
                intent = await self.stripe.create_payment_intent(
                    req.amount,
                    req.currency,
                    payment_method.id,
                    metadata={"userId": user.id},
                )
        except stripe.StripeError as exc:
            logger.error("google_pay_payment_error code=%s error=%s", exc.code, exc)
            self._failed(GOOGLE_PAY, exc.code or "stripe_error")
            raise VendorError(
                "Failed to process Google Pay payment",
                details=stripe_error_message(exc),
                code=exc.code,
            ) from exc

        payment_id_ctx.set(intent.id)
        self._succeeded(GOOGLE_PAY)
        return GooglePayResponse(payment_intent_id=intent.id)

    async def handle_webhook(self, payload: bytes, signature: str | None) -> None:
        """Verify then dispatch one Stripe webhook delivery.

        Deliveries are not deduplicated: a redelivered success event records
        the order again.
        """

        try:
            event = self.stripe.construct_event(payload, signature)
        except WebhookSignatureError as exc:
            logger.error("webhook_signature_verification_failed error=%s", exc.message)
            webhook_events_total.labels(service=self.service_name, event_type="unverified", outcome="rejected").inc()
            raise

        try:
            handled = await self.dispatch_event(event)
        except Exception as exc:
            logger.exception("webhook_processing_error event_id=%s type=%s error=%s", event.id, event.type, exc)
            webhook_events_total.labels(service=self.service_name, event_type=event.type, outcome="failed").inc()
            raise WebhookProcessingError() from exc

        outcome = "processed" if handled else "ignored"
        webhook_events_total.labels(service=self.service_name, event_type=event.type, outcome=outcome).inc()

    async def dispatch_event(self, event: WebhookEvent) -> bool:
        """Route a verified event to its handler; returns False for ignored types."""

        if event.type == PAYMENT_SUCCEEDED:
            await self.handle_successful_payment(PaymentIntentObject.model_validate(event.data.object_))
        elif event.type == PAYMENT_FAILED:
            await self.handle_failed_payment(PaymentIntentObject.model_validate(event.data.object_))
        else:
            logger.info("webhook_event_unhandled type=%s event_id=%s", event.type, event.id)
            return False
        return True

    async def handle_successful_payment(self, intent: PaymentIntentObject) -> None:
        payment_id_ctx.set(intent.id)
        user_id = intent.metadata.get("userId")
        if user_id is None:
            logger.warning("payment_intent_without_user payment_intent_id=%s", intent.id)
        await self._record_order(OrderRecord(user_id=user_id, payment_id=intent.id, payment_method="card"))

    async def handle_failed_payment(self, intent: PaymentIntentObject) -> None:
        # Logged only; no order or remediation for failed intents.
        payment_id_ctx.set(intent.id)
        logger.error("payment_failed payment_intent_id=%s error=%s", intent.id, intent.last_payment_error)
        error_code = (intent.last_payment_error or {}).get("code") or "payment_failed"
        self._failed(CARD, error_code)

    async def _record_order(self, record: OrderRecord) -> None:
        try:
            await self.orders.create_order(record)
        except OrderCreationError:
            logger.error("order_creation_failed payment_id=%s method=%s", record.payment_id, record.payment_method)
            order_creation_total.labels(
                service=self.service_name, payment_method=record.payment_method, outcome="failed"
            ).inc()
            raise
        order_creation_total.labels(
            service=self.service_name, payment_method=record.payment_method, outcome="created"
        ).inc()
        logger.info("order_created payment_id=%s method=%s", record.payment_id, record.payment_method)

    async def aclose(self) -> None:
        await self.paypal.aclose()
        await self.orders.aclose()
