"""HTTP surface for card, PayPal and Google Pay payments plus Stripe webhooks.

Vendor clients are built once by `build_service` and stored on `app.state`;
routes receive them through dependencies rather than module globals.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, FastAPI, Header, Request

from payroute.common.auth import AuthenticatedUser, require_user
from payroute.common.config import CommonSettings, settings
from payroute.common.errors import register_error_handlers
from payroute.common.logging import configure_logging, request_id_ctx
from payroute.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from payroute.common.ratelimit import RateLimiter, enforce_rate_limit
from payroute.common.startup import log_startup_config
from payroute.common.tracing import instrument_app, setup_tracing
from payroute.services.payments.orders import OrderClient
from payroute.services.payments.paypal import PayPalClient
from payroute.services.payments.schemas import (
    CARD,
    GOOGLE_PAY,
    PAYPAL,
    CaptureRequest,
    CaptureResponse,
    CardPaymentRequest,
    GooglePayPaymentRequest,
    GooglePayResponse,
    PaymentIntentResponse,
    PayPalOrderResponse,
    PayPalPaymentRequest,
)
from payroute.services.payments.service import PaymentService
from payroute.services.payments.stripe_gateway import StripeGateway
from payroute.services.payments.validation import validate_payment

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings,
    [
        "environment",
        "log_level",
        "log_dir",
        "frontend_url",
        "orders_url",
        "redis_url",
        "paypal_environment",
        "rate_limit_enabled",
        "rate_limit_max_requests",
        "rate_limit_window_seconds",
        "stripe_secret_key",
        "stripe_webhook_secret",
        "paypal_client_secret",
    ],
)


def build_service(config: CommonSettings) -> PaymentService:
    """Construct vendor and collaborator clients from settings."""

    return PaymentService(
        StripeGateway(
            config.stripe_secret_key,
            config.stripe_webhook_secret,
            return_url=config.payment_return_url,
            timeout=config.vendor_timeout_seconds,
        ),
        PayPalClient(
            config.paypal_client_id,
            config.paypal_client_secret,
            environment=config.paypal_environment,
            timeout=config.vendor_timeout_seconds,
        ),
        OrderClient(config.orders_url, timeout=config.vendor_timeout_seconds),
        service_name=config.service_name,
    )


def build_rate_limiter(config: CommonSettings) -> RateLimiter | None:
    if not config.rate_limit_enabled:
        return None
    return RateLimiter(
        aioredis.Redis.from_url(config.redis_url, decode_responses=True),
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
        service_name=config.service_name,
    )


def get_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


payments = APIRouter(dependencies=[Depends(enforce_rate_limit)])
public = APIRouter()


@payments.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    user: AuthenticatedUser = Depends(require_user),
    req: CardPaymentRequest = Depends(validate_payment(CARD)),
    service: PaymentService = Depends(get_service),
):
    """Create and confirm a Stripe payment intent for a card."""

    return await service.create_card_payment(req, user)


@payments.post("/create-paypal-order", response_model=PayPalOrderResponse)
async def create_paypal_order(
    user: AuthenticatedUser = Depends(require_user),
    req: PayPalPaymentRequest = Depends(validate_payment(PAYPAL)),
    service: PaymentService = Depends(get_service),
):
    """Create a PayPal order for the buyer to approve."""

    del user
    return await service.create_paypal_order(req)


@payments.post("/capture-paypal-payment", response_model=CaptureResponse)
async def capture_paypal_payment(
    req: CaptureRequest,
    user: AuthenticatedUser = Depends(require_user),
    service: PaymentService = Depends(get_service),
):
    """Capture an approved PayPal order and record the order."""

    return await service.capture_paypal_payment(req.order_id, user)


@payments.post("/create-google-pay-payment", response_model=GooglePayResponse)
async def create_google_pay_payment(
    user: AuthenticatedUser = Depends(require_user),
    req: GooglePayPaymentRequest = Depends(validate_payment(GOOGLE_PAY)),
    service: PaymentService = Depends(get_service),
):
    """Charge a Google Pay token through Stripe."""

    return await service.create_google_pay_payment(req, user)


@public.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    service: PaymentService = Depends(get_service),
):
    """Stripe event receiver; trust comes from the signature, not auth."""

    await service.handle_webhook(await request.body(), stripe_signature)
    return {"received": True}


@public.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@public.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}


def create_app(
    config: CommonSettings = settings,
    service: PaymentService | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Assemble the app; tests pass their own service and limiter."""

    service = service or build_service(config)
    rate_limiter = rate_limiter or build_rate_limiter(config)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Close vendor HTTP pools and the limiter's Redis connection on shutdown."""

        yield
        await service.aclose()
        if rate_limiter is not None:
            await rate_limiter.redis.aclose()

    app = FastAPI(title="PayRoute Payments", lifespan=lifespan)
    app.state.settings = config
    app.state.payment_service = service
    app.state.rate_limiter = rate_limiter
    register_error_handlers(app)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Tag logs with a request id and record request count and latency."""

        token = request_id_ctx.set(request.headers.get("x-request-id") or str(uuid4()))
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers["x-request-id"] = request_id_ctx.get()
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=config.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=config.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()
            request_id_ctx.reset(token)

    app.include_router(payments)
    app.include_router(public)
    instrument_app(app)
    return app


app = create_app()
