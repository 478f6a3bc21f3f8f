"""Shared fixtures: an app wired to in-memory Stripe, PayPal and order fakes."""

import json
import os
from types import SimpleNamespace

# Settings are read at import time, so the environment has to be ready first.
os.environ.update(
    {
        "ENVIRONMENT": "test",
        "API_KEY": "test-api-key",
        "STRIPE_SECRET_KEY": "sk_test_dummy",
        "STRIPE_WEBHOOK_SECRET": "whsec_test_secret",
        "PAYPAL_CLIENT_ID": "paypal-client",
        "PAYPAL_CLIENT_SECRET": "paypal-secret",
        "FRONTEND_URL": "https://shop.example.com",
        "ORDERS_URL": "http://orders.test",
        "RATE_LIMIT_ENABLED": "false",
        "TRACING_ENABLED": "false",
    }
)

import httpx
import pytest
from fastapi.testclient import TestClient

from payroute.common.config import CommonSettings
from payroute.services.payments.main import create_app
from payroute.services.payments.orders import OrderClient
from payroute.services.payments.paypal import PayPalClient
from payroute.services.payments.service import PaymentService
from payroute.services.payments.stripe_gateway import StripeGateway

class _FakeStripeResource:
    def __init__(self, owner, name: str) -> None:
        self.owner = owner
        self.name = name

    async def create_async(self, params=None, options=None):
        self.owner.calls.append((self.name, params))
        error = self.owner.errors.get(self.name)
        if error is not None:
            raise error
        self.owner.counter += 1
        if self.name == "payment_methods":
            return SimpleNamespace(id=f"pm_{self.owner.counter}")
        return SimpleNamespace(id=f"pi_{self.owner.counter}", client_secret=f"pi_{self.owner.counter}_secret")


class FakeStripeClient:
    """Stands in for `stripe.StripeClient`, recording every create call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.errors: dict[str, Exception] = {}
        self.counter = 0
        self.v1 = SimpleNamespace(
            payment_intents=_FakeStripeResource(self, "payment_intents"),
            payment_methods=_FakeStripeResource(self, "payment_methods"),
        )


class FakePayPal:
    """PayPal REST API behind an `httpx.MockTransport`."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.capture_status = "COMPLETED"
        self.fail_with: tuple[int, dict] | None = None
        self.token_requests = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/oauth2/token":
            self.token_requests += 1
            return httpx.Response(200, json={"access_token": "A21-token", "expires_in": 32400})
        if self.fail_with is not None:
            status, body = self.fail_with
            return httpx.Response(status, json=body)
        if request.url.path == "/v2/checkout/orders":
            return httpx.Response(201, json={"id": "5O190127TN364715T", "status": "CREATED"})
        if request.url.path.endswith("/capture"):
            order_id = request.url.path.split("/")[-2]
            return httpx.Response(
                201,
                json={
                    "id": order_id,
                    "status": self.capture_status,
                    "purchase_units": [{"payments": {"captures": [{"id": "3C679366HH908993F"}]}}],
                },
            )
        return httpx.Response(404, json={"message": "not found"})


class FakeOrderService:
    """Order collaborator that records every order it is asked to create."""

    def __init__(self) -> None:
        self.orders: list[dict] = []
        self.status_code = 201

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"message": "duplicate order"})
        self.orders.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"ok": True})


@pytest.fixture
def auth_headers():
    return {"x-api-key": "test-api-key", "x-user-id": "user-42"}


@pytest.fixture
def webhook_secret():
    return os.environ["STRIPE_WEBHOOK_SECRET"]


@pytest.fixture
def settings_factory():
    def build(**overrides) -> CommonSettings:
        return CommonSettings(**overrides)

    return build


@pytest.fixture
def stripe_client():
    return FakeStripeClient()


@pytest.fixture
def paypal_api():
    return FakePayPal()


@pytest.fixture
def order_service():
    return FakeOrderService()


@pytest.fixture
def service(settings_factory, stripe_client, paypal_api, order_service):
    config = settings_factory()
    return PaymentService(
        StripeGateway(
            config.stripe_secret_key,
            config.stripe_webhook_secret,
            return_url=config.payment_return_url,
            client=stripe_client,
        ),
        PayPalClient("paypal-client", "paypal-secret", transport=httpx.MockTransport(paypal_api.handler)),
        OrderClient(config.orders_url, transport=httpx.MockTransport(order_service.handler)),
    )


@pytest.fixture
def make_client(settings_factory, service):
    def build(rate_limiter=None, base_url: str = "http://testserver", **overrides) -> TestClient:
        app = create_app(settings_factory(**overrides), service=service, rate_limiter=rate_limiter)
        return TestClient(app, base_url=base_url)

    return build


@pytest.fixture
def client(make_client):
    return make_client()
