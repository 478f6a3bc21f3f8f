"""PayPal order creation, capture, and the REST client underneath."""

import asyncio
import json

import httpx
import pytest

from payroute.services.payments.paypal import PayPalClient, PayPalError, capture_id, format_amount


def _order_body(**overrides):
    body = {"method": "paypal", "amount": 49.99, "currency": "USD"}
    body.update(overrides)
    return body


def test_create_order_returns_order_id(client, auth_headers):
    resp = client.post("/create-paypal-order", headers=auth_headers, json=_order_body())

    assert resp.status_code == 200
    assert resp.json() == {"orderId": "5O190127TN364715T"}


def test_create_order_sends_capture_intent_and_string_amount(client, auth_headers, paypal_api):
    client.post("/create-paypal-order", headers=auth_headers, json=_order_body(amount=100))

    order_request = paypal_api.requests[-1]
    assert order_request.headers["prefer"] == "return=representation"
    assert order_request.headers["authorization"] == "Bearer A21-token"
    assert json.loads(order_request.content) == {
        "intent": "CAPTURE",
        "purchase_units": [{"amount": {"currency_code": "USD", "value": "100"}}],
    }


def test_create_order_vendor_error_is_500_with_details(client, auth_headers, paypal_api):
    paypal_api.fail_with = (422, {"name": "UNPROCESSABLE_ENTITY", "message": "The requested action could not be performed"})

    resp = client.post("/create-paypal-order", headers=auth_headers, json=_order_body())

    assert resp.status_code == 500
    assert resp.json() == {
        "error": {
            "message": "Failed to create PayPal order",
            "details": "The requested action could not be performed",
        }
    }


def test_completed_capture_records_one_confirmed_order(client, auth_headers, order_service):
    resp = client.post("/capture-paypal-payment", headers=auth_headers, json={"orderId": "5O190127TN364715T"})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "captureId": "3C679366HH908993F"}
    assert order_service.orders == [
        {
            "userId": "user-42",
            "paymentId": "5O190127TN364715T",
            "paymentMethod": "paypal",
            "status": "confirmed",
        }
    ]


@pytest.mark.parametrize("status", ["PENDING", "DECLINED", "APPROVED"])
def test_incomplete_capture_never_records_order(client, auth_headers, paypal_api, order_service, status):
    paypal_api.capture_status = status

    resp = client.post("/capture-paypal-payment", headers=auth_headers, json={"orderId": "5O190127TN364715T"})

    assert resp.status_code == 500
    assert resp.json() == {
        "error": {
            "message": "Failed to capture PayPal payment",
            "code": "PAYMENT_NOT_COMPLETED",
            "details": "Payment not completed",
        }
    }
    assert order_service.orders == []


def test_order_service_failure_surfaces_as_capture_failure(client, auth_headers, order_service):
    order_service.status_code = 409

    resp = client.post("/capture-paypal-payment", headers=auth_headers, json={"orderId": "5O190127TN364715T"})

    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["message"] == "Failed to capture PayPal payment"
    assert error["code"] == "ORDER_CREATION_FAILED"


def test_capture_requires_order_id(client, auth_headers, paypal_api):
    resp = client.post("/capture-paypal-payment", headers=auth_headers, json={})

    assert resp.status_code == 400
    assert resp.json()["error"]["details"][0]["path"] == "orderId"
    assert paypal_api.requests == []


def test_capture_url_escapes_order_id(client, auth_headers, paypal_api):
    client.post("/capture-paypal-payment", headers=auth_headers, json={"orderId": "../oauth2"})

    assert paypal_api.requests[-1].url.raw_path.endswith(b"/v2/checkout/orders/..%2Foauth2/capture")


@pytest.mark.parametrize(
    ("amount", "expected"),
    [(10, "10"), (10.0, "10"), (10.5, "10.5"), (0.01, "0.01"), (999999, "999999")],
)
def test_format_amount(amount, expected):
    assert format_amount(amount) == expected


def test_capture_id_falls_back_to_order_id():
    assert capture_id({"id": "ORDER-1", "status": "COMPLETED"}) == "ORDER-1"


def test_access_token_is_cached_until_near_expiry(paypal_api):
    now = [1000.0]
    paypal = PayPalClient(
        "id",
        "secret",
        transport=httpx.MockTransport(paypal_api.handler),
        clock=lambda: now[0],
    )

    async def scenario():
        await paypal.create_order(10, "USD")
        await paypal.create_order(11, "USD")
        now[0] += 32400
        await paypal.create_order(12, "USD")
        await paypal.aclose()

    asyncio.run(scenario())

    assert paypal_api.token_requests == 2


def test_token_request_uses_client_credentials(paypal_api):
    paypal = PayPalClient("id", "secret", transport=httpx.MockTransport(paypal_api.handler))

    asyncio.run(paypal.access_token())

    token_request = paypal_api.requests[0]
    assert token_request.content == b"grant_type=client_credentials"
    assert token_request.headers["authorization"].startswith("Basic ")


def test_non_json_error_body_still_raises_paypal_error():
    paypal = PayPalClient(
        "id",
        "secret",
        transport=httpx.MockTransport(lambda request: httpx.Response(503, text="upstream unavailable")),
    )

    with pytest.raises(PayPalError) as exc_info:
        asyncio.run(paypal.access_token())

    assert exc_info.value.status_code == 503
    assert str(exc_info.value) == "upstream unavailable"


def test_unknown_environment_is_rejected():
    with pytest.raises(ValueError):
        PayPalClient("id", "secret", environment="staging")
