"""PayPal Orders v2 REST client.

Covers only what the checkout flow needs: OAuth2 client-credentials tokens,
order creation, and order capture.
"""

from time import monotonic
from urllib.parse import quote

import httpx

from payroute.common.logging import logger

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}
# Refresh tokens a little before PayPal expires them.
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class PayPalError(Exception):
    """Non-2xx answer from the PayPal API."""

    def __init__(self, status_code: int, message: str, details=None) -> None:
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


def format_amount(amount: float) -> str:
    """Render an amount the way PayPal expects it in `amount.value`."""

    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.status_code < 400:
        return
    try:
        payload = resp.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    message = payload.get("message") or payload.get("error_description") or resp.text or resp.reason_phrase
    raise PayPalError(resp.status_code, message, payload.get("details"))


class PayPalClient:
    """Async PayPal client sharing one connection pool and access token."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        environment: str = "sandbox",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock=monotonic,
    ) -> None:
        if environment not in PAYPAL_BASE_URLS:
            raise ValueError(f"unknown PayPal environment: {environment}")
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock
        self.http = httpx.AsyncClient(base_url=PAYPAL_BASE_URLS[environment], timeout=timeout, transport=transport)
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def access_token(self) -> str:
        """Return a cached token, fetching a new one when it is about to expire."""

        if self._token is not None and self.clock() < self._token_expires_at:
            return self._token
        resp = await self.http.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        _raise_for_status(resp)
        payload = resp.json()
        self._token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 0))
        self._token_expires_at = self.clock() + max(0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        logger.info("paypal_token_refreshed expires_in=%s", expires_in)
        return self._token

    async def _request(self, path: str, json: dict, headers: dict[str, str] | None = None) -> dict:
        token = await self.access_token()
        resp = await self.http.post(
            path,
            json=json,
            headers={"Authorization": f"Bearer {token}", **(headers or {})},
        )
        _raise_for_status(resp)
        return resp.json()

    async def create_order(self, amount: float, currency: str) -> dict:
        """Create a CAPTURE-intent order with a single purchase unit."""

        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {"amount": {"currency_code": currency, "value": format_amount(amount)}},
            ],
        }
        return await self._request("/v2/checkout/orders", body, {"Prefer": "return=representation"})

    async def capture_order(self, order_id: str) -> dict:
        """Capture a buyer-approved order."""

        return await self._request(f"/v2/checkout/orders/{quote(order_id, safe='')}/capture", {})

    async def aclose(self) -> None:
        await self.http.aclose()


def capture_id(capture: dict) -> str:
    """Pick the capture id out of a capture response, falling back to the order id."""

    for unit in capture.get("purchase_units") or []:
        captures = (unit.get("payments") or {}).get("captures") or []
        if captures and captures[0].get("id"):
            return captures[0]["id"]
    return capture["id"]
