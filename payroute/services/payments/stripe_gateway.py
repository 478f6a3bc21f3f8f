"""Stripe calls used by the card and Google Pay flows and the webhook."""

import stripe
from pydantic import ValidationError

from payroute.common.errors import WebhookSignatureError
from payroute.services.payments.schemas import WebhookEvent


def minor_units(amount: float) -> int | float:
    """Stripe takes integer minor units; fractional amounts are left for Stripe to reject."""

    return int(amount) if float(amount).is_integer() else amount


def stripe_error_message(exc: stripe.StripeError) -> str:
    return exc.user_message or str(exc)


class StripeGateway:
    """Thin async wrapper over `stripe.StripeClient`.

    One instance is built at startup and shared by all requests; it holds no
    per-request state.
    """

    def __init__(
        self,
        secret_key: str,
        webhook_secret: str,
        return_url: str,
        timeout: float = 10.0,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self.webhook_secret = webhook_secret
        self.return_url = return_url
        self.client = client or stripe.StripeClient(secret_key, http_client=stripe.HTTPXClient(timeout=timeout))

    async def create_payment_intent(
        self,
        amount: float,
        currency: str,
        payment_method_id: str,
        metadata: dict[str, str] | None = None,
    ):
        """Create and immediately confirm a payment intent."""

        return await self.client.v1.payment_intents.create_async(
            params={
                "amount": minor_units(amount),
                "currency": currency,
                "payment_method": payment_method_id,
                "confirm": True,
                "return_url": self.return_url,
                "metadata": metadata or {},
            }
        )

    async def create_card_payment_method(self, token: str):
        """Turn a wallet card token (e.g. Google Pay) into a payment method."""

        return await self.client.v1.payment_methods.create_async(
            params={"type": "card", "card": {"token": token}}
        )

    def construct_event(self, payload: bytes, signature: str | None) -> WebhookEvent:
        """Verify the `Stripe-Signature` header and parse the event body.

        Raises `WebhookSignatureError` for a missing or bad signature and for
        payloads that are not a Stripe event.
        """

        if not signature:
            raise WebhookSignatureError("Webhook Error: missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
            return WebhookEvent.model_validate_json(payload)
        except (ValueError, ValidationError, stripe.SignatureVerificationError) as exc:
            raise WebhookSignatureError(f"Webhook Error: {exc}") from exc
