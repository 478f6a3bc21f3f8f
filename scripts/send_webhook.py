"""Sign a Stripe event payload and POST it to the webhook endpoint.

Useful for local testing without the Stripe CLI, and for checking what a
duplicate delivery does (`--repeat 2`).
"""

import argparse
import asyncio
import hashlib
import hmac
import json
import time
from pathlib import Path

import httpx


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a `Stripe-Signature` header value for `payload`."""

    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def sample_event(event_type: str, intent_id: str, user_id: str) -> dict:
    return {
        "id": f"evt_{intent_id}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "metadata": {"userId": user_id},
                "last_payment_error": None,
            }
        },
    }


async def send(url: str, payload: bytes, secret: str, repeat: int) -> None:
    """Deliver the same signed payload `repeat` times and print each answer."""

    async with httpx.AsyncClient(timeout=10.0) as client:
        for attempt in range(1, repeat + 1):
            resp = await client.post(
                url,
                content=payload,
                headers={"content-type": "application/json", "stripe-signature": sign_payload(payload, secret)},
            )
            print(f"delivery={attempt} status={resp.status_code} body={resp.text}")


def main() -> None:
    """Parse CLI args and deliver one event."""

    parser = argparse.ArgumentParser(description="Send a signed Stripe webhook event.")
    parser.add_argument("--url", default="http://localhost:8000/webhook")
    parser.add_argument("--secret", required=True, help="Webhook signing secret (whsec_...)")
    parser.add_argument("--type", dest="event_type", default="payment_intent.succeeded")
    parser.add_argument("--intent-id", default="pi_local_test")
    parser.add_argument("--user-id", default="user-local")
    parser.add_argument("--file", dest="json_file", default=None, help="Send this JSON file instead of a sample event")
    parser.add_argument("--repeat", type=int, default=1)
    args = parser.parse_args()

    if args.json_file:
        payload = Path(args.json_file).read_bytes()
    else:
        payload = json.dumps(sample_event(args.event_type, args.intent_id, args.user_id)).encode("utf-8")

    asyncio.run(send(args.url, payload, args.secret, args.repeat))


if __name__ == "__main__":
    main()
