"""Stripe webhook payload builders shared by the tests."""

import hashlib
import hmac
import json
import time

from fastapi.testclient import TestClient

WEBHOOK_SECRET = "whsec_test_secret"
PRICE_PROFESSIONAL = "price_professional_test"
PRICE_STARTER = "price_starter_test"
VAPI_URL = "https://api.vapi.test"


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """stripe-signature header value for the given body."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, data_object: dict, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }).encode()


def invoice_object(
    invoice_id: str = "in_1NvoiceAbc123",
    customer: str = "cus_123",
    amount_paid: int = 24900,
    price_id: str = PRICE_PROFESSIONAL,
    created: int = 1700000000,
) -> dict:
    return {
        "id": invoice_id,
        "object": "invoice",
        "customer": customer,
        "amount_paid": amount_paid,
        "currency": "usd",
        "created": created,
        "hosted_invoice_url": f"https://invoice.stripe.com/i/{invoice_id}",
        "invoice_pdf": f"https://pay.stripe.com/invoice/{invoice_id}/pdf",
        "lines": {"data": [{"price": {"id": price_id}}]},
    }


def post_event(client: TestClient, payload: bytes):
    return client.post(
        "/api/webhook/stripe",
        content=payload,
        headers={"stripe-signature": sign_payload(payload), "Content-Type": "application/json"},
    )
