"""
app/api/webhook.py

Purpose: Stripe webhook endpoint

- Verifies the stripe-signature header against the raw body
- Hands the event to the billing service
- Always acknowledges a verified delivery so Stripe does not retry
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.exceptions import WebhookSignatureError
from app.core.logging import get_logger
from app.services import stripe_service
from app.services.billing_service import process_event

logger = get_logger(__name__)
router = APIRouter()


@router.post("/webhook/stripe")
async def stripe_webhook(request: Request):
    """
    Receives Stripe events.

    Returns 400 with the verification error when the signature does not
    check out; otherwise {"received": true}, even when processing failed.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = stripe_service.construct_event(payload, signature)
    except WebhookSignatureError as e:
        logger.warning(f"Webhook signature verification failed: {e.message}")
        return JSONResponse(status_code=400, content={"error": e.message})

    logger.info(f"📨 Stripe event {event.get('id')} ({event.get('type')})")
    await process_event(event)

    return {"received": True}
