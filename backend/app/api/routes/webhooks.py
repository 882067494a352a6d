"""
Stripe Webhook Handler

Verifies Stripe webhook signatures and hands events to the
SubscriptionReconciler. Every processed event id is recorded in the
database; redelivered events are skipped only when
WEBHOOK_DEDUPLICATE_EVENTS is enabled.

Responses:
- 200 {"received": true}: processed, or an event type we ignore
- 400 {"error": ...}: missing or invalid signature
- 500 {"error": ...}: processing failed, Stripe will retry
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import DateTime, bindparam, text

from app.config.settings import get_settings
from app.infrastructure.db.database import get_session_context
from app.infrastructure.db.models.base import utc_now
from app.infrastructure.exceptions import ConfigurationError
from app.infrastructure.payments.stripe_service import (
    StripeServiceError,
    get_stripe_service,
)
from app.infrastructure.services.subscription_reconciler import (
    get_subscription_reconciler,
)


logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Processed event tracking
# =============================================================================

async def is_event_processed(event_id: str) -> bool:
    """Check if a webhook event has already been processed (DB query)."""
    async with get_session_context() as session:
        result = await session.execute(
            text("SELECT 1 FROM processed_webhook_events WHERE event_id = :eid"),
            {"eid": event_id},
        )
        return result.scalar_one_or_none() is not None


async def mark_event_processed(event_id: str, event_type: str) -> None:
    """Record a processed webhook event in the database."""
    async with get_session_context() as session:
        await session.execute(
            text(
                "INSERT INTO processed_webhook_events (event_id, event_type, processed_at) "
                "VALUES (:eid, :etype, :at) ON CONFLICT (event_id) DO NOTHING"
            ).bindparams(bindparam("at", type_=DateTime(timezone=True))),
            {"eid": event_id, "etype": event_type, "at": utc_now()},
        )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# =============================================================================
# Webhook Endpoint
# =============================================================================

@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request):
    """
    Handle Stripe webhook events.

    The signature is verified against the raw body before anything is parsed.
    """
    stripe_service = get_stripe_service()

    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing Stripe signature")

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return _error(status.HTTP_400_BAD_REQUEST, str(e))
    except ConfigurationError as e:
        logger.error(f"Webhook rejected: {e.message}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)

    event_id = event.get("id")
    event_type = event.get("type")

    if get_settings().webhook_deduplicate_events and await is_event_processed(event_id):
        logger.info(f"Event {event_id} already processed, skipping")
        return {"received": True}

    logger.info(f"Processing webhook event: {event_type} ({event_id})")

    try:
        reconciler = get_subscription_reconciler()
        await reconciler.handle_event(event_type, event["data"]["object"])
    except ConfigurationError as e:
        logger.critical(f"Webhook {event_type} ({event_id}) misconfigured: {e.message} {e.details}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, e.message)
    except Exception as e:
        logger.error(f"Error processing webhook {event_type} ({event_id}): {e}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    try:
        await mark_event_processed(event_id, event_type)
    except Exception as e:
        logger.error(f"Failed to record processed event {event_id}: {e}")

    return {"received": True}
