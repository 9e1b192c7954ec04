"""Stripe webhook router keeping license payment state in sync."""
import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from codemarket.database import get_db
from codemarket.services.payment_provider import StripePaymentProvider, get_payment_provider
from codemarket.services.purchases import confirm_license_payment, mark_payment_failed, refund_by_intent

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    provider: StripePaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events.

    - Verifies webhook signature
    - payment_intent.succeeded activates the license (same path as client confirmation)
    - payment_intent.payment_failed / payment_intent.canceled fail a pending license
    - charge.refunded records a refund issued from the Stripe dashboard
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header"
        )

    # Verify webhook signature
    try:
        event = provider.construct_event(payload, sig_header)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload"
        )
    except stripe.SignatureVerificationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

    event_type = event.type
    obj = event.data.object
    logger.info(f"Stripe webhook received: {event_type}")

    if event_type == "payment_intent.succeeded":
        try:
            await confirm_license_payment(db, provider, obj.id)
        except HTTPException as e:
            # Intents that do not belong to a license are not ours to handle
            if e.status_code == status.HTTP_404_NOT_FOUND:
                return {"status": "ignored"}
            # Refunded or superseded licenses stay as they are; acknowledge so Stripe stops retrying
            if e.status_code == status.HTTP_409_CONFLICT:
                logger.warning(f"Ignoring payment_intent.succeeded for {obj.id}: {e.detail}")
                return {"status": "ignored"}
            raise
        return {"status": "license_activated"}

    if event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
        changed = await mark_payment_failed(db, obj.id)
        return {"status": "license_failed" if changed else "ignored"}

    if event_type == "charge.refunded":
        intent_id = getattr(obj, "payment_intent", None)
        if intent_id and await refund_by_intent(db, intent_id):
            return {"status": "license_refunded"}
        return {"status": "ignored"}

    return {"status": "ignored"}
