import logging
import stripe
from fastapi import APIRouter, Depends, HTTPException, Request

from domain_insight.billing import DEFAULT_PLAN, PAID_PLANS, search_limit_for
from domain_insight.config import get_settings
from domain_insight.db import UserStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/portal", tags=["billing"])


@router.post("/webhook")
async def stripe_webhook(request: Request, store: UserStore = Depends(get_store)):
    """Apply plan changes from Stripe events. Every plan change restarts the usage counter."""
    secret = get_settings().stripe_webhook_secret
    if not secret:
        raise HTTPException(status_code=503, detail="Webhook secret not configured")

    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="No signature")

    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail="Webhook error")

    event_type = event["type"]
    obj = event["data"]["object"]
    metadata = obj.get("metadata") or {}
    logger.info(f"Received event: {event_type}")

    try:
        if event_type == "checkout.session.completed":
            user_id, plan = metadata.get("user_id"), metadata.get("plan")
            if user_id and plan in PAID_PLANS:
                await store.set_plan(int(user_id), plan, search_limit_for(plan),
                                     stripe_customer_id=obj.get("customer"))
                logger.info(f"Updated user {user_id} to {plan} plan")

        elif event_type == "customer.subscription.deleted":
            user_id = metadata.get("user_id")
            if user_id:
                await store.set_plan(int(user_id), DEFAULT_PLAN, search_limit_for(DEFAULT_PLAN))
                logger.info(f"Downgraded user {user_id} to free plan")

        elif event_type == "invoice.payment_failed":
            logger.warning(f"Payment failed for customer {obj.get('customer')}")

        else:
            logger.info(f"Unhandled event type: {event_type}")

    except Exception:
        logger.exception(f"Webhook processing error for {event_type}")
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    return {"received": True}
