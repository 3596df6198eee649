import logging
import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from domain_insight.billing import PAID_PLANS, get_current_user
from domain_insight.config import get_settings
from domain_insight.db import User

logger = logging.getLogger(__name__)

stripe.api_key = get_settings().stripe_secret_key
router = APIRouter(prefix="/portal", tags=["billing"])


class CheckoutRequest(BaseModel):
    plan: str


@router.post("/checkout")
async def create_checkout_session(
    body: CheckoutRequest,
    request: Request,
    user: User = Depends(get_current_user),
):
    """Create a Stripe checkout session for a monthly subscription"""
    selected = PAID_PLANS.get(body.plan)
    if not selected:
        raise HTTPException(status_code=400, detail="Invalid plan")

    origin = request.headers.get("origin") or str(request.base_url).rstrip("/")
    metadata = {"user_id": str(user.id), "plan": body.plan}

    try:
        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": selected["name"],
                        "description": selected["description"],
                    },
                    "unit_amount": selected["price"],
                    "recurring": {"interval": "month"},
                },
                "quantity": 1,
            }],
            mode="subscription",
            success_url=f"{origin}/dashboard?success=true&plan={body.plan}&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/pricing?canceled=true",
            customer_email=user.email,
            metadata=metadata,
            subscription_data={"metadata": metadata},
            allow_promotion_codes=True,
            billing_address_collection="required",
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout error for user {user.id}: {e}")
        raise HTTPException(status_code=400, detail=f"Payment processing failed: {str(e)}")

    return {"session_id": session.id, "url": session.url}


@router.get("/checkout")
async def get_checkout_session(session_id: str, user: User = Depends(get_current_user)):
    """Checkout session status, for the dashboard to poll after redirect"""
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe session retrieval error: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve session")

    metadata = session.metadata or {}
    if metadata.get("user_id") != str(user.id):
        raise HTTPException(status_code=403, detail="Unauthorized")

    details = session.customer_details
    return {
        "id": session.id,
        "status": session.status,
        "payment_status": session.payment_status,
        "customer_email": details.email if details else None,
        "amount_total": session.amount_total,
        "currency": session.currency,
        "metadata": dict(metadata),
    }
