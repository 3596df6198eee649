"""Accounts and subscription status"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from domain_insight.billing import DEFAULT_PLAN, PAID_PLANS, get_current_user, search_limit_for
from domain_insight.db import User, UserExists, UserStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["subscription"])


class SignupRequest(BaseModel):
    email: str


class PlanChangeRequest(BaseModel):
    plan: str


def subscription_out(user: User) -> dict:
    return {
        "plan": user.plan,
        "searches_used": user.searches_used,
        "search_limit": user.search_limit,
        "created_at": user.created_at.isoformat(),
        "email": user.email,
    }


@router.post("")
async def signup(body: SignupRequest, store: UserStore = Depends(get_store)):
    """Create a free account. The API key is only shown once."""
    email = body.email.strip().lower()
    if "@" not in email:
        raise HTTPException(status_code=400, detail="A valid email is required")

    try:
        user = await store.create_user(email, DEFAULT_PLAN, search_limit_for(DEFAULT_PLAN))
    except UserExists:
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    logger.info(f"Created new user {user.id} ({email})")
    return {
        **subscription_out(user),
        "api_key": user.api_key,
        "message": "Your API key has been created. Store it securely - it won't be shown again.",
    }


@router.get("/subscription")
async def get_subscription(user: User = Depends(get_current_user)):
    return subscription_out(user)


@router.post("/subscription")
async def change_plan(
    body: PlanChangeRequest,
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    """
    Downgrade to the free plan. Paid plans are only granted by the Stripe
    webhook once checkout completes.
    """
    if body.plan in PAID_PLANS:
        raise HTTPException(status_code=402, detail="Paid plans require checkout via /portal/checkout")
    if body.plan != DEFAULT_PLAN:
        raise HTTPException(status_code=400, detail="Invalid plan")

    updated = await store.set_plan(user.id, DEFAULT_PLAN, search_limit_for(DEFAULT_PLAN))
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    return subscription_out(updated)


__all__ = ["router"]
