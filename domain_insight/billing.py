"""Plans, per-plan quotas, API key authentication and request rate limiting"""
from fastapi import Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from domain_insight.db import User, UserStore, get_store

DEFAULT_PLAN = "free"

# Searches per billing period; 999999 is "unlimited"
PLAN_SEARCH_LIMITS = {
    "free": 20,
    "starter": 500,
    "pro": 999999,
    "enterprise": 999999,
}

# Monthly price in cents, name and marketing blurb for Stripe checkout
PAID_PLANS = {
    "starter": {
        "price": 2900,
        "name": "Starter Plan",
        "description": "500 searches/month, full security reports, CSV exports",
    },
    "pro": {
        "price": 9900,
        "name": "Pro Plan",
        "description": "Unlimited searches, API access, bulk processing, historical data",
    },
    "enterprise": {
        "price": 29900,
        "name": "Enterprise Plan",
        "description": "White-label options, custom reporting, team features, priority support",
    },
}

FREE_SAVED_DOMAINS = 5
PAID_SAVED_DOMAINS = 1000

HISTORY_WINDOW_DAYS = {"starter": 180, "pro": 1825, "enterprise": 1825}
BULK_PLANS = {"pro", "enterprise"}


def search_limit_for(plan: str) -> int:
    return PLAN_SEARCH_LIMITS.get(plan, PLAN_SEARCH_LIMITS[DEFAULT_PLAN])


def saved_limit_for(plan: str) -> int:
    return FREE_SAVED_DOMAINS if plan == DEFAULT_PLAN else PAID_SAVED_DOMAINS


def is_premium(plan: str) -> bool:
    return plan in PLAN_SEARCH_LIMITS and plan != DEFAULT_PLAN


def rate_limit_key(request: Request) -> str:
    """Rate limit per API key, falling back to the client address"""
    return request.headers.get("X-API-Key") or get_remote_address(request)


limiter = Limiter(key_func=rate_limit_key)


def get_api_key(request: Request) -> str:
    """Extract API key from request headers"""
    key = request.headers.get("X-API-Key")
    if not key:
        raise HTTPException(status_code=401, detail="API key required")
    return key


async def get_current_user(
    api_key: str = Depends(get_api_key),
    store: UserStore = Depends(get_store),
) -> User:
    user = await store.get_user_by_api_key(api_key)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return user


def require_premium(user: User, feature: str):
    if not is_premium(user.plan):
        raise HTTPException(status_code=403, detail=f"Premium feature. Upgrade to access {feature}.")
