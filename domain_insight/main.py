"""
DomainInsight API
FastAPI service for domain research: WHOIS, DNS, security reputation and IP abuse
"""
import logging
import os
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from domain_insight.billing import limiter
from domain_insight.bulk import router as bulk_router
from domain_insight.config import get_settings
from domain_insight.db import close_pool
from domain_insight.history import router as history_router
from domain_insight.research_api import close_aggregator, router as research_router
from domain_insight.saved import router as saved_router
from domain_insight.subscription import router as subscription_router
from portal.checkout import router as checkout_router
from portal.webhook import router as webhook_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="DomainInsight API",
    description="Domain research: WHOIS, DNS, security reputation and IP abuse",
    version="1.0.0"
)

# Rate limiting - per API key
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(research_router)
app.include_router(bulk_router)
app.include_router(history_router)
app.include_router(saved_router)
app.include_router(subscription_router)
app.include_router(checkout_router)
app.include_router(webhook_router)


@app.on_event("startup")
async def startup_event():
    for var in settings.missing_credentials():
        logger.warning(f"Missing {var}, running that provider in degraded mode")
    if not settings.stripe_secret_key:
        logger.warning("Missing STRIPE_SECRET_KEY, checkout will fail")


@app.on_event("shutdown")
async def shutdown_event():
    await close_aggregator()
    await close_pool()


@app.get("/health")
@limiter.exempt
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "DomainInsight API"
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("domain_insight.main:app", host="0.0.0.0", port=port, log_level="info")
