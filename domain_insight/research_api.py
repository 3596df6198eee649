"""Domain research API - the only route that spends searches"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from domain_insight.billing import HISTORY_WINDOW_DAYS, get_current_user, is_premium, limiter
from domain_insight.config import get_settings
from domain_insight.db import User, UserStore, get_store
from domain_insight.errors import ResearchError
from domain_insight.models import DomainResearchResult
from domain_insight.research import DomainResearchAggregator, build_aggregator
from domain_insight.validation import InvalidDomain, normalize_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["domain-research"])

_aggregator: Optional[DomainResearchAggregator] = None


def get_aggregator() -> DomainResearchAggregator:
    """One aggregator (and so one research cache) per process"""
    global _aggregator
    if _aggregator is None:
        _aggregator = build_aggregator(get_settings())
    return _aggregator


async def close_aggregator():
    global _aggregator
    if _aggregator is not None:
        await _aggregator.aclose()
        _aggregator = None


class ResearchRequest(BaseModel):
    domain: str


class ResearchResponse(DomainResearchResult):
    remaining_searches: int
    user_plan: str
    warnings: Optional[List[str]] = None


def parse_domain(raw: str) -> str:
    try:
        return normalize_domain(raw)
    except InvalidDomain as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/domain/research", response_model=ResearchResponse)
@limiter.limit(lambda: get_settings().rate_limit)
async def research_domain(
    request: Request,
    body: ResearchRequest,
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
    aggregator: DomainResearchAggregator = Depends(get_aggregator),
):
    """
    Research a domain: WHOIS, security reputation, DNS and (when configured) IP abuse.

    Costs one search from the caller's plan quota, cached or not. Providers that
    were unavailable are listed in `errors` and repeated in `warnings`; the
    rest of the data is still returned.
    """
    domain = parse_domain(body.domain)

    if user.searches_used >= user.search_limit:
        raise HTTPException(
            status_code=403,
            detail=f"Search limit reached for the {user.plan} plan. Upgrade to continue."
        )

    try:
        result = await aggregator.research_domain(domain)

        used = await store.increment_searches(user.id)
        if used is None:
            # another request consumed the last search in the meantime
            raise HTTPException(
                status_code=403,
                detail=f"Search limit reached for the {user.plan} plan. Upgrade to continue."
            )
        await store.record_search(user.id, domain, result.model_dump(mode="json"))

    except HTTPException:
        raise
    except ResearchError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception(f"Research request failed for {domain}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


    return ResearchResponse(
        **result.model_dump(),
        remaining_searches=max(user.search_limit - used, 0),
        user_plan=user.plan,
        warnings=list(result.errors) or None,
    )


@router.get("/domain/history")
async def domain_history(
    domain: str = Query(..., description="Domain to list snapshots for"),
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    """Past research snapshots of a domain; how far back depends on the plan"""
    if not is_premium(user.plan):
        raise HTTPException(status_code=403, detail="Historical data requires Starter or Pro plan")

    domain = parse_domain(domain)
    days_back = HISTORY_WINDOW_DAYS[user.plan]
    cutoff = datetime.now(timezone.utc) - timedelta(days=days_back)

    snapshots = await store.domain_snapshots(domain, cutoff)
    return {
        "domain": domain,
        "plan": user.plan,
        "timeframe": f"{days_back} days",
        "snapshots": [
            {"date": s["created_at"].date().isoformat(), "snapshot": s["search_data"]}
            for s in snapshots
        ],
        "total_snapshots": len(snapshots),
    }


__all__ = ["router", "get_aggregator", "close_aggregator"]
