import asyncio, io, logging
import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from domain_insight.billing import BULK_PLANS, get_current_user
from domain_insight.db import User, UserStore, get_store
from domain_insight.errors import ResearchError
from domain_insight.research import DomainResearchAggregator
from domain_insight.research_api import get_aggregator
from domain_insight.validation import InvalidDomain, normalize_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/domain", tags=["bulk"])

MAX_BULK_DOMAINS = 100


@router.post("/bulk")
async def bulk_research(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
    aggregator: DomainResearchAggregator = Depends(get_aggregator),
):
    """Research every domain in the `domain` column of an uploaded CSV. One search per valid domain."""
    if user.plan not in BULK_PLANS:
        raise HTTPException(status_code=403, detail="Bulk processing requires the Pro or Enterprise plan")

    contents = await file.read()
    try:
        df = pd.read_csv(io.StringIO(contents.decode("utf-8")), dtype=str)
    except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError):
        raise HTTPException(status_code=400, detail="Upload a UTF-8 CSV file")
    if "domain" not in df.columns:
        raise HTTPException(status_code=400, detail="CSV needs a 'domain' column")

    domains, invalid = [], []
    for raw in df["domain"].dropna().unique().tolist():
        try:
            domain = normalize_domain(raw)
        except InvalidDomain:
            invalid.append(raw)
            continue
        if domain not in domains:
            domains.append(domain)

    if len(domains) > MAX_BULK_DOMAINS:
        raise HTTPException(status_code=400, detail=f"Max {MAX_BULK_DOMAINS} domains per request")
    if not domains:
        return {"count": 0, "data": [], "invalid": invalid, "failed": [],
                "remaining_searches": user.remaining_searches}
    if len(domains) > user.remaining_searches:
        raise HTTPException(
            status_code=403,
            detail=f"Not enough searches left for {len(domains)} domains ({user.remaining_searches} remaining)"
        )

    results = await asyncio.gather(*(aggregator.research_domain(d) for d in domains), return_exceptions=True)

    succeeded, failed = [], []
    for domain, result in zip(domains, results):
        if isinstance(result, ResearchError):
            logger.warning(f"Bulk research failed for {domain}: {result}")
            failed.append({"domain": domain, "error": str(result)})
        elif isinstance(result, BaseException):
            raise result
        else:
            succeeded.append(result)

    # only researched domains cost a search
    used = user.searches_used
    if succeeded:
        used = await store.increment_searches(user.id, len(succeeded))
        if used is None:
            raise HTTPException(
                status_code=403,
                detail=f"Not enough searches left for {len(succeeded)} domains"
            )

    data = []
    for result in succeeded:
        payload = result.model_dump(mode="json")
        await store.record_search(user.id, result.domain, payload)
        data.append(payload)

    return {
        "count": len(data),
        "data": data,
        "invalid": invalid,
        "failed": failed,
        "remaining_searches": max(user.search_limit - used, 0),
    }
