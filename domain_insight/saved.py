"""Saved domains API - free users can keep 5, paid plans 1000"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from domain_insight.billing import DEFAULT_PLAN, FREE_SAVED_DOMAINS, get_current_user, saved_limit_for
from domain_insight.db import DomainAlreadySaved, User, UserStore, get_store
from domain_insight.validation import InvalidDomain, normalize_domain

router = APIRouter(prefix="/api/domains", tags=["saved-domains"])


class SaveDomainRequest(BaseModel):
    domain: str
    notes: Optional[str] = None


def _saved_out(row: dict) -> dict:
    return {
        "id": row["id"],
        "domain": row["domain"],
        "notes": row["notes"],
        "created_at": row["created_at"].isoformat(),
    }


@router.get("/saved")
async def list_saved_domains(
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    limit = saved_limit_for(user.plan)
    saved = await store.list_saved(user.id, limit)
    return {
        "domains": [_saved_out(s) for s in saved],
        "limit": limit,
        "plan": user.plan,
        "can_save_more": len(saved) < limit,
    }


@router.post("/saved")
async def save_domain(
    body: SaveDomainRequest,
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    try:
        domain = normalize_domain(body.domain)
    except InvalidDomain as e:
        raise HTTPException(status_code=400, detail=str(e))

    if await store.count_saved(user.id) >= saved_limit_for(user.plan):
        if user.plan == DEFAULT_PLAN:
            detail = (f"Free users can save up to {FREE_SAVED_DOMAINS} domains. "
                      "Upgrade to Pro for unlimited saved domains.")
        else:
            detail = "Saved domain limit reached"
        raise HTTPException(status_code=403, detail=detail)

    try:
        saved = await store.save_domain(user.id, domain, body.notes or "")
    except DomainAlreadySaved:
        raise HTTPException(status_code=409, detail="Domain already saved")
    return _saved_out(saved)


@router.delete("/saved")
async def delete_saved_domain(
    domain: str = Query(...),
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    try:
        domain = normalize_domain(domain)
    except InvalidDomain as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not await store.delete_saved(user.id, domain):
        raise HTTPException(status_code=404, detail="Domain not saved")
    return {"success": True}


__all__ = ["router"]
