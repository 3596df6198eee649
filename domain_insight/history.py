"""Search history API (premium only)"""
import io

import pandas as pd
from fastapi import APIRouter, Depends, Response

from domain_insight.billing import get_current_user, require_premium
from domain_insight.db import User, UserStore, get_store

router = APIRouter(prefix="/api/domains", tags=["history"])

HISTORY_LIMIT = 50


def _summary_row(search: dict) -> dict:
    """Flatten one stored research result into a CSV row"""
    data = search.get("search_data") or {}
    whois = data.get("whois") or {}
    security = data.get("security") or {}
    dns = data.get("dns") or {}
    abuse = data.get("abuse") or {}
    return {
        "searched_at": search["created_at"].isoformat(),
        "domain": search["domain"],
        "registrar": whois.get("registrar"),
        "registration_date": whois.get("registration_date"),
        "expiration_date": whois.get("expiration_date"),
        "malicious": security.get("malicious"),
        "threats": security.get("threats"),
        "reputation": security.get("reputation"),
        "a_records": " ".join(dns.get("a") or []),
        "mx_records": " ".join(dns.get("mx") or []),
        "abuse_confidence": abuse.get("abuse_confidence"),
        "errors": "; ".join(data.get("errors") or []),
    }


@router.get("/history")
async def search_history(
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    """Last 50 searches of the caller, newest first"""
    require_premium(user, "search history")
    searches = await store.list_searches(user.id, limit=HISTORY_LIMIT)
    return [
        {
            "id": s["id"],
            "domain": s["domain"],
            "search_data": s["search_data"],
            "created_at": s["created_at"].isoformat(),
        }
        for s in searches
    ]


@router.get("/history/export")
async def export_history(
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
):
    """Search history as CSV"""
    require_premium(user, "CSV exports")
    searches = await store.list_searches(user.id, limit=HISTORY_LIMIT)

    df = pd.DataFrame([_summary_row(s) for s in searches], columns=[
        "searched_at", "domain", "registrar", "registration_date", "expiration_date",
        "malicious", "threats", "reputation", "a_records", "mx_records",
        "abuse_confidence", "errors",
    ])
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="domain-history.csv"'},
    )


__all__ = ["router"]
