"""In-memory stand-ins for providers and the PostgreSQL store"""
import asyncio
import itertools
from datetime import datetime, timezone

import httpx

from domain_insight.billing import search_limit_for
from domain_insight.db import DomainAlreadySaved, User, UserExists
from domain_insight.models import DnsRecordSet, Registrant, SecurityRecord, WhoisRecord

WHOIS = WhoisRecord(
    registrar="MarkMonitor Inc.",
    registration_date="1997-09-15",
    expiration_date="2028-09-14",
    name_servers=["ns1.google.com", "ns2.google.com"],
    registrant=Registrant(organization="Google LLC", country="US"),
    status=["clientTransferProhibited"],
    dnssec="unsigned",
)

SECURITY = SecurityRecord(
    malicious=False,
    reputation="Clean - 70/90 engines verified as safe",
    threats=0,
    last_scan="2024-05-01",
    total=90,
    harmless=70,
    undetected=20,
)

DNS = DnsRecordSet(
    a=["93.184.216.34"],
    mx=["10 mail.example.com."],
    txt=['"v=spf1 -all"'],
    ns=["a.iana-servers.net."],
)


class StubProvider:
    def __init__(self, name, value=None, error=None, delay=0.0, timeout=10.0):
        self.name = name
        self.value = value
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self.calls = []

    async def lookup(self, key):
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


class FakeClock:
    def __init__(self, start=1_700_000_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeStore:
    """Mirrors domain_insight.db.UserStore"""

    def __init__(self):
        self.users = {}
        self.searches = []
        self.saved = []
        self._ids = itertools.count(1)

    def add_user(self, plan="free", searches_used=0, email=None) -> User:
        user_id = next(self._ids)
        user = User(
            id=user_id,
            email=email or f"user{user_id}@example.com",
            plan=plan,
            searches_used=searches_used,
            search_limit=search_limit_for(plan),
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            api_key=f"key-{user_id}",
        )
        self.users[user_id] = user
        return user

    async def get_user_by_api_key(self, api_key):
        return next((u for u in self.users.values() if u.api_key == api_key), None)

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def create_user(self, email, plan, search_limit):
        if any(u.email == email for u in self.users.values()):
            raise UserExists(email)
        return self.add_user(plan=plan, email=email)

    async def increment_searches(self, user_id, count=1):
        user = self.users[user_id]
        if user.searches_used + count > user.search_limit:
            return None
        user.searches_used += count
        return user.searches_used

    async def set_plan(self, user_id, plan, search_limit, stripe_customer_id=None):
        user = self.users.get(user_id)
        if user is None:
            return None
        user.plan = plan
        user.search_limit = search_limit
        user.searches_used = 0
        return user

    async def record_search(self, user_id, domain, data):
        self.searches.append({
            "id": len(self.searches) + 1,
            "user_id": user_id,
            "domain": domain,
            "search_data": data,
            "created_at": datetime.now(timezone.utc),
        })

    async def list_searches(self, user_id, limit=50):
        rows = [s for s in reversed(self.searches) if s["user_id"] == user_id]
        return rows[:limit]

    async def domain_snapshots(self, domain, since, limit=50):
        rows = [s for s in reversed(self.searches) if s["domain"] == domain and s["created_at"] >= since]
        return rows[:limit]

    async def list_saved(self, user_id, limit):
        return [s for s in reversed(self.saved) if s["user_id"] == user_id][:limit]

    async def count_saved(self, user_id):
        return sum(1 for s in self.saved if s["user_id"] == user_id)

    async def save_domain(self, user_id, domain, notes=""):
        if any(s["user_id"] == user_id and s["domain"] == domain for s in self.saved):
            raise DomainAlreadySaved(domain)
        row = {
            "id": len(self.saved) + 1,
            "user_id": user_id,
            "domain": domain,
            "notes": notes,
            "created_at": datetime.now(timezone.utc),
        }
        self.saved.append(row)
        return row

    async def delete_saved(self, user_id, domain):
        for row in self.saved:
            if row["user_id"] == user_id and row["domain"] == domain:
                self.saved.remove(row)
                return True
        return False


def auth(user):
    return {"X-API-Key": user.api_key}
