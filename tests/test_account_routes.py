import csv
import io

from fakes import auth


# ==================== SUBSCRIPTION ====================

def test_signup_returns_api_key_once(client, store):
    resp = client.post("/api/user", json={"email": "Jo@Example.com"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["plan"] == "free"
    assert body["search_limit"] == 20
    assert body["email"] == "jo@example.com"
    assert body["api_key"]

    me = client.get("/api/user/subscription", headers={"X-API-Key": body["api_key"]})
    assert me.json()["email"] == "jo@example.com"
    assert "api_key" not in me.json()


def test_signup_rejects_duplicates_and_bad_email(client, store):
    client.post("/api/user", json={"email": "jo@example.com"})
    assert client.post("/api/user", json={"email": "jo@example.com"}).status_code == 409
    assert client.post("/api/user", json={"email": "nobody"}).status_code == 400


def test_subscription_status(client, store):
    user = store.add_user(plan="starter", searches_used=42)

    body = client.get("/api/user/subscription", headers=auth(user)).json()

    assert body["plan"] == "starter"
    assert body["searches_used"] == 42
    assert body["search_limit"] == 500
    assert body["created_at"].startswith("2024-01-01")


def test_paid_plan_change_requires_checkout(client, store):
    user = store.add_user()
    resp = client.post("/api/user/subscription", json={"plan": "pro"}, headers=auth(user))
    assert resp.status_code == 402
    assert store.users[user.id].plan == "free"


def test_downgrade_resets_counter(client, store):
    user = store.add_user(plan="starter", searches_used=300)

    resp = client.post("/api/user/subscription", json={"plan": "free"}, headers=auth(user))

    assert resp.status_code == 200
    body = resp.json()
    assert body["plan"] == "free"
    assert body["searches_used"] == 0
    assert body["search_limit"] == 20


def test_unknown_plan(client, store):
    user = store.add_user()
    assert client.post("/api/user/subscription", json={"plan": "gold"}, headers=auth(user)).status_code == 400


# ==================== SAVED DOMAINS ====================

def test_free_users_can_save_five_domains(client, store):
    user = store.add_user()
    for i in range(5):
        resp = client.post("/api/domains/saved", json={"domain": f"site{i}.com"}, headers=auth(user))
        assert resp.status_code == 200

    resp = client.post("/api/domains/saved", json={"domain": "site5.com"}, headers=auth(user))
    assert resp.status_code == 403
    assert "up to 5 domains" in resp.json()["detail"]

    listing = client.get("/api/domains/saved", headers=auth(user)).json()
    assert listing["limit"] == 5
    assert listing["can_save_more"] is False
    assert len(listing["domains"]) == 5


def test_save_duplicate_and_delete(client, store):
    user = store.add_user(plan="pro")
    resp = client.post("/api/domains/saved", json={"domain": "Example.com", "notes": "watch"}, headers=auth(user))
    assert resp.json()["domain"] == "example.com"
    assert resp.json()["notes"] == "watch"

    dup = client.post("/api/domains/saved", json={"domain": "example.com"}, headers=auth(user))
    assert dup.status_code == 409

    assert client.delete("/api/domains/saved", params={"domain": "example.com"}, headers=auth(user)).status_code == 200
    assert client.delete("/api/domains/saved", params={"domain": "example.com"}, headers=auth(user)).status_code == 404


def test_save_invalid_domain(client, store):
    user = store.add_user()
    assert client.post("/api/domains/saved", json={"domain": "nope"}, headers=auth(user)).status_code == 400


# ==================== SEARCH HISTORY ====================

def test_search_history_is_premium_only(client, store):
    user = store.add_user()
    assert client.get("/api/domains/history", headers=auth(user)).status_code == 403
    assert client.get("/api/domains/history/export", headers=auth(user)).status_code == 403


def test_search_history_newest_first(client, store):
    user = store.add_user(plan="starter")
    for domain in ("example.com", "example.org"):
        client.post("/api/domain/research", json={"domain": domain}, headers=auth(user))

    history = client.get("/api/domains/history", headers=auth(user)).json()

    assert [h["domain"] for h in history] == ["example.org", "example.com"]
    assert history[0]["search_data"]["dns"]["a"] == ["93.184.216.34"]


def test_search_history_csv_export(client, store):
    user = store.add_user(plan="starter")
    client.post("/api/domain/research", json={"domain": "example.com"}, headers=auth(user))

    resp = client.get("/api/domains/history/export", headers=auth(user))

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    rows = list(csv.DictReader(io.StringIO(resp.text)))
    assert len(rows) == 1
    assert rows[0]["domain"] == "example.com"
    assert rows[0]["registrar"] == "MarkMonitor Inc."
    assert rows[0]["a_records"] == "93.184.216.34"
