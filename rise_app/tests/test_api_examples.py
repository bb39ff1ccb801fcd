"""Tests for /api/installations, the example passthrough endpoints and app-level handlers."""
import json
import re

import httpx

from rise_app import config
from rise_app.installation_store import InstallationRecord, now_ms


def _install(store, clock, instance_id="inst1", token="T1"):
    store.put(
        InstallationRecord(
            instance_id=instance_id,
            access_token=token,
            expires_at=clock.now + 3600 * 1000,
            created_at=clock.now,
        )
    )


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("service") == "rise_app"


def test_home_lists_endpoints(client):
    r = client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["endpoints"]["webhooks"] == "/rise/webhooks"
    assert data["endpoints"]["oauth"]["callback"] == "/oauth/rise/callback"


def test_opener_policy_header(client):
    r = client.get("/health")
    assert r.headers["cross-origin-opener-policy"] == "unsafe-none"


def test_unknown_route_404(client):
    r = client.get("/no/such/thing")
    assert r.status_code == 404
    assert r.json() == {"error": "not_found", "message": "Endpoint not found"}


def test_installations_empty(client):
    r = client.get("/api/installations")
    assert r.status_code == 200
    assert r.json() == {"total": 0, "installations": []}


def test_installations_flags_expired(client, store):
    now = now_ms()
    store.put(InstallationRecord("fresh", "secret-fresh", expires_at=now + 3_600_000, created_at=now))
    store.put(InstallationRecord("stale", "secret-stale", expires_at=now - 1_000, created_at=now - 7_200_000))
    r = client.get("/api/installations")
    data = r.json()
    assert data["total"] == 2
    by_id = {i["instanceId"]: i for i in data["installations"]}
    assert by_id["fresh"]["is_expired"] is False
    assert by_id["stale"]["is_expired"] is True
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", by_id["fresh"]["expires_at"])
    assert "secret-" not in r.text
    assert all("access_token" not in i for i in data["installations"])


def test_installations_operator_token(client, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_TOKEN", "s3cret")
    assert client.get("/api/installations").status_code == 401
    r = client.get("/api/installations", headers={"Authorization": "Bearer wrong"})
    assert r.status_code == 401
    r = client.get("/api/installations", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 200


def test_account_passthrough(client, store, clock, rise):
    _install(store, clock)
    rise.api_responses[("GET", "/v1/rise/accounts")] = httpx.Response(200, json={"account": {"id": "acc1"}})
    r = client.get("/api/example/account/inst1")
    assert r.status_code == 200
    assert r.json() == {"success": True, "endpoint": "/v1/rise/accounts", "data": {"account": {"id": "acc1"}}}
    sent = rise.api_requests()[0]
    assert sent.headers["authorization"] == "T1"
    assert str(sent.url) == "https://rise.test/v1/rise/accounts"


def test_sales_channels_passthrough(client, store, clock, rise):
    _install(store, clock)
    r = client.get("/api/example/sales-channels/inst1")
    assert r.status_code == 200
    assert r.json()["endpoint"] == "/v1/rise/sales-channels"


def test_unknown_installation_404(client, rise):
    r = client.get("/api/example/account/ghost")
    assert r.status_code == 404
    assert r.json()["error"] == "installation_not_found"
    assert rise.requests == []


def test_upstream_error_keeps_status_and_details(client, store, clock, rise):
    _install(store, clock)
    rise.api_responses[("GET", "/v1/rise/accounts")] = httpx.Response(403, json={"message": "forbidden"})
    r = client.get("/api/example/account/inst1")
    assert r.status_code == 403
    assert r.json() == {
        "error": "api_call_failed",
        "message": "Failed to account information",
        "details": {"message": "forbidden"},
    }


def test_upstream_timeout_504(client, store, clock, rise):
    _install(store, clock)
    rise.raise_timeout = True
    r = client.get("/api/example/account/inst1")
    assert r.status_code == 504
    assert r.json()["error"] == "upstream_timeout"


def test_expired_token_refreshed_before_call(client, store, clock, rise):
    _install(store, clock, token="OLD")
    clock.now += 3600 * 1000
    r = client.get("/api/example/account/inst1")
    assert r.status_code == 200
    assert rise.token_calls == 1
    assert rise.api_requests()[0].headers["authorization"] == "T1"
    assert store.get("inst1").access_token == "T1"


def test_refresh_failure_is_502(client, store, clock, rise):
    _install(store, clock, token="OLD")
    clock.now += 3600 * 1000
    rise.token_status = 500
    r = client.get("/api/example/account/inst1")
    assert r.status_code == 502
    assert r.json()["error"] == "upstream_auth_error"


def test_create_gift_card_defaults(client, store, clock, rise):
    _install(store, clock)
    r = client.post("/api/example/gift-cards/inst1", json={})
    assert r.status_code == 200
    assert r.json()["endpoint"] == "/v1/rise/gift-cards"
    sent = json.loads(rise.api_requests()[0].content)["giftCard"]
    assert re.match(r"^[A-Z0-9]{16}$", sent["code"])
    assert sent["initialValue"] == "50.00"
    assert sent["currency"] == "USD"
    assert sent["sourceInfo"] == {"type": "MANUAL", "sourceTenantId": "inst1", "sourceChannelId": "inst1"}
    assert sent["expirationDate"].endswith("Z")


def test_create_gift_card_with_values(client, store, clock, rise):
    _install(store, clock)
    body = {"code": "GIFT123", "initialValue": "25.00", "currency": "EUR", "expirationDate": "2030-01-01T00:00:00.000Z"}
    client.post("/api/example/gift-cards/inst1", json=body)
    sent = json.loads(rise.api_requests()[0].content)["giftCard"]
    assert sent["code"] == "GIFT123"
    assert sent["initialValue"] == "25.00"
    assert sent["currency"] == "EUR"
    assert sent["expirationDate"] == "2030-01-01T00:00:00.000Z"


def test_search_gift_cards_prepends_email_filter(client, store, clock, rise):
    _install(store, clock)
    extra = {"field": "balance", "operator": "gt", "value": "0"}
    r = client.post("/api/example/gift-cards/search/inst1", json={"email": "a@b.c", "filters": [extra]})
    assert r.status_code == 200
    assert r.json()["endpoint"] == "/v1/rise/gift-cards/search"
    sent = json.loads(rise.api_requests()[0].content)
    assert sent == {
        "query": {"filters": [{"field": "recipient.email", "operator": "eq", "value": "a@b.c"}, extra]}
    }


def test_create_wallet(client, store, clock, rise):
    _install(store, clock)
    r = client.post(
        "/api/example/wallets/inst1",
        json={"firstName": "Ada", "lastName": "L", "email": "ada@example.com", "sourceCustomerId": "c1"},
    )
    assert r.status_code == 200
    sent = json.loads(rise.api_requests()[0].content)
    assert sent["customerReference"]["sourceCustomerId"] == "c1"
    assert sent["customerReference"]["sourceTenantId"] == "inst1"
    assert sent["customerReference"]["firstName"] == "Ada"
    assert sent["initialValue"] == "0.00"
    assert sent["currency"] == "USD"


def test_query_wallets(client, store, clock, rise):
    _install(store, clock)
    r = client.post("/api/example/wallets/query/inst1", json={"query": {"limit": 5}})
    assert r.status_code == 200
    assert r.json()["endpoint"] == "/v1/rise/wallets/query"
    assert json.loads(rise.api_requests()[0].content) == {"query": {"limit": 5}}


def test_report_workflow_event(client, store, clock, rise):
    _install(store, clock)
    r = client.post("/api/example/workflows/events/inst1", json={"triggerKey": "order_paid", "payload": {"x": 1}})
    assert r.status_code == 200
    assert r.json()["endpoint"] == "/workflows/v1/events/report"
    sent = json.loads(rise.api_requests()[0].content)
    assert sent["triggerKey"] == "order_paid"
    assert sent["payload"] == {"x": 1}
    assert sent["idempotency"]["key"].startswith("event_")
    assert sent["idempotency"]["ttlInMilliseconds"] == "604800000"
