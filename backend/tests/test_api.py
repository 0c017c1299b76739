"""
Contribution Ledger - HTTP API tests (FastAPI TestClient).
"""

import pytest
from fastapi.testclient import TestClient

from api import app
from ledger import get_ledger_manager

OWNER = "0xOwner000000000000000000000000000000000001"
ALICE = "0xAlice00000000000000000000000000000000000A"
BOB = "0xBob0000000000000000000000000000000000000B"


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_ledger_manager] = lambda: manager
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _as(caller):
    return {"X-Caller-Address": caller}


class TestDataEndpoints:

    def test_submit_and_get(self, client):
        resp = client.post("/data", json={"fingerprint": "Qm123", "category": "market_analysis"}, headers=_as(ALICE))
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == 1
        assert body["data_point"]["reward"] == 300
        assert body["data_point"]["verified"] is False

        resp = client.get("/data/1")
        assert resp.json()["data_point"]["contributor"] == ALICE

    def test_submit_requires_caller(self, client):
        resp = client.post("/data", json={"fingerprint": "Qm123", "category": "research"})
        assert resp.status_code == 422

    def test_empty_fingerprint(self, client):
        resp = client.post("/data", json={"fingerprint": "", "category": "research"}, headers=_as(ALICE))
        assert resp.status_code == 400
        assert resp.json()["error"] == "empty_fingerprint"

    def test_invalid_category(self, client):
        resp = client.post("/data", json={"fingerprint": "Qm123", "category": "gossip"}, headers=_as(ALICE))
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_category"

    def test_unknown_id(self, client):
        resp = client.get("/data/7")
        assert resp.status_code == 404
        assert resp.json()["error"] == "invalid_id"

    def test_verify_requires_owner(self, client):
        client.post("/data", json={"fingerprint": "Qm123", "category": "research"}, headers=_as(ALICE))
        resp = client.post("/data/1/verify", headers=_as(ALICE))
        assert resp.status_code == 403
        assert resp.json()["error"] == "unauthorized"

    def test_verify_twice(self, client):
        client.post("/data", json={"fingerprint": "Qm123", "category": "research"}, headers=_as(ALICE))
        assert client.post("/data/1/verify", headers=_as(OWNER)).status_code == 200
        resp = client.post("/data/1/verify", headers=_as(OWNER))
        assert resp.status_code == 409
        assert resp.json()["error"] == "already_verified"


class TestCategoryEndpoints:

    def test_list_seeded(self, client):
        body = client.get("/categories").json()
        assert body["count"] == 3

    def test_add_duplicate(self, client):
        resp = client.post("/categories", json={"name": "research"}, headers=_as(OWNER))
        assert resp.status_code == 409
        assert resp.json()["error"] == "duplicate_category"

    def test_add_new(self, client):
        resp = client.post("/categories", json={"name": "climate_data"}, headers=_as(OWNER))
        assert resp.status_code == 200
        assert resp.json()["category"]["multiplier"] == 1


class TestRewardFlow:

    def test_end_to_end(self, client, transport):
        client.post("/data", json={"fingerprint": "Qm123", "category": "market_analysis"}, headers=_as(ALICE))
        client.post("/data/1/verify", headers=_as(OWNER))
        assert client.get(f"/contributors/{ALICE}/rewards").json()["balance"] == 300

        resp = client.post("/treasury/fund", params={"amount": 1000}, headers=_as(OWNER))
        assert resp.json()["stats"]["treasury_balance"] == 1000

        resp = client.post("/rewards/claim", headers=_as(ALICE))
        assert resp.status_code == 200
        assert resp.json()["amount"] == 300

        assert client.get("/stats").json() == {
            "total_data_points": 1,
            "treasury_balance": 700,
            "nominal_pool": 1000,
        }
        assert client.get(f"/contributors/{ALICE}/data").json()["ids"] == [1]
        assert transport.balance_of(ALICE) == 300

    def test_claim_without_rewards(self, client):
        resp = client.post("/rewards/claim", headers=_as(ALICE))
        assert resp.status_code == 409
        assert resp.json()["error"] == "no_rewards"

    def test_claim_with_empty_treasury(self, client):
        client.post("/data", json={"fingerprint": "Qm123", "category": "research"}, headers=_as(ALICE))
        client.post("/data/1/verify", headers=_as(OWNER))
        resp = client.post("/rewards/claim", headers=_as(ALICE))
        assert resp.status_code == 409
        assert resp.json()["error"] == "insufficient_treasury"

    def test_fund_requires_owner(self, client):
        resp = client.post("/treasury/fund", params={"amount": 10}, headers=_as(ALICE))
        assert resp.status_code == 403

    def test_events_filter(self, client):
        client.post("/data", json={"fingerprint": "Qm123", "category": "research"}, headers=_as(ALICE))
        client.post("/data/1/verify", headers=_as(OWNER))
        body = client.get("/events", params={"event_type": "DataVerified"}).json()
        assert body["count"] == 1
        assert body["events"][0]["payload"]["verifier"] == OWNER


class TestServiceEndpoints:

    def test_root(self, client):
        assert client.get("/").json() == {
            "status": "online",
            "service": "Contribution Ledger API",
            "version": "1.0.0",
        }

    def test_health_reports_stats(self, client):
        client.post("/data", json={"fingerprint": "Qm123", "category": "research"}, headers=_as(ALICE))
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["stats"]["total_data_points"] == 1

    def test_leaderboard_orders_by_earned(self, client):
        for category in ("research", "market_analysis"):
            client.post("/data", json={"fingerprint": "Qm", "category": category}, headers=_as(ALICE))
        client.post("/data", json={"fingerprint": "Qm", "category": "technical_review"}, headers=_as(BOB))
        for data_id in (1, 2, 3):
            client.post(f"/data/{data_id}/verify", headers=_as(OWNER))

        board = client.get("/leaderboard").json()["leaderboard"]
        assert [row["contributor"] for row in board] == [ALICE, BOB]

    def test_treasury_transactions(self, client):
        client.post("/treasury/fund", params={"amount": 1000}, headers=_as(OWNER))
        client.post("/data", json={"fingerprint": "Qm123", "category": "research"}, headers=_as(ALICE))
        client.post("/data/1/verify", headers=_as(OWNER))
        client.post("/rewards/claim", headers=_as(ALICE))

        txs = client.get("/treasury/transactions").json()["transactions"]
        assert [(t["tx_type"], t["amount"]) for t in txs] == [("payout", 100), ("deposit", 1000)]
        assert txs[0]["wallet"] == ALICE
