"""
Tests API /api/leads et /api/partners (TestClient, store en mémoire)
"""

import pytest
from fastapi.testclient import TestClient

from routes.leads import get_sink, get_store
from server import app
from services.errors import RULE_ONE_EXCLUSIVE_PARTNER
from tests.fakes import InMemoryStore, RecordingSink, make_lead, make_partner


@pytest.fixture
def store():
    lead = make_lead(lead_id="lead-1")
    partners = [
        make_partner(partner_id="p-excl-1", partner_type="exclusive"),
        make_partner(partner_id="p-excl-2", partner_type="exclusive"),
        make_partner(partner_id="p-basic"),
    ]
    return InMemoryStore(leads=[lead], partners=partners)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_sink] = RecordingSink
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAvailablePartners:

    def test_listing(self, client):
        r = client.get("/api/leads/lead-1/available-partners")
        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert [e["partner_id"] for e in data["exclusive"]] == ["p-excl-1", "p-excl-2"]
        assert [e["partner_id"] for e in data["basic"]] == ["p-basic"]
        assert data["default_tab"] == "exclusive"
        assert data["total_active"] == 3

    def test_unknown_lead(self, client):
        r = client.get("/api/leads/nope/available-partners")
        assert r.status_code == 404


class TestAssignRoute:

    def test_assign_then_second_exclusive_refused(self, client, store):
        r = client.put("/api/leads/lead-1/assign", json={"partner_id": "p-excl-1"})
        assert r.status_code == 200, r.text
        assert r.json()["partner_id"] == "p-excl-1"
        assert r.json()["assignment_info"]["partner_type"] == "exclusive"

        r = client.put("/api/leads/lead-1/assign", json={"partner_id": "p-excl-2"})
        assert r.status_code == 400
        detail = r.json()["detail"]
        assert detail["rule"] == RULE_ONE_EXCLUSIVE_PARTNER
        assert detail["current_assignment"]["partner_id"] == "p-excl-1"
        assert store.leads["lead-1"]["assigned_partner_id"] == "p-excl-1"

    def test_stale_version_conflict(self, client):
        r = client.put("/api/leads/lead-1/assign", json={"partner_id": "p-basic", "version": 7})
        assert r.status_code == 409

    def test_unknown_partner(self, client):
        r = client.put("/api/leads/lead-1/assign", json={"partner_id": "ghost"})
        assert r.status_code == 404

    def test_missing_partner_id(self, client):
        r = client.put("/api/leads/lead-1/assign", json={})
        assert r.status_code == 422


class TestPartnerActionRoutes:

    def test_accept_then_cancellation_flow(self, client, store):
        client.put("/api/leads/lead-1/assign", json={"partner_id": "p-basic"})

        r = client.put("/api/leads/lead-1/accept", json={"partner_id": "p-basic"})
        assert r.status_code == 200
        assert r.json()["lead"]["status"] == "accepted"

        r = client.put("/api/leads/lead-1/cancel-request", json={"partner_id": "p-basic", "reason": "duplicate"})
        assert r.status_code == 200

        r = client.put("/api/leads/lead-1/cancellation", json={"approved": True})
        assert r.status_code == 200
        assert r.json()["lead"]["status"] == "cancelled"
        assert store.partners["p-basic"]["metrics"]["total_leads_cancelled"] == 1

    def test_reject_by_other_partner(self, client):
        client.put("/api/leads/lead-1/assign", json={"partner_id": "p-basic"})

        r = client.put("/api/leads/lead-1/reject", json={"partner_id": "p-excl-1", "reason": "no"})
        assert r.status_code == 400

    def test_reject(self, client):
        client.put("/api/leads/lead-1/assign", json={"partner_id": "p-basic"})

        r = client.put("/api/leads/lead-1/reject", json={"partner_id": "p-basic", "reason": "no trucks"})
        assert r.status_code == 200
        assert r.json()["lead"]["status"] == "cancelled"


class TestPartnerCapacityRoute:

    def test_capacity(self, client):
        client.put("/api/leads/lead-1/assign", json={"partner_id": "p-basic"})

        r = client.get("/api/partners/p-basic/capacity")
        assert r.status_code == 200
        data = r.json()
        assert data["current_week_leads"] == 1
        assert data["average_leads_per_week"] == 5
        assert data["has_capacity"] is True
        assert data["capacity_used"] == 20

    def test_unknown_partner(self, client):
        assert client.get("/api/partners/ghost/capacity").status_code == 404
