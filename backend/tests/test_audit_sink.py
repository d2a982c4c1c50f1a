"""
Tests journal d'audit + notification partenaire (event_log / notifications)
"""

import pytest
from fastapi.testclient import TestClient

from routes.event_log import get_database
from server import app
from services.assignment_engine import AssignmentEngine
from services.errors import InvalidStateError
from services.event_logger import get_events, log_event
from services.notifications import AuditNotificationSink
from tests.fakes import FakeDatabase, InMemoryStore, fixed_clock, make_lead, make_partner, run


class TestEventLogger:

    def test_log_and_filter(self):
        database = FakeDatabase()
        run(log_event(database, "assign_lead", "lead", "l-1", related={"partner_id": "p-1"}))
        run(log_event(database, "accept_lead", "lead", "l-1", user="p-1", related={"partner_id": "p-1"}))
        run(log_event(database, "assign_lead", "lead", "l-2", related={"partner_id": "p-2"}))

        events, total = run(get_events(database, entity_id="l-1"))
        assert total == 2
        assert {e["action"] for e in events} == {"assign_lead", "accept_lead"}

        events, total = run(get_events(database, partner_id="p-2"))
        assert total == 1
        assert events[0]["entity_id"] == "l-2"

        events, total = run(get_events(database, action="assign_lead", limit=1))
        assert len(events) == 1
        assert total == 2

    def test_defaults(self):
        database = FakeDatabase()
        run(log_event(database, "reject_lead", "lead", "l-1"))
        event = database.event_log.docs[0]
        assert event["user"] == "system"
        assert event["details"] == {}
        assert event["related"] == {}
        assert event["id"]


class TestAuditNotificationSink:

    def test_assignment_writes_notification_and_event(self):
        database = FakeDatabase()
        partner = make_partner(partner_id="p-1", company_name="Umzug Berlin")
        lead = make_lead(lead_id="l-1")
        store = InMemoryStore(leads=[lead], partners=[partner])
        engine = AssignmentEngine(store, sink=AuditNotificationSink(database), clock=fixed_clock)

        run(engine.assign("l-1", "p-1", actor="admin@crm"))

        notification = database.notifications.docs[0]
        assert notification["partner_id"] == "p-1"
        assert notification["lead_id"] == "l-1"
        assert notification["data"]["location"] == "Berlin"
        assert notification["read"] is False

        event = database.event_log.docs[0]
        assert event["action"] == "assign_lead"
        assert event["user"] == "admin@crm"
        assert event["details"]["company_name"] == "Umzug Berlin"
        assert event["related"] == {"partner_id": "p-1", "previous_partner_id": None}

    def test_refusal_is_audited(self):
        database = FakeDatabase()
        partners = [
            make_partner(partner_id="p-x1", partner_type="exclusive"),
            make_partner(partner_id="p-x2", partner_type="exclusive"),
        ]
        lead = make_lead(lead_id="l-1", status="assigned", assigned_partner_id="p-x1")
        store = InMemoryStore(leads=[lead], partners=partners)
        engine = AssignmentEngine(store, sink=AuditNotificationSink(database), clock=fixed_clock)

        with pytest.raises(InvalidStateError):
            run(engine.assign("l-1", "p-x2"))

        event = database.event_log.docs[0]
        assert event["action"] == "assign_lead_rejected"
        assert event["details"]["rule"] == "one_exclusive_partner_at_a_time"
        assert database.notifications.docs == []


class TestEventLogRoute:

    @pytest.fixture
    def client(self):
        database = FakeDatabase()
        run(log_event(database, "assign_lead", "lead", "l-1", related={"partner_id": "p-1"}))
        run(log_event(database, "reject_lead", "lead", "l-1", related={"partner_id": "p-1"}))
        app.dependency_overrides[get_database] = lambda: database
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_list(self, client):
        r = client.get("/api/event-log", params={"lead_id": "l-1"})
        assert r.status_code == 200
        assert r.json()["total"] == 2

    def test_actions(self, client):
        r = client.get("/api/event-log/actions")
        assert r.json()["actions"] == ["assign_lead", "reject_lead"]
