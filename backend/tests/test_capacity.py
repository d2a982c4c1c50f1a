"""
Tests capacité hebdomadaire (semaine dimanche -> samedi, UTC)
"""

from datetime import datetime, timedelta, timezone

from config import to_iso
from models.partner import PartnerDocument, PartnerMetrics, PartnerType
from services.assignment_engine import AssignmentEngine
from services.capacity import CapacityTracker, WeeklyLoad, get_week_range, get_week_range_iso
from services.partner_scoring import compute_acceptance_rate, compute_priority_score
from tests.fakes import InMemoryStore, NOW, filler_leads, fixed_clock, make_lead, make_partner, run


class TestWeekRange:

    def test_wednesday(self):
        start, end = get_week_range(NOW)
        assert start == datetime(2026, 10, 11, tzinfo=timezone.utc)
        assert start.weekday() == 6  # dimanche
        assert end == datetime(2026, 10, 17, 23, 59, 59, 999000, tzinfo=timezone.utc)

    def test_sunday_starts_its_own_week(self):
        sunday = datetime(2026, 10, 18, 0, 0, 1, tzinfo=timezone.utc)
        start, _ = get_week_range(sunday)
        assert start == datetime(2026, 10, 18, tzinfo=timezone.utc)

    def test_saturday_night_still_current_week(self):
        saturday = datetime(2026, 10, 17, 23, 59, 59, tzinfo=timezone.utc)
        start, _ = get_week_range(saturday)
        assert start == datetime(2026, 10, 11, tzinfo=timezone.utc)

    def test_naive_datetime_treated_as_utc(self):
        assert get_week_range(datetime(2026, 10, 14, 10)) == get_week_range(NOW)

    def test_iso(self):
        week = get_week_range_iso(NOW)
        assert week["start"].startswith("2026-10-11T00:00:00")
        assert week["end"].startswith("2026-10-17T23:59:59.999")


class TestWeeklyLoad:

    def test_at_limit_is_full(self):
        assert WeeklyLoad(count=5, limit=5, has_capacity=False).utilization_percent == 100

    def test_zero_limit(self):
        assert WeeklyLoad(count=3, limit=0, has_capacity=False).utilization_percent == 0


class TestCapacityTracker:

    def _tracker(self, partner_raw, leads):
        store = InMemoryStore(leads=leads, partners=[partner_raw])
        return CapacityTracker(store), PartnerDocument.model_validate(partner_raw)

    def test_five_of_five_has_no_capacity(self):
        raw = make_partner(average_leads_per_week=5)
        tracker, partner = self._tracker(raw, filler_leads(raw["id"], 5))
        load = run(tracker.weekly_load(partner, NOW))
        assert load.count == 5
        assert load.has_capacity is False
        print(f"✅ 5/5 -> plein: {load}")

    def test_four_of_five_has_capacity(self):
        raw = make_partner(average_leads_per_week=5)
        tracker, partner = self._tracker(raw, filler_leads(raw["id"], 4))
        load = run(tracker.weekly_load(partner, NOW))
        assert load.count == 4
        assert load.has_capacity is True
        assert load.utilization_percent == 80

    def test_previous_week_not_counted(self):
        raw = make_partner()
        last_week = NOW - timedelta(days=7)
        tracker, partner = self._tracker(raw, filler_leads(raw["id"], 5, at=last_week))
        load = run(tracker.weekly_load(partner, NOW))
        assert load.count == 0
        assert load.has_capacity is True

    def test_leads_of_other_partners_not_counted(self):
        raw = make_partner()
        tracker, partner = self._tracker(raw, filler_leads("someone-else", 5))
        assert run(tracker.weekly_load(partner, NOW)).count == 0

    def test_default_limit_when_not_configured(self):
        raw = make_partner(average_leads_per_week=None)
        tracker, partner = self._tracker(raw, [])
        assert tracker.limit_for(partner) == 5
        assert CapacityTracker(None, default_limit=12).limit_for(partner) == 12

    def test_unreadable_limit_uses_default(self):
        raw = make_partner(average_leads_per_week="lots")
        tracker, partner = self._tracker(raw, [])
        assert tracker.limit_for(partner) == 5

    def test_camel_case_limit(self):
        raw = make_partner(average_leads_per_week=None, preferences={"averageLeadsPerWeek": 3})
        tracker, partner = self._tracker(raw, filler_leads(raw["id"], 3))
        load = run(tracker.weekly_load(partner, NOW))
        assert load.limit == 3
        assert load.has_capacity is False

    def test_batch_loads(self):
        a = make_partner(partner_id="p-a")
        b = make_partner(partner_id="p-b", average_leads_per_week=2)
        leads = filler_leads("p-a", 1) + filler_leads("p-b", 2) + [make_lead()]
        store = InMemoryStore(leads=leads, partners=[a, b])
        partners = [PartnerDocument.model_validate(p) for p in (a, b)]

        loads = run(CapacityTracker(store).weekly_loads(partners, NOW))

        assert loads["p-a"] == WeeklyLoad(count=1, limit=5, has_capacity=True)
        assert loads["p-b"] == WeeklyLoad(count=2, limit=2, has_capacity=False)

    def test_week_boundaries_inclusive(self):
        raw = make_partner()
        start, end = get_week_range(NOW)
        leads = [
            make_lead(status="assigned", assigned_partner_id=raw["id"], assigned_at=to_iso(start)),
            make_lead(status="assigned", assigned_partner_id=raw["id"], assigned_at=to_iso(end)),
            make_lead(status="assigned", assigned_partner_id=raw["id"],
                      assigned_at=to_iso(end + timedelta(milliseconds=1))),
        ]
        tracker, partner = self._tracker(raw, leads)
        assert run(tracker.weekly_load(partner, NOW)).count == 2

    def test_reassigned_away_still_counted(self):
        """Lead passé de A à B dans la semaine: compté chez A ET chez B"""
        a = make_partner(partner_id="p-a", average_leads_per_week=1)
        b = make_partner(partner_id="p-b")
        lead = make_lead(
            status="assigned", assigned_partner_id="p-b", assigned_at=to_iso(NOW),
            assignment_history=[
                {"partner_id": "p-a", "assigned_at": to_iso(NOW - timedelta(days=1))},
                {"partner_id": "p-b", "assigned_at": to_iso(NOW)},
            ],
        )
        store = InMemoryStore(leads=[lead], partners=[a, b])
        partners = [PartnerDocument.model_validate(p) for p in (a, b)]

        loads = run(CapacityTracker(store).weekly_loads(partners, NOW))

        assert loads["p-a"] == WeeklyLoad(count=1, limit=1, has_capacity=False)
        assert loads["p-b"].count == 1

    def test_engine_reassignment_keeps_previous_partner_load(self):
        a = make_partner(partner_id="p-a", average_leads_per_week=1)
        b = make_partner(partner_id="p-b")
        lead = make_lead()
        store = InMemoryStore(leads=[lead], partners=[a, b])
        engine = AssignmentEngine(store, clock=fixed_clock)

        run(engine.assign(lead["id"], "p-a"))
        run(engine.assign(lead["id"], "p-b"))

        load = run(CapacityTracker(store).weekly_load(PartnerDocument.model_validate(a), NOW))
        assert load.count == 1
        assert load.has_capacity is False
        print(f"✅ Capacité A après réassignation vers B: {load}")

    def test_pre_migration_assignment_kept_on_reassign(self):
        """Lead sans historique: l'assignation en place est reprise dans l'historique"""
        a = make_partner(partner_id="p-a")
        b = make_partner(partner_id="p-b")
        lead = make_lead(status="assigned", assigned_partner_id="p-a", assigned_at=to_iso(NOW))
        store = InMemoryStore(leads=[lead], partners=[a, b])

        run(AssignmentEngine(store, clock=fixed_clock).assign(lead["id"], "p-b"))

        history = store.leads[lead["id"]]["assignment_history"]
        assert [e["partner_id"] for e in history] == ["p-a", "p-b"]
        week = get_week_range_iso(NOW)
        assert run(store.count_assigned_between("p-a", week["start"], week["end"])) == 1


class TestPriorityScore:

    def test_exclusive_location_no_history(self):
        assert compute_priority_score(PartnerType.EXCLUSIVE, 0, True, 0) == 125

    def test_basic_half_used(self):
        # 50 - 50 + 25 + 0.2 * 50
        assert compute_priority_score(PartnerType.BASIC, 50, True, 50) == 35

    def test_no_location_bonus(self):
        assert compute_priority_score(PartnerType.BASIC, 0, False, 0) == 50

    def test_rounded_to_two_decimals(self):
        assert compute_priority_score(PartnerType.BASIC, 100 / 3, False, 0) == 16.67

    def test_acceptance_rate(self):
        assert compute_acceptance_rate(PartnerMetrics()) == 0
        metrics = PartnerMetrics(total_leads_received=4, total_leads_accepted=3)
        assert compute_acceptance_rate(metrics) == 75
