"""Unit tests for the in-memory event store."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import math
import pytest
from sosrelay.config import settings
from sosrelay.errors import NotFoundError, ValidationError
from sosrelay.services.event_store import EventStore


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        self.now += 1000
        return self.now


def make_store(**kwargs):
    return EventStore(clock=FakeClock(), **kwargs)


def assert_sos_invariant(store):
    """sos_active == 'has an unresolved event' for every device."""
    events = store.list_recent(limit=10_000)
    for device in store.snapshot():
        open_events = [e for e in events if e.device_id == device.id and not e.resolved]
        assert device.sos_active == bool(open_events), device


class TestReportSOS:
    def test_first_report_creates_device(self):
        store = make_store()
        device, event = store.report_sos("dev1", 25.5, 91.9)

        assert device.id == "dev1"
        assert device.name == "dev1"       # falls back to the id
        assert device.phone == ""
        assert device.sos_active is True
        assert event.id == 1
        assert event.device_id == "dev1"
        assert event.resolved is False
        assert event.resolved_at is None and event.resolved_by is None

    def test_event_ids_strictly_increase(self):
        store = make_store()
        ids = [store.report_sos(f"dev{i % 3}", 1.0, 2.0)[1].id for i in range(6)]
        assert ids == [1, 2, 3, 4, 5, 6]

    def test_update_keeps_name_and_phone_when_omitted(self):
        store = make_store()
        store.report_sos("dev1", 1.0, 2.0, name="Ana", phone="+91 555")
        device, _ = store.report_sos("dev1", 3.0, 4.0)

        assert device.name == "Ana"
        assert device.phone == "+91 555"
        assert (device.lat, device.lng) == (3.0, 4.0)

    def test_update_overwrites_name_when_supplied(self):
        store = make_store()
        store.report_sos("dev1", 1.0, 2.0, name="Ana")
        device, _ = store.report_sos("dev1", 1.0, 2.0, name="Ana B")
        assert device.name == "Ana B"

    def test_last_seen_refreshed(self):
        store = make_store()
        first, _ = store.report_sos("dev1", 1.0, 2.0)
        second, _ = store.report_sos("dev1", 1.0, 2.0)
        assert second.last_seen > first.last_seen

    @pytest.mark.parametrize("lat,lng", [
        (math.nan, 1.0), (1.0, math.inf), ("12", 1.0), (None, 1.0), (True, 1.0),
    ])
    def test_invalid_coordinates_rejected(self, lat, lng):
        store = make_store()
        with pytest.raises(ValidationError):
            store.report_sos("dev1", lat, lng)
        assert store.snapshot() == []
        assert store.list_recent() == []

    def test_missing_device_id_rejected(self):
        with pytest.raises(ValidationError):
            make_store().report_sos("", 1.0, 2.0)

    def test_returned_records_are_copies(self):
        store = make_store()
        device, event = store.report_sos("dev1", 1.0, 2.0)
        store.resolve(event.id, "op@example.com")

        assert event.resolved is False
        assert device.sos_active is True

    def test_invariant_holds_after_every_report(self):
        store = make_store()
        for i in range(20):
            store.report_sos(f"dev{i % 4}", float(i), float(-i))
            assert_sos_invariant(store)


class TestResolution:
    def test_resolve_sets_metadata_and_clears_flag(self):
        store = make_store()
        _, event = store.report_sos("dev1", 1.0, 2.0)
        resolved, device = store.resolve(event.id, "op@example.com")

        assert resolved.resolved is True
        assert resolved.resolved_by == "op@example.com"
        assert resolved.resolved_at is not None
        assert device.sos_active is False
        assert_sos_invariant(store)

    def test_resolve_keeps_flag_while_other_event_open(self):
        store = make_store()
        _, e1 = store.report_sos("dev1", 1.0, 2.0)
        store.report_sos("dev1", 1.1, 2.1)
        _, device = store.resolve(e1.id, "op")

        assert device.sos_active is True
        assert_sos_invariant(store)

    def test_resolve_then_unresolve_drops_metadata(self):
        store = make_store()
        _, event = store.report_sos("dev1", 1.0, 2.0)
        store.resolve(event.id, "op")
        reopened, device = store.unresolve(event.id)

        assert reopened.resolved is False
        assert reopened.resolved_at is None
        assert reopened.resolved_by is None
        assert device.sos_active is True
        assert "resolvedAt" not in reopened.to_wire()

    def test_unresolve_always_reasserts_sos(self):
        store = make_store()
        _, e1 = store.report_sos("dev1", 1.0, 2.0)
        store.resolve(e1.id, "op")
        _, device = store.unresolve(e1.id)
        assert device.sos_active is True

    def test_unknown_event(self):
        store = make_store()
        with pytest.raises(NotFoundError):
            store.resolve(42, "op")
        with pytest.raises(NotFoundError):
            store.unresolve(42)


class TestLedgerWindow:
    def test_bound_evicts_exactly_the_oldest(self):
        store = make_store(max_events=500)
        for i in range(500):
            store.report_sos("dev1", 1.0, 2.0)
        assert len(store.list_recent(limit=1000)) == 500

        store.report_sos("dev1", 1.0, 2.0)
        events = store.list_recent(limit=1000)
        assert len(events) == 500
        assert events[0].id == 501
        assert events[-1].id == 2
        with pytest.raises(NotFoundError):
            store.resolve(1, "op")

    def test_eviction_does_not_reaudit_sos_flag(self):
        store = make_store(max_events=2)
        store.report_sos("old", 1.0, 2.0)          # only open event for "old"
        store.report_sos("dev1", 1.0, 2.0)
        store.report_sos("dev1", 1.0, 2.0)         # evicts old's event

        assert store.get_device("old").sos_active is True
        assert store.list_recent("old") == []

    def test_explicit_zero_bound_is_honoured(self):
        store = make_store(max_events=0)
        device, event = store.report_sos("dev1", 1.0, 2.0)

        assert event.id == 1
        assert store.list_recent() == []
        assert store.get_device("dev1").sos_active is True

    def test_default_bound_from_settings(self):
        store = make_store()
        for _ in range(settings.EVENT_LEDGER_LIMIT + 1):
            store.report_sos("dev1", 1.0, 2.0)
        assert store.stats()["events"] == settings.EVENT_LEDGER_LIMIT


class TestQueries:
    def test_dev1_scenario(self):
        store = make_store()
        _, e1 = store.report_sos("dev1", 25.5, 91.9)
        _, e2 = store.report_sos("dev1", 25.6, 91.8)
        store.resolve(e1.id, "op")

        device = store.get_device("dev1")
        assert (device.lat, device.lng) == (25.6, 91.8)
        assert device.sos_active is True

        recent = store.list_recent("dev1", 10)
        assert [e.id for e in recent] == [e2.id, e1.id]
        assert recent[0].resolved is False
        assert recent[1].resolved is True

    def test_list_recent_filters_and_clamps(self):
        store = make_store()
        for i in range(5):
            store.report_sos("a", 1.0, 2.0)
            store.report_sos("b", 1.0, 2.0)
        assert len(store.list_recent(limit=3)) == 3
        only_a = store.list_recent("a", 10)
        assert len(only_a) == 5
        assert all(e.device_id == "a" for e in only_a)
        assert store.list_recent("a", 0) == []

    def test_history_is_chronological(self):
        store = make_store()
        ids = [store.report_sos("dev1", 1.0, 2.0)[1].id for _ in range(4)]
        device, points = store.history("dev1", 3)
        assert device.id == "dev1"
        assert [p.id for p in points] == ids[1:]

    def test_latest(self):
        store = make_store()
        with pytest.raises(NotFoundError):
            store.latest()
        store.report_sos("a", 1.0, 2.0)
        _, e2 = store.report_sos("b", 3.0, 4.0)
        event, device = store.latest()
        assert event.id == e2.id
        assert device.id == "b"

    def test_list_rows_pairs_current_device(self):
        store = make_store()
        store.report_sos("a", 1.0, 2.0, name="Alpha")
        rows = store.list_rows(10)
        assert len(rows) == 1
        event, device = rows[0]
        assert device.name == "Alpha"

    def test_stats(self):
        store = make_store()
        _, e1 = store.report_sos("a", 1.0, 2.0)
        store.report_sos("b", 1.0, 2.0)
        store.resolve(e1.id, "op")
        assert store.stats() == {"devices": 2, "events": 2, "active_sos_devices": 1, "open_events": 1}
