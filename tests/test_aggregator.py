from __future__ import annotations

from datetime import timedelta

from conftest import date_field, days, make_truck, text_field
from fleetwatch.models import NotificationSettings, Status
from fleetwatch.services.aggregator import Aggregator
from fleetwatch.services.migration import migrate_legacy_fields


def _fleet(now):
    return [
        make_truck("1", "Volvo 1", date_field("Insurance", now + days(3))),
        make_truck("2", "Scania", date_field("Insurance", now - days(2))),
        make_truck(
            "3", "MAN",
            date_field("Insurance", now + days(5)),
            date_field("Tech Inspection", now - days(1)),
        ),
        make_truck("4", "DAF", date_field("Insurance", now + days(90)), text_field("Plate", "XYZ")),
        make_truck("5", "Iveco", text_field("Plate", "ABC")),
        make_truck("6", "Renault", date_field("Insurance", None)),
    ]


def _ids(trucks):
    return [t.id for t in trucks]


def test_upcoming_and_overdue(now):
    agg = Aggregator(_fleet(now), now, 7)
    assert _ids(agg.upcoming()) == ["1", "3"]
    assert _ids(agg.overdue()) == ["2", "3"]


def test_warning_only_truck_never_overdue(now):
    agg = Aggregator(_fleet(now), now, 7)
    overdue = _ids(agg.overdue())
    for truck in agg.upcoming():
        statuses = [f.status for f in agg.status_for(truck.id).custom_fields]
        if Status.OVERDUE not in statuses:
            assert truck.id not in overdue


def test_partition_of_fleet(now):
    agg = Aggregator(_fleet(now), now, 7)
    upcoming = set(_ids(agg.upcoming()))
    overdue_only = set(_ids(agg.overdue())) - upcoming
    quiet = {t.id for t in agg.trucks} - upcoming - overdue_only
    assert upcoming == {"1", "3"}
    assert overdue_only == {"2"}
    assert quiet == {"4", "5", "6"}
    assert len(upcoming) + len(overdue_only) + len(quiet) == len(agg.trucks)


def test_unset_dates_excluded_everywhere(now):
    agg = Aggregator([make_truck("6", "Renault", date_field("Insurance", None))], now, 7)
    assert agg.upcoming() == []
    assert agg.overdue() == []
    assert agg.status_for("6").custom_fields == []


def test_status_for_unknown_id(now):
    assert Aggregator(_fleet(now), now, 7).status_for("nope") is None


def test_status_for_reports_slots_and_fields(now):
    status = Aggregator(_fleet(now), now, 7).status_for("3")
    assert status.insurance.status is Status.WARNING
    assert status.insurance.days_until == 5
    assert status.tech_inspection.status is Status.OVERDUE
    assert [(f.label, f.status) for f in status.custom_fields] == [
        ("Insurance", Status.WARNING),
        ("Tech Inspection", Status.OVERDUE),
    ]


def test_status_for_without_slots(now):
    status = Aggregator(_fleet(now), now, 7).status_for("5")
    assert status.insurance.status is Status.OK
    assert status.insurance.date is None
    assert status.tech_inspection.date is None


def test_warning_horizon_changes_classification(now):
    trucks = [make_truck("4", "DAF", date_field("Insurance", now + days(20)))]
    assert Aggregator(trucks, now, 7).upcoming() == []
    assert _ids(Aggregator(trucks, now, 30).upcoming()) == ["4"]


def test_recomputes_from_snapshot(now):
    agg = Aggregator(_fleet(now), now, 7)
    assert len(agg.upcoming()) == 2
    agg.now = now + days(10)
    assert _ids(agg.upcoming()) == []


def test_warnings_collects_only_approaching(now):
    warnings = Aggregator(_fleet(now), now, 7).warnings()
    assert [(w.truck.id, [d.label for d in w.deadlines]) for w in warnings] == [
        ("1", ["Insurance"]),
        ("3", ["Insurance"]),
    ]
    assert warnings[0].deadlines[0].days_until == 3


def test_summary_projection(now):
    settings = NotificationSettings(enabled=True, daily_time="08:30", warning_days=7)
    next_check = now + timedelta(hours=23, minutes=30)
    summary = Aggregator(_fleet(now), now, 7).summary(settings, permissions_granted=False, next_check_time=next_check)
    assert summary.total_trucks == 6
    assert summary.upcoming_count == 2
    assert summary.overdue_count == 2
    assert summary.notifications_enabled is True
    assert summary.permissions_granted is False
    assert summary.next_check_time == next_check
    assert summary.warning_days == 7
    assert summary.daily_time == "08:30"


def test_legacy_insurance_deadline_is_overdue(now):
    legacy = make_truck("7", "Old Volvo", insurance_deadline="2024-01-01")
    agg = Aggregator([migrate_legacy_fields(legacy)], now, 7)
    assert _ids(agg.overdue()) == ["7"]
    assert agg.status_for("7").insurance.status is Status.OVERDUE
