from datetime import datetime, timezone

from dealer_yard.domain.models import ChassisUnit, HandoverRecord, UnitState
from dealer_yard.domain.results import YardSnapshot
from dealer_yard.domain.services import YardAuditor

NOW = datetime(2025, 5, 1, tzinfo=timezone.utc)


def _unit(chassis: str, state: UnitState = UnitState.YARD_STOCK) -> ChassisUnit:
    return ChassisUnit(chassis=chassis, dealer_slug="geelong", state=state)


def test_clean_yard_has_no_issues():
    snapshot = YardSnapshot(dealer_slug="geelong", yard_stock=(_unit("A1"), _unit("A2")))

    report = YardAuditor().audit(snapshot, now=NOW)

    assert not report.has_issues()
    assert report.summary.yard_stock == 2
    assert report.summary.generated_at == NOW


def test_overlapping_collections_are_reported():
    snapshot = YardSnapshot(
        dealer_slug="geelong",
        yard_stock=(_unit("A1"), _unit("B2"), _unit("C3")),
        yard_pending=(_unit("C3", UnitState.YARD_PENDING), _unit("D4", UnitState.YARD_PENDING)),
        handovers=(HandoverRecord(chassis="A1", dealer_slug="geelong", dealer_name="Geelong", handover_at=NOW),),
        in_transit=("B2", "D4", "Z9"),
    )

    report = YardAuditor().audit(snapshot, now=NOW)

    assert [item.chassis for item in report.iter_by_type("dispatched_still_in_yard")] == ["A1"]
    assert [item.chassis for item in report.iter_by_type("in_transit_and_in_yard")] == ["B2", "D4"]
    assert [item.chassis for item in report.iter_by_type("pending_and_in_yard")] == ["C3"]
    assert report.summary.in_transit_and_in_yard == 2
    assert report.summary.orphaned_dispatches == 0
