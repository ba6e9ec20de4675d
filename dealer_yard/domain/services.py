"""Domain services: reason validation and the yard consistency audit."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Sequence

from .errors import MissingCustomReason, MissingReason
from .models import ChassisUnit, ReconciliationReason
from .results import AuditDiscrepancy, AuditReport, AuditSummary, YardSnapshot


def validate_reason(
    chassis: str, reason: object, custom_reason: str | None
) -> tuple[ReconciliationReason, str | None]:
    """Check a reason against the fixed enumeration.

    Returns the parsed reason and the custom reason to store, which is only
    kept for ``Other``.
    """
    parsed = ReconciliationReason.parse(reason)
    if parsed is None:
        raise MissingReason(chassis, reason)
    if parsed is ReconciliationReason.OTHER:
        custom = (custom_reason or "").strip()
        if not custom:
            raise MissingCustomReason(chassis)
        return parsed, custom
    return parsed, None


class YardAuditor:
    """Finds units that sit in more than one lifecycle collection at once."""

    def audit(self, snapshot: YardSnapshot, now: datetime | None = None) -> AuditReport:
        dealer = snapshot.dealer_slug
        yard = self._to_map(snapshot.yard_stock)
        pending = self._to_map(snapshot.yard_pending)
        handed_over = {record.chassis for record in snapshot.handovers}
        in_transit = set(snapshot.in_transit)

        orphaned: list[AuditDiscrepancy] = []
        for intent in snapshot.intents:
            orphaned.append(
                AuditDiscrepancy(
                    chassis=intent.chassis,
                    dealer_slug=dealer,
                    issue_type="orphaned_dispatch",
                    message=f"Dispatch started at {intent.created_at.isoformat()} never completed",
                )
            )

        still_in_yard = [
            AuditDiscrepancy(
                chassis=chassis,
                dealer_slug=dealer,
                issue_type="dispatched_still_in_yard",
                message="Handover recorded but the unit is still listed in the yard",
            )
            for chassis in sorted(set(yard) & handed_over)
        ]
        double_counted = [
            AuditDiscrepancy(
                chassis=chassis,
                dealer_slug=dealer,
                issue_type="in_transit_and_in_yard",
                message="Unit received into the yard but its PGI record remains",
            )
            for chassis in sorted((set(yard) | set(pending)) & in_transit)
        ]
        pending_dupes = [
            AuditDiscrepancy(
                chassis=chassis,
                dealer_slug=dealer,
                issue_type="pending_and_in_yard",
                message="Unit is both awaiting approval and in yard stock",
            )
            for chassis in sorted(set(yard) & set(pending))
        ]

        summary = AuditSummary(
            dealer_slug=dealer,
            yard_stock=len(yard),
            yard_pending=len(pending),
            orphaned_dispatches=len(orphaned),
            dispatched_still_in_yard=len(still_in_yard),
            in_transit_and_in_yard=len(double_counted),
            pending_and_in_yard=len(pending_dupes),
            generated_at=now or datetime.now(timezone.utc),
        )
        return AuditReport(
            summary=summary,
            discrepancies=tuple(orphaned + still_in_yard + double_counted + pending_dupes),
        )

    @staticmethod
    def _to_map(units: Sequence[ChassisUnit]) -> Mapping[str, ChassisUnit]:
        by_chassis: dict[str, ChassisUnit] = {}
        for unit in units:
            by_chassis[unit.chassis] = unit
        return by_chassis
