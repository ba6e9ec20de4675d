"""Domain-level results for transitions, allocation and yard audits."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Sequence

from .models import ChassisUnit, DispatchIntent, HandoverRecord, ReconciliationReport


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a lifecycle transition once the store has acknowledged it."""

    chassis: str
    dealer_slug: str
    unit: ChassisUnit | None = None
    handover: HandoverRecord | None = None
    report: ReconciliationReport | None = None
    replaced: bool = False


@dataclass(frozen=True)
class TierRequirement:
    tier: str
    label: str
    role: str
    share: float
    target_count: int
    minimum: int
    ceiling: int | None = None
    on_hand: int | None = None

    @property
    def target_below_minimum(self) -> bool:
        return self.target_count < self.minimum

    @property
    def target_above_ceiling(self) -> bool:
        return self.ceiling is not None and self.target_count > self.ceiling

    @property
    def shortfall(self) -> int:
        if self.on_hand is None:
            return 0
        return max(0, self.target_count - self.on_hand)

    @property
    def overflow(self) -> int:
        if self.on_hand is None:
            return 0
        return max(0, self.on_hand - self.target_count)

    @property
    def below_minimum(self) -> bool:
        return self.on_hand is not None and self.on_hand < self.minimum

    @property
    def above_ceiling(self) -> bool:
        return self.on_hand is not None and self.ceiling is not None and self.on_hand > self.ceiling


@dataclass(frozen=True)
class TierAllocation:
    baseline_volume: int
    share_total: float
    requirements: Sequence[TierRequirement] = field(default_factory=tuple)
    warnings: Sequence[str] = field(default_factory=tuple)

    def target_counts(self) -> Mapping[str, int]:
        return {item.tier: item.target_count for item in self.requirements}

    def requirement(self, tier: str) -> TierRequirement:
        for item in self.requirements:
            if item.tier == tier:
                return item
        raise KeyError(tier)

    @property
    def over_allocated(self) -> bool:
        return self.share_total > 1 + 1e-9


@dataclass(frozen=True)
class AuditDiscrepancy:
    """An inconsistency between lifecycle collections that needs a human or a sweep."""

    chassis: str
    dealer_slug: str
    issue_type: str
    message: str


@dataclass(frozen=True)
class YardSnapshot:
    """Everything the auditor needs for one dealer, read at a single point."""

    dealer_slug: str
    yard_stock: Sequence[ChassisUnit] = field(default_factory=tuple)
    yard_pending: Sequence[ChassisUnit] = field(default_factory=tuple)
    handovers: Sequence[HandoverRecord] = field(default_factory=tuple)
    in_transit: Sequence[str] = field(default_factory=tuple)
    intents: Sequence[DispatchIntent] = field(default_factory=tuple)


@dataclass(frozen=True)
class AuditSummary:
    dealer_slug: str
    yard_stock: int
    yard_pending: int
    orphaned_dispatches: int
    dispatched_still_in_yard: int
    in_transit_and_in_yard: int
    pending_and_in_yard: int
    generated_at: datetime


@dataclass(frozen=True)
class AuditReport:
    summary: AuditSummary
    discrepancies: Sequence[AuditDiscrepancy] = field(default_factory=tuple)

    def has_issues(self) -> bool:
        return bool(self.discrepancies)

    def iter_by_type(self, issue_type: str) -> Iterable[AuditDiscrepancy]:
        return (item for item in self.discrepancies if item.issue_type == issue_type)
