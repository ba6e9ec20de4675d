"""Domain models for the dealer yard lifecycle.

These dataclasses are the typed form of the records kept in the document
store; the store adapter is the only place that converts between the two.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .classification import UnitType, classify_customer, model_range


class UnitState(str, Enum):
    IN_TRANSIT = "InTransit"
    YARD_PENDING = "YardPending"
    YARD_STOCK = "YardStock"
    DISPATCHED = "Dispatched"


class UnitSource(str, Enum):
    PGI = "PGI"
    MANUAL = "manual"
    PENDING_APPROVAL = "pending-approval"


class ReportSource(str, Enum):
    ADD_TO_YARD = "add-to-yard"
    REPORT_INVALID_STOCK = "report-invalid-stock"


class ReconciliationReason(str, Enum):
    SOLD = "Sold"
    NEVER_RECEIVED = "Never received"
    REALLOCATED = "Previously received but was reallocated"
    SHOW = "Show"
    DISPATCH_POINT = "Dispatch point"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: object) -> "ReconciliationReason | None":
        if isinstance(value, cls):
            return value
        text = "" if value is None else str(value).strip()
        for member in cls:
            if member.value.lower() == text.lower():
                return member
        return None


@dataclass(frozen=True)
class ChassisUnit:
    """A physical unit resident in (or headed for) a dealer yard."""

    chassis: str
    dealer_slug: str
    state: UnitState
    model: str = ""
    customer: str = ""
    source: UnitSource = UnitSource.PGI
    received_at: datetime | None = None
    dispatched_at: datetime | None = None
    handover_at: datetime | None = None
    source_date: date | None = None
    vin_number: str | None = None
    wholesale_po: str | None = None

    @property
    def unit_type(self) -> UnitType:
        return classify_customer(self.customer)

    @property
    def model_range(self) -> str:
        return model_range(self.model, self.chassis)

    def days_in_yard(self, now: datetime) -> int:
        if self.received_at is None:
            return 0
        delta = now - self.received_at
        return max(0, delta.days)


@dataclass(frozen=True)
class InTransitRecord:
    """PGI feed entry: a unit shipped from the factory towards a dealer."""

    chassis: str
    dealer: str = ""
    model: str = ""
    customer: str = ""
    pgi_date: date | None = None


@dataclass(frozen=True)
class HandoverRecord:
    """Immutable audit entry written once per dispatch."""

    chassis: str
    dealer_slug: str
    dealer_name: str
    handover_at: datetime
    model: str = ""
    customer: str = ""
    source: str = "dispatch"


@dataclass(frozen=True)
class ReconciliationReport:
    chassis: str
    dealer_slug: str
    reason: ReconciliationReason | None = None
    custom_reason: str | None = None
    note: str | None = None
    source: ReportSource | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    note_updated_at: datetime | None = None


@dataclass(frozen=True)
class DispatchIntent:
    """A dispatch that has started but not yet been confirmed complete."""

    handover: HandoverRecord
    created_at: datetime

    @property
    def chassis(self) -> str:
        return self.handover.chassis

    @property
    def dealer_slug(self) -> str:
        return self.handover.dealer_slug


@dataclass(frozen=True)
class ScheduleEntry:
    chassis: str
    customer: str = ""
    dealer: str = ""
    model: str = ""
    forecast_production_date: str = ""
    regent_production: str = ""


@dataclass(frozen=True)
class TierTarget:
    label: str
    role: str = ""
    minimum: int = 0
    ceiling: int | None = None


@dataclass(frozen=True)
class TierConfig:
    """Immutable snapshot of tier overrides as stored under ``tierConfig``."""

    share_targets: Mapping[str, float] = field(default_factory=dict)
    tier_targets: Mapping[str, Mapping[str, object]] = field(default_factory=dict)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "share_targets", MappingProxyType(dict(self.share_targets)))
        object.__setattr__(
            self,
            "tier_targets",
            MappingProxyType({tier: MappingProxyType(dict(values)) for tier, values in self.tier_targets.items()}),
        )
