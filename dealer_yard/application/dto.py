"""Application-level request objects for lifecycle transitions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(slots=True, frozen=True)
class ReceiveRequest:
    dealer: str
    chassis: str
    model: str | None = None
    customer: str | None = None
    source_date: date | None = None


@dataclass(slots=True, frozen=True)
class ManualAddRequest:
    dealer: str
    chassis: str
    model: str | None = None
    customer: str | None = None
    pending: bool = True
    reason: str | None = None
    custom_reason: str | None = None
    vin_number: str | None = None
    wholesale_po: str | None = None


@dataclass(slots=True, frozen=True)
class DispatchRequest:
    dealer: str
    chassis: str
    dealer_name: str | None = None
    handover_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class ReportRequest:
    dealer: str
    chassis: str
    reason: str | None
    custom_reason: str | None = None
