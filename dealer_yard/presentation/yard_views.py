"""Read-side projections over yard, PGI and handover snapshots.

All functions are pure: they take the latest decoded snapshot and return
new frames or dicts, so they can be recomputed at any time.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping, Sequence

import pandas as pd

from dealer_yard.config import SETTINGS
from dealer_yard.domain.classification import UnitType
from dealer_yard.domain.identifiers import slugify
from dealer_yard.domain.models import ChassisUnit, HandoverRecord, InTransitRecord, ScheduleEntry

UNIT_COLUMNS = [
    "chassis",
    "dealer_slug",
    "state",
    "model",
    "customer",
    "type",
    "model_range",
    "source",
    "received_at",
    "days_in_yard",
]


def enrich_with_schedule(units: Iterable[ChassisUnit], schedule: Iterable[ScheduleEntry]) -> list[ChassisUnit]:
    """Prefer the schedule's customer and model over what the yard record carries."""
    by_chassis = {entry.chassis: entry for entry in schedule if entry.chassis}
    enriched: list[ChassisUnit] = []
    for unit in units:
        entry = by_chassis.get(unit.chassis)
        if entry is None:
            enriched.append(unit)
            continue
        enriched.append(
            replace(
                unit,
                customer=entry.customer or unit.customer,
                model=entry.model or unit.model,
            )
        )
    return enriched


def units_to_frame(units: Sequence[ChassisUnit], now: datetime) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "chassis": unit.chassis,
                "dealer_slug": unit.dealer_slug,
                "state": unit.state.value,
                "model": unit.model,
                "customer": unit.customer,
                "type": unit.unit_type.value,
                "model_range": unit.model_range,
                "source": unit.source.value,
                "received_at": unit.received_at,
                "days_in_yard": unit.days_in_yard(now),
            }
            for unit in units
        ],
        columns=UNIT_COLUMNS,
    )


def days_in_yard_buckets(units: Sequence[ChassisUnit], now: datetime) -> pd.DataFrame:
    buckets = SETTINGS.yard_age_buckets
    labels = [label for label, _, _ in buckets]
    edges = [buckets[0][1] - 1] + [float("inf") if upper is None else upper for _, _, upper in buckets]
    days = pd.Series([unit.days_in_yard(now) for unit in units], dtype="int64")
    binned = pd.cut(days, bins=edges, labels=labels)
    counts = binned.value_counts().reindex(labels, fill_value=0)
    return pd.DataFrame({"label": labels, "count": [int(value) for value in counts]})


def filter_by_age_bucket(units: Sequence[ChassisUnit], now: datetime, label: str) -> list[ChassisUnit]:
    for bucket_label, lower, upper in SETTINGS.yard_age_buckets:
        if bucket_label == label:
            return [
                unit
                for unit in units
                if unit.days_in_yard(now) >= lower and (upper is None or unit.days_in_yard(now) <= upper)
            ]
    return list(units)


def yard_stock_counts(units: Sequence[ChassisUnit]) -> dict[str, int]:
    stock = sum(1 for unit in units if unit.unit_type is UnitType.STOCK)
    return {"stock": stock, "customer": len(units) - stock, "total": len(units)}


def model_range_counts(units: Sequence[ChassisUnit]) -> pd.DataFrame:
    series = pd.Series([unit.model_range for unit in units], dtype="object")
    counts = series.value_counts()
    frame = pd.DataFrame({"model_range": counts.index.astype(str), "count": counts.values.astype(int)})
    return frame.sort_values(["count", "model_range"], ascending=[False, True]).reset_index(drop=True)


def kpi_window(
    range_type: str,
    now: datetime,
    custom_start: date | None = None,
    custom_end: date | None = None,
) -> tuple[datetime, datetime]:
    """Inclusive window for KPI counts: the last N days, or a custom date span."""
    tz = now.tzinfo or SETTINGS.timezone
    if range_type == "custom" and custom_start and custom_end:
        start = datetime.combine(custom_start, time.min, tzinfo=tz)
        end = datetime.combine(custom_end, time.max, tzinfo=tz)
        return start, end
    days = SETTINGS.kpi_range_days.get(range_type, SETTINGS.kpi_range_days["7d"])
    end = datetime.combine(now.date(), time.max, tzinfo=tz)
    start = datetime.combine(now.date() - timedelta(days=days - 1), time.min, tzinfo=tz)
    return start, end


def _within(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def kpi_counts(
    dealer_slug: str,
    units: Sequence[ChassisUnit],
    in_transit: Sequence[InTransitRecord],
    handovers: Sequence[HandoverRecord],
    start: datetime,
    end: datetime,
) -> dict[str, int]:
    pgi = sum(
        1
        for record in in_transit
        if slugify(record.dealer) == dealer_slug
        and record.pgi_date is not None
        and start.date() <= record.pgi_date <= end.date()
    )
    received = sum(1 for unit in units if _within(unit.received_at, start, end))
    handed_over = sum(
        1 for record in handovers if record.dealer_slug == dealer_slug and _within(record.handover_at, start, end)
    )
    counts = {"pgi": pgi, "received": received, "handed_over": handed_over}
    counts.update(yard_stock_counts(units))
    return counts


def weekly_received_trend(units: Sequence[ChassisUnit], now: datetime, weeks: int | None = None) -> pd.DataFrame:
    """Units received per Monday-start week, oldest week first."""
    weeks = weeks or SETTINGS.trend_weeks
    this_monday = now.date() - timedelta(days=now.weekday())
    starts = [this_monday - timedelta(weeks=offset) for offset in range(weeks - 1, -1, -1)]
    received = pd.Series([unit.received_at.date() for unit in units if unit.received_at is not None], dtype="object")
    week_of = received.map(lambda day: day - timedelta(days=day.weekday()))
    counts = week_of.value_counts()
    return pd.DataFrame(
        {
            "week_start": starts,
            "label": [f"{start.month}/{start.day}" for start in starts],
            "count": [int(counts.get(start, 0)) for start in starts],
        }
    )


def monthly_pgi_trend(in_transit: Sequence[InTransitRecord], dealer_slug: str, year: int) -> pd.DataFrame:
    months = pd.date_range(start=f"{year}-01-01", periods=12, freq="MS")
    dates = [
        record.pgi_date
        for record in in_transit
        if record.pgi_date is not None and record.pgi_date.year == year and slugify(record.dealer) == dealer_slug
    ]
    counts = pd.Series([day.month for day in dates], dtype="int64").value_counts()
    return pd.DataFrame(
        {
            "month": [month.month for month in months],
            "label": [month.strftime("%b") for month in months],
            "count": [int(counts.get(month.month, 0)) for month in months],
        }
    )


def tier_counts_by_range(units: Sequence[ChassisUnit], tier_of_range: Mapping[str, str]) -> dict[str, int]:
    """On-hand units per tier, given a model-range to tier lookup."""
    counts: dict[str, int] = {}
    for unit in units:
        tier = tier_of_range.get(unit.model_range)
        if tier:
            counts[tier] = counts.get(tier, 0) + 1
    return counts
