"""Decoding of raw store records into canonical domain records.

Records written by earlier dashboard versions use several names for the
same field. Every known variant is listed here; a record that is not a
mapping, or has no usable chassis, is skipped and logged instead of being
filled with defaults.
"""
from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping

from dealer_yard.domain.identifiers import normalize_chassis, slugify
from dealer_yard.domain.models import (
    ChassisUnit,
    DispatchIntent,
    HandoverRecord,
    InTransitRecord,
    ReconciliationReason,
    ReconciliationReport,
    ReportSource,
    ScheduleEntry,
    TierConfig,
    UnitSource,
    UnitState,
)

logger = logging.getLogger(__name__)

KNOWN_CHASSIS_KEYS = ["chassis", "Chassis", "Chassis Number", "chassisNumber"]
KNOWN_MODEL_KEYS = ["model", "Model"]
KNOWN_CUSTOMER_KEYS = ["customer", "Customer"]
KNOWN_DEALER_KEYS = ["dealer", "Dealer"]
KNOWN_RECEIVED_KEYS = ["receivedAt", "received_at", "createdAt"]
KNOWN_HANDOVER_KEYS = ["handoverAt", "handover_at", "createdAt"]
KNOWN_HANDOVER_DEALER_KEYS = ["dealerSlug", "dealerName", "dealer"]
KNOWN_PGI_DATE_KEYS = ["pgidate", "pgiDate", "PGI Date", "sourceDate"]
KNOWN_VIN_KEYS = ["vinnumber", "vinNumber", "VIN"]
KNOWN_PO_KEYS = ["wholesalePo", "wholesalePO", "wholesale_po"]
KNOWN_CUSTOM_REASON_KEYS = ["customReason", "custom_reason"]
KNOWN_MIN_VOLUME_KEYS = ["minVolume", "min_volume", "yardCapacity"]

_DDMMYYYY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def to_str(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def first_present(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and to_str(value) != "":
            return value
    return None


def optional_str(value: object) -> str | None:
    text = to_str(value)
    return text or None


def parse_timestamp(value: object) -> datetime | None:
    """Parse ISO-8601 strings or epoch milliseconds into aware UTC datetimes."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        if math.isnan(value):
            return None
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = to_str(value)
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_ddmmyyyy(value: object) -> date | None:
    match = _DDMMYYYY.match(to_str(value))
    if not match:
        return None
    day, month, year = (int(group) for group in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_flexible_date(value: object) -> date | None:
    parsed = parse_ddmmyyyy(value)
    if parsed is not None:
        return parsed
    stamp = parse_timestamp(value)
    return stamp.date() if stamp else None


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def format_ddmmyyyy(value: date | None) -> str | None:
    return value.strftime("%d/%m/%Y") if value is not None else None


def _skip(kind: str, key: object, reason: str) -> None:
    logger.warning("Skipping %s record %r: %s", kind, key, reason)


def _chassis_of(key: object, raw: Mapping[str, Any]) -> str:
    return normalize_chassis(first_present(raw, KNOWN_CHASSIS_KEYS) or key)


def decode_unit(key: object, raw: object, dealer_slug: str, state: UnitState) -> ChassisUnit | None:
    if not isinstance(raw, Mapping):
        _skip("yard", key, "not a mapping")
        return None
    chassis = _chassis_of(key, raw)
    if not chassis:
        _skip("yard", key, "no chassis")
        return None
    default_source = UnitSource.PENDING_APPROVAL if state is UnitState.YARD_PENDING else UnitSource.PGI
    try:
        source = UnitSource(to_str(raw.get("source"))) if raw.get("source") else default_source
    except ValueError:
        source = default_source
    return ChassisUnit(
        chassis=chassis,
        dealer_slug=dealer_slug,
        state=state,
        model=to_str(first_present(raw, KNOWN_MODEL_KEYS)),
        customer=to_str(first_present(raw, KNOWN_CUSTOMER_KEYS)),
        source=source,
        received_at=parse_timestamp(first_present(raw, KNOWN_RECEIVED_KEYS)),
        dispatched_at=parse_timestamp(raw.get("dispatchedAt")),
        source_date=parse_flexible_date(first_present(raw, KNOWN_PGI_DATE_KEYS)),
        vin_number=optional_str(first_present(raw, KNOWN_VIN_KEYS)),
        wholesale_po=optional_str(first_present(raw, KNOWN_PO_KEYS)),
    )


def encode_unit(unit: ChassisUnit) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "chassis": unit.chassis,
        "dealer": unit.dealer_slug,
        "model": unit.model or None,
        "customer": unit.customer or None,
        "receivedAt": format_timestamp(unit.received_at),
        "source": unit.source.value,
        "sourceDate": format_ddmmyyyy(unit.source_date),
        "vinnumber": unit.vin_number,
        "wholesalePo": unit.wholesale_po,
    }
    return {key: value for key, value in payload.items() if value is not None}


def decode_in_transit(key: object, raw: object) -> InTransitRecord | None:
    if not isinstance(raw, Mapping):
        _skip("pgi", key, "not a mapping")
        return None
    chassis = _chassis_of(key, raw)
    if not chassis:
        _skip("pgi", key, "no chassis")
        return None
    return InTransitRecord(
        chassis=chassis,
        dealer=to_str(first_present(raw, KNOWN_DEALER_KEYS)),
        model=to_str(first_present(raw, KNOWN_MODEL_KEYS)),
        customer=to_str(first_present(raw, KNOWN_CUSTOMER_KEYS)),
        pgi_date=parse_flexible_date(first_present(raw, KNOWN_PGI_DATE_KEYS)),
    )


def encode_in_transit(record: InTransitRecord) -> dict[str, Any]:
    payload = {
        "dealer": record.dealer or None,
        "model": record.model or None,
        "customer": record.customer or None,
        "pgidate": format_ddmmyyyy(record.pgi_date),
    }
    return {key: value for key, value in payload.items() if value is not None}


def decode_handover(key: object, raw: object, dealer_slug: str | None = None) -> HandoverRecord | None:
    if not isinstance(raw, Mapping):
        _skip("handover", key, "not a mapping")
        return None
    chassis = _chassis_of(key, raw)
    if not chassis:
        _skip("handover", key, "no chassis")
        return None
    handover_at = parse_timestamp(first_present(raw, KNOWN_HANDOVER_KEYS))
    if handover_at is None:
        _skip("handover", key, "no handover timestamp")
        return None
    owner = slugify(first_present(raw, KNOWN_HANDOVER_DEALER_KEYS)) or (dealer_slug or "")
    return HandoverRecord(
        chassis=chassis,
        dealer_slug=owner,
        dealer_name=to_str(raw.get("dealerName")),
        handover_at=handover_at,
        model=to_str(first_present(raw, KNOWN_MODEL_KEYS)),
        customer=to_str(first_present(raw, KNOWN_CUSTOMER_KEYS)),
        source=to_str(raw.get("source")) or "dispatch",
    )


def encode_handover(record: HandoverRecord) -> dict[str, Any]:
    return {
        "chassis": record.chassis,
        "dealerSlug": record.dealer_slug,
        "dealerName": record.dealer_name,
        "model": record.model,
        "customer": record.customer,
        "handoverAt": format_timestamp(record.handover_at),
        "source": record.source,
    }


def decode_report(key: object, raw: object, dealer_slug: str) -> ReconciliationReport | None:
    if not isinstance(raw, Mapping):
        _skip("report", key, "not a mapping")
        return None
    chassis = _chassis_of(key, raw)
    if not chassis:
        _skip("report", key, "no chassis")
        return None
    try:
        source = ReportSource(to_str(raw.get("source"))) if raw.get("source") else None
    except ValueError:
        source = None
    return ReconciliationReport(
        chassis=chassis,
        dealer_slug=dealer_slug,
        reason=ReconciliationReason.parse(raw.get("reason")),
        custom_reason=optional_str(first_present(raw, KNOWN_CUSTOM_REASON_KEYS)),
        note=optional_str(raw.get("note")),
        source=source,
        created_at=parse_timestamp(raw.get("createdAt")),
        updated_at=parse_timestamp(raw.get("updatedAt")),
        note_updated_at=parse_timestamp(raw.get("noteUpdatedAt")),
    )


def decode_intent(key: object, raw: object, dealer_slug: str) -> DispatchIntent | None:
    if not isinstance(raw, Mapping):
        _skip("dispatch intent", key, "not a mapping")
        return None
    handover = decode_handover(key, raw.get("handover"), dealer_slug)
    created_at = parse_timestamp(raw.get("createdAt"))
    if handover is None or created_at is None:
        _skip("dispatch intent", key, "incomplete payload")
        return None
    return DispatchIntent(handover=handover, created_at=created_at)


def encode_intent(intent: DispatchIntent) -> dict[str, Any]:
    return {
        "handover": encode_handover(intent.handover),
        "createdAt": format_timestamp(intent.created_at),
    }


def _coerce_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    try:
        return float(to_str(value))
    except ValueError:
        return None


def decode_tier_config(raw: object) -> TierConfig:
    if not isinstance(raw, Mapping):
        if raw is not None:
            _skip("tierConfig", "tierConfig", "not a mapping")
        return TierConfig()

    shares: dict[str, float] = {}
    raw_shares = raw.get("shareTargets")
    if isinstance(raw_shares, Mapping):
        for tier, value in raw_shares.items():
            number = _coerce_number(value)
            if number is None:
                _skip("share target", tier, f"not a number: {value!r}")
                continue
            shares[str(tier)] = number

    targets: dict[str, dict[str, object]] = {}
    raw_targets = raw.get("tierTargets")
    if isinstance(raw_targets, Mapping):
        for tier, values in raw_targets.items():
            if not isinstance(values, Mapping):
                _skip("tier target", tier, "not a mapping")
                continue
            override: dict[str, object] = {}
            for name in ("label", "role"):
                if values.get(name) is not None:
                    override[name] = to_str(values[name])
            for name in ("minimum", "ceiling"):
                number = _coerce_number(values.get(name))
                if number is not None:
                    override[name] = int(math.floor(number))
            targets[str(tier)] = override

    return TierConfig(
        share_targets=shares,
        tier_targets=targets,
        updated_at=parse_timestamp(raw.get("updatedAt")),
    )


def encode_tier_config(config: TierConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "shareTargets": dict(config.share_targets),
        "tierTargets": {tier: dict(values) for tier, values in config.tier_targets.items()},
    }
    if config.updated_at is not None:
        payload["updatedAt"] = format_timestamp(config.updated_at)
    return payload


def decode_schedule_entry(raw: object) -> ScheduleEntry | None:
    if not isinstance(raw, Mapping):
        return None
    return ScheduleEntry(
        chassis=normalize_chassis(first_present(raw, KNOWN_CHASSIS_KEYS)),
        customer=to_str(raw.get("Customer")),
        dealer=to_str(raw.get("Dealer")),
        model=to_str(raw.get("Model")),
        forecast_production_date=to_str(raw.get("Forecast Production Date")),
        regent_production=to_str(raw.get("Regent Production")),
    )


def decode_min_volume(raw: object) -> int:
    if not isinstance(raw, Mapping):
        return 0
    number = _coerce_number(first_present(raw, KNOWN_MIN_VOLUME_KEYS))
    if number is None or number < 0:
        return 0
    return int(number)


def iter_children(raw: object) -> Iterable[tuple[str, Any]]:
    """Iterate a collection node that may be stored as an object or an array."""
    if isinstance(raw, Mapping):
        return ((str(key), value) for key, value in raw.items())
    if isinstance(raw, list):
        return ((str(index), value) for index, value in enumerate(raw) if value is not None)
    return iter(())
