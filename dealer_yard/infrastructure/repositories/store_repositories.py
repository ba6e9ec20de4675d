"""Document-store backed repositories for the lifecycle collections."""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Sequence

from dealer_yard.domain.errors import StoreReadFailed, StoreWriteFailed
from dealer_yard.domain.identifiers import slugify
from dealer_yard.domain.models import (
    ChassisUnit,
    DispatchIntent,
    HandoverRecord,
    InTransitRecord,
    ReconciliationReport,
    ScheduleEntry,
    TierConfig,
    UnitState,
)
from dealer_yard.domain.repositories import DocumentStore, Unsubscribe
from dealer_yard.infrastructure.parsing import records

logger = logging.getLogger(__name__)

YARD_STOCK_ROOT = "yardstock"
YARD_PENDING_ROOT = "yardpending"
HANDOVER_ROOT = "handover"
IN_TRANSIT_ROOT = "pgirecord"
REPORT_ROOT = "stockRectification"
INTENT_ROOT = "dispatchIntent"
TIER_CONFIG_PATH = "tierConfig"
SCHEDULE_PATH = "schedule"
DEALER_CONFIG_ROOT = "dealerConfigs"

_UNIT_ROOTS = {
    UnitState.YARD_STOCK: YARD_STOCK_ROOT,
    UnitState.YARD_PENDING: YARD_PENDING_ROOT,
}


def unit_path(dealer_slug: str, state: UnitState, chassis: str = "") -> str:
    try:
        root = _UNIT_ROOTS[state]
    except KeyError:
        raise ValueError(f"{state.value} units are not stored in a yard collection") from None
    return "/".join(part for part in (root, dealer_slug, chassis) if part)


def _path(*parts: str) -> str:
    return "/".join(part for part in parts if part)


def _noop() -> None:
    return None


class LifecycleStoreAdapter:
    """Typed access to the yard, handover, PGI, report and intent collections."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    # -- raw access -------------------------------------------------------

    async def _get(self, path: str) -> Any:
        try:
            return await self._store.get(path)
        except Exception as exc:
            logger.error("Read of %s failed: %s", path, exc)
            raise StoreReadFailed(path, exc) from exc

    async def _set(self, path: str, value: Any) -> None:
        try:
            await self._store.set(path, value)
        except Exception as exc:
            logger.error("Write to %s failed: %s", path, exc)
            raise StoreWriteFailed(path, exc) from exc

    async def _remove(self, path: str) -> None:
        try:
            await self._store.remove(path)
        except Exception as exc:
            logger.error("Removal of %s failed: %s", path, exc)
            raise StoreWriteFailed(path, exc) from exc

    async def _get_or_empty(self, path: str) -> Any:
        try:
            return await self._get(path)
        except StoreReadFailed:
            return None

    def _subscribe(self, path: str, decode: Callable[[Any], Any], callback: Callable[[Any], None]) -> Unsubscribe:
        def handler(raw: Any) -> None:
            callback(decode(raw))

        try:
            return self._store.subscribe(path, handler)
        except Exception as exc:
            logger.error("Subscription to %s failed: %s", path, exc)
            callback(decode(None))
            return _noop

    # -- yard units -------------------------------------------------------

    async def get_unit(self, dealer_slug: str, chassis: str, state: UnitState) -> ChassisUnit | None:
        raw = await self._get(unit_path(dealer_slug, state, chassis))
        if raw is None:
            return None
        return records.decode_unit(chassis, raw, dealer_slug, state)

    async def put_unit(self, unit: ChassisUnit) -> None:
        await self._set(unit_path(unit.dealer_slug, unit.state, unit.chassis), records.encode_unit(unit))

    async def delete_unit(self, dealer_slug: str, chassis: str, state: UnitState) -> None:
        await self._remove(unit_path(dealer_slug, state, chassis))

    def _decode_units(self, dealer_slug: str, state: UnitState) -> Callable[[Any], list[ChassisUnit]]:
        def decode(raw: Any) -> list[ChassisUnit]:
            units = (records.decode_unit(key, value, dealer_slug, state) for key, value in records.iter_children(raw))
            return sorted((unit for unit in units if unit is not None), key=lambda unit: unit.chassis)

        return decode

    async def list_units(self, dealer_slug: str, state: UnitState) -> list[ChassisUnit]:
        raw = await self._get_or_empty(unit_path(dealer_slug, state))
        return self._decode_units(dealer_slug, state)(raw)

    def subscribe_units(
        self, dealer_slug: str, state: UnitState, callback: Callable[[list[ChassisUnit]], None]
    ) -> Unsubscribe:
        return self._subscribe(unit_path(dealer_slug, state), self._decode_units(dealer_slug, state), callback)

    # -- in transit -------------------------------------------------------

    async def _in_transit_keys(self, chassis: str) -> list[tuple[str, Any]]:
        """Stored keys whose record decodes to ``chassis``; the feed does not normalize key casing."""
        raw = await self._get(_path(IN_TRANSIT_ROOT, chassis))
        if raw is not None:
            return [(chassis, raw)]
        matches = []
        for key, value in records.iter_children(await self._get(IN_TRANSIT_ROOT)):
            record = records.decode_in_transit(key, value)
            if record is not None and record.chassis == chassis:
                matches.append((key, value))
        return matches

    async def get_in_transit(self, chassis: str) -> InTransitRecord | None:
        matches = await self._in_transit_keys(chassis)
        if not matches:
            return None
        key, raw = matches[0]
        return records.decode_in_transit(key, raw)

    async def put_in_transit(self, record: InTransitRecord) -> None:
        await self._set(_path(IN_TRANSIT_ROOT, record.chassis), records.encode_in_transit(record))

    async def delete_in_transit(self, chassis: str) -> None:
        keys = [key for key, _ in await self._in_transit_keys(chassis)]
        for key in keys or [chassis]:
            await self._remove(_path(IN_TRANSIT_ROOT, key))

    @staticmethod
    def _decode_in_transit(raw: Any) -> list[InTransitRecord]:
        items = (records.decode_in_transit(key, value) for key, value in records.iter_children(raw))
        return [item for item in items if item is not None]

    async def list_in_transit(self, dealer_slug: str | None = None) -> list[InTransitRecord]:
        items = self._decode_in_transit(await self._get_or_empty(IN_TRANSIT_ROOT))
        if dealer_slug is None:
            return items
        return [item for item in items if slugify(item.dealer) == dealer_slug]

    def subscribe_in_transit(self, callback: Callable[[list[InTransitRecord]], None]) -> Unsubscribe:
        return self._subscribe(IN_TRANSIT_ROOT, self._decode_in_transit, callback)

    # -- handovers --------------------------------------------------------

    async def get_handover(self, dealer_slug: str, chassis: str) -> HandoverRecord | None:
        raw = await self._get(_path(HANDOVER_ROOT, dealer_slug, chassis))
        return None if raw is None else records.decode_handover(chassis, raw, dealer_slug)

    async def put_handover(self, record: HandoverRecord) -> None:
        await self._set(_path(HANDOVER_ROOT, record.dealer_slug, record.chassis), records.encode_handover(record))

    def _decode_handovers(self, dealer_slug: str) -> Callable[[Any], list[HandoverRecord]]:
        def decode(raw: Any) -> list[HandoverRecord]:
            items = (records.decode_handover(key, value, dealer_slug) for key, value in records.iter_children(raw))
            return [item for item in items if item is not None]

        return decode

    async def list_handovers(self, dealer_slug: str) -> list[HandoverRecord]:
        raw = await self._get_or_empty(_path(HANDOVER_ROOT, dealer_slug))
        return self._decode_handovers(dealer_slug)(raw)

    def subscribe_handovers(self, dealer_slug: str, callback: Callable[[list[HandoverRecord]], None]) -> Unsubscribe:
        return self._subscribe(_path(HANDOVER_ROOT, dealer_slug), self._decode_handovers(dealer_slug), callback)

    # -- reconciliation reports -------------------------------------------

    async def get_report(self, dealer_slug: str, chassis: str) -> ReconciliationReport | None:
        raw = await self._get(_path(REPORT_ROOT, dealer_slug, chassis))
        return None if raw is None else records.decode_report(chassis, raw, dealer_slug)

    async def set_report_fields(self, dealer_slug: str, chassis: str, fields: Mapping[str, Any]) -> None:
        """Write individual report fields so concurrent reason and note updates never overwrite each other.

        If any field write fails the report is put back the way it was read
        before the first write, then the failure is re-raised.
        """
        report_path = _path(REPORT_ROOT, dealer_slug, chassis)
        previous = await self._get(report_path)
        try:
            for name, value in fields.items():
                path = _path(report_path, name)
                if value is None:
                    await self._remove(path)
                else:
                    await self._set(path, value)
        except StoreWriteFailed:
            try:
                if previous is None:
                    await self._remove(report_path)
                else:
                    await self._set(report_path, previous)
            except StoreWriteFailed:
                logger.exception("Restoring report %s failed", report_path)
            raise

    async def delete_report(self, dealer_slug: str, chassis: str) -> None:
        await self._remove(_path(REPORT_ROOT, dealer_slug, chassis))

    def _decode_reports(self, dealer_slug: str) -> Callable[[Any], list[ReconciliationReport]]:
        def decode(raw: Any) -> list[ReconciliationReport]:
            items = (records.decode_report(key, value, dealer_slug) for key, value in records.iter_children(raw))
            return sorted((item for item in items if item is not None), key=lambda item: item.chassis)

        return decode

    async def list_reports(self, dealer_slug: str) -> list[ReconciliationReport]:
        raw = await self._get_or_empty(_path(REPORT_ROOT, dealer_slug))
        return self._decode_reports(dealer_slug)(raw)

    def subscribe_reports(
        self, dealer_slug: str, callback: Callable[[list[ReconciliationReport]], None]
    ) -> Unsubscribe:
        return self._subscribe(_path(REPORT_ROOT, dealer_slug), self._decode_reports(dealer_slug), callback)

    # -- dispatch intents -------------------------------------------------

    async def put_intent(self, intent: DispatchIntent) -> None:
        await self._set(_path(INTENT_ROOT, intent.dealer_slug, intent.chassis), records.encode_intent(intent))

    async def delete_intent(self, dealer_slug: str, chassis: str) -> None:
        await self._remove(_path(INTENT_ROOT, dealer_slug, chassis))

    async def list_intents(self, dealer_slug: str | None = None) -> list[DispatchIntent]:
        if dealer_slug is None:
            raw_all = await self._get(INTENT_ROOT)
            dealers = [key for key, _ in records.iter_children(raw_all)]
        else:
            dealers = [dealer_slug]
        intents: list[DispatchIntent] = []
        for dealer in dealers:
            raw = await self._get(_path(INTENT_ROOT, dealer))
            for key, value in records.iter_children(raw):
                intent = records.decode_intent(key, value, dealer)
                if intent is not None:
                    intents.append(intent)
        return intents

    # -- configuration ----------------------------------------------------

    async def get_tier_config(self) -> TierConfig:
        return records.decode_tier_config(await self._get_or_empty(TIER_CONFIG_PATH))

    async def put_tier_config(self, config: TierConfig) -> None:
        await self._set(TIER_CONFIG_PATH, records.encode_tier_config(config))

    def subscribe_tier_config(self, callback: Callable[[TierConfig], None]) -> Unsubscribe:
        return self._subscribe(TIER_CONFIG_PATH, records.decode_tier_config, callback)

    async def get_dealer_config(self, dealer_slug: str) -> Mapping[str, Any]:
        raw = await self._get_or_empty(_path(DEALER_CONFIG_ROOT, dealer_slug))
        return raw if isinstance(raw, Mapping) else {}


class StoreScheduleFeed:
    """Schedule feed read from the ``schedule`` node of the document store.

    By default finished rows and rows without a chassis or customer are
    dropped, the same defaults the dashboard applies.
    """

    def __init__(
        self,
        store: DocumentStore,
        include_no_chassis: bool = False,
        include_no_customer: bool = False,
        include_finished: bool = False,
    ) -> None:
        self._store = store
        self._include_no_chassis = include_no_chassis
        self._include_no_customer = include_no_customer
        self._include_finished = include_finished

    def _filter(self, raw: Any) -> list[ScheduleEntry]:
        entries: list[ScheduleEntry] = []
        for _, value in records.iter_children(raw):
            entry = records.decode_schedule_entry(value)
            if entry is None:
                continue
            if not self._include_finished and entry.regent_production.lower() in {"finished", "finish"}:
                continue
            if not self._include_no_chassis and not entry.chassis:
                continue
            if not self._include_no_customer and not entry.customer:
                continue
            entries.append(entry)
        return entries

    def subscribe(self, callback: Callable[[Sequence[ScheduleEntry]], None]) -> Unsubscribe:
        try:
            return self._store.subscribe(SCHEDULE_PATH, lambda raw: callback(self._filter(raw)))
        except Exception as exc:
            logger.error("Subscription to %s failed: %s", SCHEDULE_PATH, exc)
            callback([])
            return _noop

    async def entries(self) -> list[ScheduleEntry]:
        try:
            raw = await self._store.get(SCHEDULE_PATH)
        except Exception as exc:
            logger.error("Read of %s failed: %s", SCHEDULE_PATH, exc)
            return []
        return self._filter(raw)


class StoreYardCapacitySource:
    """Reads each dealer's baseline yard volume from ``dealerConfigs/{dealer}``."""

    def __init__(self, adapter: LifecycleStoreAdapter) -> None:
        self._adapter = adapter

    async def min_volume(self, dealer_slug: str) -> int:
        return records.decode_min_volume(await self._adapter.get_dealer_config(dealer_slug))
