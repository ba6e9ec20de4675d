import asyncio
from datetime import date, datetime, timezone

import pytest

from dealer_yard.domain.errors import StoreReadFailed
from dealer_yard.domain.models import ChassisUnit, ReconciliationReason, TierConfig, UnitSource, UnitState
from dealer_yard.infrastructure.repositories.store_repositories import (
    LifecycleStoreAdapter,
    StoreScheduleFeed,
    StoreYardCapacitySource,
)
from dealer_yard.infrastructure.storage.memory_store import InMemoryDocumentStore


class BrokenStore(InMemoryDocumentStore):
    """Memory store that is unreachable for reads and subscriptions."""

    async def get(self, path):
        raise TimeoutError("unreachable")

    def subscribe(self, path, callback):
        raise PermissionError("denied")


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(
        {
            "yardstock": {
                "geelong": {
                    "SRT1": {"Chassis": "srt1", "Model": "SRT22", "Customer": "Geelong Stock", "received_at": 1735689600000},
                    "SRC2": {"chassisNumber": "SRC2", "model": "SRC19", "customer": "Ann Lee", "createdAt": "2025-01-10T00:00:00Z"},
                    "BAD": "not a record",
                    "NOPE": 42,
                }
            },
            "pgirecord": {
                "NGC3": {"Dealer": "Geelong", "Model": "NGC16", "PGI Date": "05/01/2025"},
                "NGC4": {"dealer": "Frankston", "model": "NGC16", "pgiDate": "2025-01-06T10:00:00Z"},
            },
            "handover": {
                "geelong": {
                    "OLD1": {"dealerName": "Geelong", "createdAt": "2024-12-01T00:00:00Z"},
                    "OLD2": {"dealerName": "Geelong"},
                }
            },
            "stockRectification": {
                "geelong": {"SRT1": {"reason": "sold", "custom_reason": "ignored", "note": "x"}},
            },
            "tierConfig": {"shareTargets": {"A1": "0.5", "A2": "lots"}, "tierTargets": {"B1": {"ceiling": 2.7}}},
            "dealerConfigs": {"geelong": {"yardCapacity": "40"}},
            "schedule": [
                {"Chassis": "srt1", "Customer": "Ann Lee", "Dealer": "Geelong", "Regent Production": "In Progress"},
                {"Chassis": "srt9", "Customer": "Bo", "Regent Production": "Finished"},
                {"Chassis": "", "Customer": "Cy"},
                {"Chassis": "srt7", "Customer": ""},
            ],
        }
    )


@pytest.fixture
def adapter(store) -> LifecycleStoreAdapter:
    return LifecycleStoreAdapter(store)


def test_units_decode_field_name_variants_and_skip_malformed(adapter):
    units = asyncio.run(adapter.list_units("geelong", UnitState.YARD_STOCK))

    assert [unit.chassis for unit in units] == ["SRC2", "SRT1"]
    srt1 = units[1]
    assert srt1.model == "SRT22"
    assert srt1.customer == "Geelong Stock"
    assert srt1.received_at == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert srt1.source is UnitSource.PGI
    assert units[0].received_at == datetime(2025, 1, 10, tzinfo=timezone.utc)


def test_in_transit_is_filtered_by_dealer(adapter):
    records = asyncio.run(adapter.list_in_transit("geelong"))

    assert [record.chassis for record in records] == ["NGC3"]
    assert records[0].pgi_date == date(2025, 1, 5)
    assert len(asyncio.run(adapter.list_in_transit())) == 2


def test_handover_without_timestamp_is_skipped(adapter):
    handovers = asyncio.run(adapter.list_handovers("geelong"))

    assert [record.chassis for record in handovers] == ["OLD1"]
    assert handovers[0].dealer_slug == "geelong"


def test_report_decodes_case_insensitive_reason(adapter):
    report = asyncio.run(adapter.get_report("geelong", "SRT1"))

    assert report.reason is ReconciliationReason.SOLD
    assert report.note == "x"


def test_tier_config_coerces_numbers_and_drops_garbage(adapter):
    config = asyncio.run(adapter.get_tier_config())

    assert dict(config.share_targets) == {"A1": 0.5}
    assert dict(config.tier_targets["B1"]) == {"ceiling": 2}


def test_tier_config_round_trip(adapter):
    asyncio.run(adapter.put_tier_config(TierConfig(share_targets={"A1+": 0.25}, tier_targets={"A1": {"minimum": 4}})))

    config = asyncio.run(adapter.get_tier_config())

    assert dict(config.share_targets) == {"A1+": 0.25}
    assert config.tier_targets["A1"]["minimum"] == 4


def test_capacity_source_reads_dealer_config(adapter):
    source = StoreYardCapacitySource(adapter)

    assert asyncio.run(source.min_volume("geelong")) == 40
    assert asyncio.run(source.min_volume("frankston")) == 0


def test_schedule_feed_applies_default_filters(store):
    feed = StoreScheduleFeed(store)

    entries = asyncio.run(feed.entries())

    assert [entry.chassis for entry in entries] == ["SRT1"]
    everything = asyncio.run(
        StoreScheduleFeed(store, include_no_chassis=True, include_no_customer=True, include_finished=True).entries()
    )
    assert len(everything) == 4


def test_subscription_delivers_until_unsubscribed(adapter):
    seen: list[list[str]] = []
    unsubscribe = adapter.subscribe_units(
        "geelong", UnitState.YARD_PENDING, lambda units: seen.append([unit.chassis for unit in units])
    )

    asyncio.run(adapter.put_unit(ChassisUnit(chassis="P1", dealer_slug="geelong", state=UnitState.YARD_PENDING)))
    unsubscribe()
    asyncio.run(adapter.put_unit(ChassisUnit(chassis="P2", dealer_slug="geelong", state=UnitState.YARD_PENDING)))

    assert seen == [[], ["P1"]]


def test_unreachable_store_lists_empty_and_fails_point_reads():
    adapter = LifecycleStoreAdapter(BrokenStore())

    assert asyncio.run(adapter.list_units("geelong", UnitState.YARD_STOCK)) == []
    with pytest.raises(StoreReadFailed):
        asyncio.run(adapter.get_unit("geelong", "SRT1", UnitState.YARD_STOCK))

    seen = []
    unsubscribe = adapter.subscribe_reports("geelong", seen.append)
    unsubscribe()
    assert seen == [[]]
