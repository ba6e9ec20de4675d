import asyncio

import pytest

from dealer_yard.application.use_cases import TierPreviewUseCase
from dealer_yard.domain.allocation import TierAllocationCalculator
from dealer_yard.domain.errors import InvalidTierConfig
from dealer_yard.domain.models import TierConfig
from dealer_yard.infrastructure.repositories.store_repositories import LifecycleStoreAdapter, StoreYardCapacitySource
from dealer_yard.infrastructure.storage.memory_store import InMemoryDocumentStore


@pytest.fixture
def calculator() -> TierAllocationCalculator:
    return TierAllocationCalculator()


def test_default_shares_for_fifty_units(calculator):
    config = TierConfig(share_targets={"A1": 0.4, "A1+": 0.3, "A2": 0.2, "B1": 0.1})

    allocation = calculator.allocate(config, 50)

    assert allocation.target_counts() == {"A1": 20, "A1+": 15, "A2": 10, "B1": 5}
    assert not allocation.over_allocated


def test_override_replaces_only_its_tier(calculator):
    config = TierConfig(share_targets={"A2": 0.1})

    allocation = calculator.allocate(config, 30)

    assert allocation.target_counts() == {"A1": 12, "A1+": 9, "A2": 3, "B1": 3}


def test_rounds_half_up(calculator):
    config = TierConfig(share_targets={"A1": 0.25, "A1+": 0.25, "A2": 0.25, "B1": 0.25})

    allocation = calculator.allocate(config, 10)

    assert allocation.requirement("A1").target_count == 3


def test_share_total_above_one_is_a_warning_not_an_error(calculator):
    config = TierConfig(share_targets={"A1": 0.9})

    allocation = calculator.allocate(config, 10)

    assert allocation.over_allocated
    assert allocation.target_counts()["A1"] == 9
    assert any("add up to" in warning for warning in allocation.warnings)


def test_tier_target_overrides_merge_onto_defaults(calculator):
    config = TierConfig(tier_targets={"B1": {"ceiling": 4}, "C9": {"minimum": 2}})

    allocation = calculator.allocate(config, 20)

    niche = allocation.requirement("B1")
    assert niche.label == "Niche"
    assert niche.minimum == 0
    assert niche.ceiling == 4
    extra = allocation.requirement("C9")
    assert extra.share == 0.0
    assert extra.target_count == 0
    assert extra.target_below_minimum


def test_min_and_ceiling_violations_are_flagged(calculator):
    allocation = calculator.allocate(TierConfig(), 5)

    core = allocation.requirement("A1")
    niche = allocation.requirement("B1")
    assert core.target_count == 2
    assert core.target_below_minimum
    assert niche.target_count == 1
    assert not niche.target_above_ceiling

    bigger = calculator.allocate(TierConfig(), 50)
    assert bigger.requirement("B1").target_above_ceiling
    assert any("exceeds its ceiling" in warning for warning in bigger.warnings)


def test_on_hand_shortfall_and_overflow(calculator):
    allocation = calculator.allocate(TierConfig(), 50, on_hand={"A1": 12, "B1": 7})

    assert allocation.requirement("A1").shortfall == 8
    assert allocation.requirement("B1").overflow == 2
    assert allocation.requirement("B1").above_ceiling
    assert allocation.requirement("A2").on_hand == 0
    assert allocation.requirement("A2").below_minimum


@pytest.mark.parametrize("share", [-0.1, 1.5, float("nan")])
def test_share_outside_unit_interval_is_rejected(calculator, share):
    with pytest.raises(InvalidTierConfig):
        calculator.allocate(TierConfig(share_targets={"A1": share}), 10)


def test_negative_volume_is_rejected(calculator):
    with pytest.raises(InvalidTierConfig):
        calculator.allocate(TierConfig(), -1)


def test_config_snapshot_is_immutable():
    config = TierConfig(share_targets={"A1": 0.5})
    with pytest.raises(TypeError):
        config.share_targets["A1"] = 0.1  # type: ignore[index]


def test_negative_minimum_override_is_rejected(calculator):
    with pytest.raises(InvalidTierConfig):
        calculator.allocate(TierConfig(tier_targets={"A2": {"minimum": -1}}), 10)


def test_preview_reads_stored_config_and_capacity():
    store = InMemoryDocumentStore(
        {
            "tierConfig": {"shareTargets": {"A1": 0.5, "B1": 0.0}},
            "dealerConfigs": {"geelong": {"minVolume": 12}},
        }
    )
    adapter = LifecycleStoreAdapter(store)
    preview = TierPreviewUseCase(adapter, StoreYardCapacitySource(adapter))

    allocation = asyncio.run(preview.execute("Geelong", on_hand={"A1": 2}))

    assert allocation.baseline_volume == 12
    assert allocation.target_counts() == {"A1": 6, "A1+": 4, "A2": 2, "B1": 0}
    assert allocation.requirement("A1").shortfall == 4
    assert asyncio.run(preview.execute("geelong", baseline_volume=0)).target_counts()["A1"] == 0


@pytest.mark.parametrize("bounds", [{"minimum": "3"}, {"ceiling": "two"}, {"minimum": float("nan")}, {"ceiling": True}])
def test_non_numeric_tier_bounds_are_rejected(calculator, bounds):
    with pytest.raises(InvalidTierConfig):
        calculator.allocate(TierConfig(tier_targets={"A2": bounds}), 10)


def test_fractional_bounds_are_floored(calculator):
    allocation = calculator.allocate(TierConfig(tier_targets={"B1": {"minimum": 1.9, "ceiling": 2.5}}), 10)

    assert allocation.requirement("B1").minimum == 1
    assert allocation.requirement("B1").ceiling == 2
