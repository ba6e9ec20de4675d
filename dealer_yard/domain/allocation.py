"""Tier allocation: how many units of each product tier a yard should hold.

The calculator is a pure function of an immutable :class:`TierConfig`
snapshot and the yard's baseline volume. Overrides in the snapshot replace
the built-in defaults tier by tier; the result is never renormalised, so a
share total above one is reported as a warning rather than corrected.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from dealer_yard.config import SETTINGS

from .errors import InvalidTierConfig
from .models import TierConfig, TierTarget
from .results import TierAllocation, TierRequirement

logger = logging.getLogger(__name__)

_TARGET_FIELDS = ("label", "role", "minimum", "ceiling")


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class TierAllocationCalculator:
    def __init__(
        self,
        default_share_targets: Mapping[str, float] | None = None,
        default_tier_targets: Mapping[str, TierTarget] | None = None,
    ) -> None:
        if default_share_targets is None:
            default_share_targets = SETTINGS.default_share_targets
        if default_tier_targets is None:
            default_tier_targets = SETTINGS.default_tier_targets
        self._default_shares = dict(default_share_targets)
        self._default_targets = dict(default_tier_targets)

    def effective_shares(self, config: TierConfig) -> dict[str, float]:
        shares = dict(self._default_shares)
        shares.update(config.share_targets)
        for tier, share in shares.items():
            _check_share(tier, share)
        return shares

    def effective_targets(self, config: TierConfig) -> dict[str, TierTarget]:
        targets = dict(self._default_targets)
        for tier, override in config.tier_targets.items():
            values = {key: override[key] for key in _TARGET_FIELDS if key in override}
            if "minimum" in values:
                values["minimum"] = _check_bound(tier, "minimum", values["minimum"])
            if values.get("ceiling") is not None:
                values["ceiling"] = _check_bound(tier, "ceiling", values["ceiling"])
            base = targets.get(tier) or TierTarget(label=tier)
            targets[tier] = replace(base, **values)
        return targets

    def allocate(
        self,
        config: TierConfig,
        baseline_volume: int,
        on_hand: Mapping[str, int] | None = None,
    ) -> TierAllocation:
        if baseline_volume < 0:
            raise InvalidTierConfig("*", f"baseline volume must be >= 0, got {baseline_volume}")

        shares = self.effective_shares(config)
        targets = self.effective_targets(config)
        tiers = list(shares) + [tier for tier in targets if tier not in shares]
        volume = Decimal(str(baseline_volume))

        requirements: list[TierRequirement] = []
        warnings: list[str] = []
        for tier in tiers:
            share = float(shares.get(tier, 0.0))
            target = targets.get(tier) or TierTarget(label=tier)
            requirement = TierRequirement(
                tier=tier,
                label=target.label,
                role=target.role,
                share=share,
                target_count=round_half_up(volume * Decimal(str(share))),
                minimum=int(target.minimum),
                ceiling=None if target.ceiling is None else int(target.ceiling),
                on_hand=None if on_hand is None else int(on_hand.get(tier, 0)),
            )
            if requirement.target_below_minimum:
                warnings.append(
                    f"Tier {tier} target {requirement.target_count} is below its minimum {requirement.minimum}"
                )
            if requirement.target_above_ceiling:
                warnings.append(
                    f"Tier {tier} target {requirement.target_count} exceeds its ceiling {requirement.ceiling}"
                )
            requirements.append(requirement)

        share_total = float(sum(Decimal(str(value)) for value in shares.values()))
        allocation = TierAllocation(
            baseline_volume=baseline_volume,
            share_total=share_total,
            requirements=tuple(requirements),
            warnings=tuple(warnings),
        )
        if allocation.over_allocated:
            message = f"Tier shares add up to {share_total:.0%} of yard capacity"
            logger.warning(message)
            allocation = replace(allocation, warnings=(message, *allocation.warnings))
        return allocation


def _check_bound(tier: str, name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise InvalidTierConfig(tier, f"{name} must be a number, got {value!r}")
    if value < 0:
        raise InvalidTierConfig(tier, f"{name} must be >= 0, got {value}")
    return int(math.floor(value))


def _check_share(tier: str, share: object) -> None:
    if isinstance(share, bool) or not isinstance(share, (int, float)):
        raise InvalidTierConfig(tier, f"share must be a number, got {share!r}")
    if math.isnan(share) or share < 0 or share > 1:
        raise InvalidTierConfig(tier, f"share must be within [0, 1], got {share}")
