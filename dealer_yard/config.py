"""Central configuration for the dealer yard package."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path

from dealer_yard.domain.models import TierTarget

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
DEFAULT_STORE_PATH = DATA_DIR / "yard_store.json"

DEFAULT_TIER_TARGETS = {
    "A1": TierTarget(label="Core", role="Never run dry; keep multiple couple options visible.", minimum=3),
    "A1+": TierTarget(label="Flagship", role="Prioritise showcase quality; always have a demo.", minimum=1),
    "A2": TierTarget(label="Supporting", role="Fill structural gaps like family bunk and hybrid.", minimum=1),
    "B1": TierTarget(label="Niche", role="Tightly control volume; refresh quickly.", minimum=0, ceiling=1),
}

DEFAULT_SHARE_TARGETS = {"A1": 0.4, "A1+": 0.3, "A2": 0.2, "B1": 0.1}

# (label, min days, max days); max of None means open-ended
YARD_AGE_BUCKETS = (
    ("0-90", 0, 90),
    ("91-180", 91, 180),
    ("180+", 181, None),
)

KPI_RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}


@dataclass(slots=True, frozen=True)
class Settings:
    timezone: tzinfo
    store_path: Path
    default_tier_targets: dict[str, TierTarget]
    default_share_targets: dict[str, float]
    yard_age_buckets: tuple[tuple[str, int, int | None], ...]
    kpi_range_days: dict[str, int]
    trend_weeks: int
    require_reason_on_add: bool


SETTINGS = Settings(
    timezone=timezone.utc,
    store_path=Path(os.environ.get("DEALER_YARD_STORE", DEFAULT_STORE_PATH)),
    default_tier_targets=dict(DEFAULT_TIER_TARGETS),
    default_share_targets=dict(DEFAULT_SHARE_TARGETS),
    yard_age_buckets=YARD_AGE_BUCKETS,
    kpi_range_days=dict(KPI_RANGE_DAYS),
    trend_weeks=12,
    require_reason_on_add=True,
)
