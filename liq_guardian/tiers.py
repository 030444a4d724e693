"""Tier Classifier - map a health percentage to a discrete risk tier."""

import math
from typing import Optional, Sequence, Tuple

NO_ALERT = 0


class TierTable:
    """Ordered (exclusive upper bound, tier) pairs plus the tier for health <= 0.

    Higher tier = more severe = lower health. Health at or above the
    largest bound maps to tier 0 (no alert).
    """

    def __init__(self, thresholds: Sequence[Tuple[float, int]], floor_tier: int):
        ordered = sorted(thresholds, key=lambda pair: pair[0])
        if not ordered:
            raise ValueError("TierTable needs at least one threshold")

        previous = floor_tier
        for bound, tier in ordered:
            if bound <= 0:
                raise ValueError(f"Threshold bound must be positive, got {bound}")
            if not NO_ALERT < tier < previous:
                raise ValueError(
                    f"Tiers must decrease as bounds increase (tier {tier} at < {bound})"
                )
            previous = tier

        self.thresholds: Tuple[Tuple[float, int], ...] = tuple(ordered)
        self.floor_tier = floor_tier

    @property
    def max_tier(self) -> int:
        return self.floor_tier

    def tier_for(self, health: Optional[float]) -> int:
        if health is None or not math.isfinite(health):
            return NO_ALERT
        if health <= 0:
            return self.floor_tier
        for bound, tier in self.thresholds:
            if health < bound:
                return tier
        return NO_ALERT

    def threshold_text(self, tier: int) -> str:
        if tier == self.floor_tier:
            return "= 0.00%"
        for bound, t in self.thresholds:
            if t == tier:
                return f"< {bound:.2f}%"
        return ""

    def __repr__(self) -> str:
        return f"TierTable(thresholds={self.thresholds!r}, floor_tier={self.floor_tier})"


# 1: <50%, 2: <20%, 3: <5%, 4: =0%
FOUR_TIER = TierTable([(50.0, 1), (20.0, 2), (5.0, 3)], floor_tier=4)

# 1: <10%, 2: <5%, 3: =0%
THREE_TIER = TierTable([(10.0, 1), (5.0, 2)], floor_tier=3)

TIER_SCHEMES = {
    "four_tier": FOUR_TIER,
    "three_tier": THREE_TIER,
}
