"""
Fare Calculator  (Strategy Pattern)
===================================

Two pricing strategies, selected by vehicle category:

* **Auto**  -- ``fare = per_km_rate(trip_type) x distance``
* **Tiered** (car / bus) -- the rate comes from the smallest distance
  tier boundary that is >= the trip distance, out of
  50 / 100 / 150 / 200 / 250 / 300 km.  Anything beyond 300 km uses the
  300 km rate.  ``fare = tier_rate(trip_type) x distance``

Fares are rounded half-up to whole rupees.  A rate that is missing or
not positive counts as "not configured" and raises
``PricingUnavailable``; there is no fallback to another trip type or
tier.

Complexity: O(1) per calculation.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from .enums import TripType, VehicleCategory
from .errors import PricingUnavailable

TIER_BOUNDARIES_KM: tuple[int, ...] = (50, 100, 150, 200, 250, 300)


def tier_key(boundary_km: int) -> str:
    """Storage key for a tier, e.g. ``50 -> "50km"``."""
    return f"{boundary_km}km"


def select_tier(distance_km: float) -> int:
    """Smallest tier boundary >= *distance_km*, else the top tier."""
    for boundary in TIER_BOUNDARIES_KM:
        if distance_km <= boundary:
            return boundary
    return TIER_BOUNDARIES_KM[-1]


def round_fare(amount: float) -> int:
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ── Value object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class PricingProfile:
    """A vehicle's pricing, frozen at the moment a fare is computed."""

    category: VehicleCategory
    auto_rates: Mapping[TripType, float] = field(default_factory=dict)
    tier_rates: Mapping[TripType, Mapping[int, float]] = field(default_factory=dict)

    @classmethod
    def from_storage(
        cls,
        category: VehicleCategory | str,
        auto_rate_one_way: Optional[float],
        auto_rate_return: Optional[float],
        distance_pricing: Optional[Mapping[str, Mapping[str, float]]],
    ) -> "PricingProfile":
        """Build from the flat columns / JSON tier table on a vehicle row."""
        auto_rates = {}
        if auto_rate_one_way is not None:
            auto_rates[TripType.ONE_WAY] = auto_rate_one_way
        if auto_rate_return is not None:
            auto_rates[TripType.RETURN] = auto_rate_return

        tier_rates: dict[TripType, dict[int, float]] = {}
        for trip_key, table in (distance_pricing or {}).items():
            trip_type = TripType(trip_key)
            tier_rates[trip_type] = {
                boundary: table[tier_key(boundary)]
                for boundary in TIER_BOUNDARIES_KM
                if table.get(tier_key(boundary)) is not None
            }
        return cls(VehicleCategory(category), auto_rates, tier_rates)


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def rate_for(
        self, profile: PricingProfile, distance_km: float, trip_type: TripType
    ) -> float: ...

    def calculate(
        self, profile: PricingProfile, distance_km: float, trip_type: TripType
    ) -> int:
        rate = self.rate_for(profile, distance_km, trip_type)
        return round_fare(rate * distance_km)


class AutoRateStrategy(FareStrategy):
    def rate_for(
        self, profile: PricingProfile, distance_km: float, trip_type: TripType
    ) -> float:
        rate = profile.auto_rates.get(trip_type)
        if rate is None or rate <= 0:
            raise PricingUnavailable(
                f"No auto rate configured for {trip_type.value} trips"
            )
        return rate


class DistanceTierStrategy(FareStrategy):
    def rate_for(
        self, profile: PricingProfile, distance_km: float, trip_type: TripType
    ) -> float:
        boundary = select_tier(distance_km)
        rate = profile.tier_rates.get(trip_type, {}).get(boundary)
        if rate is None or rate <= 0:
            raise PricingUnavailable(
                f"No {tier_key(boundary)} rate configured for {trip_type.value} trips"
            )
        return rate


_STRATEGIES: dict[VehicleCategory, FareStrategy] = {
    VehicleCategory.AUTO: AutoRateStrategy(),
    VehicleCategory.CAR: DistanceTierStrategy(),
    VehicleCategory.BUS: DistanceTierStrategy(),
}


def compute_fare(
    profile: PricingProfile, distance_km: float, trip_type: TripType
) -> int:
    """Deterministic fare in whole currency units.

    Negative or non-finite distances are rejected with ``ValueError``;
    a zero distance prices at zero through the 50 km tier.
    """
    if not math.isfinite(distance_km) or distance_km < 0:
        raise ValueError(f"distance must be a finite, non-negative number: {distance_km}")
    strategy = _STRATEGIES[profile.category]
    return strategy.calculate(profile, distance_km, TripType(trip_type))


def needs_recompute(
    planned_km: float, actual_km: Optional[float], threshold: float
) -> bool:
    """True when the actual distance deviates materially from the plan."""
    if actual_km is None or planned_km <= 0:
        return False
    return abs(actual_km - planned_km) / planned_km > threshold
