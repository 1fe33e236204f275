"""Unit tests for the fare calculator (auto per-km and distance-tier strategies)."""

import math

import pytest

from hailing.domain.enums import TripType, VehicleCategory
from hailing.domain.errors import PricingUnavailable
from hailing.domain.fare import (
    PricingProfile,
    compute_fare,
    needs_recompute,
    round_fare,
    select_tier,
)

FULL_TIERS = {
    "one-way": {"50km": 20, "100km": 18, "150km": 17, "200km": 16, "250km": 15, "300km": 14},
    "return": {"50km": 18, "100km": 16},
}


def auto_profile(one_way=15, return_rate=None):
    return PricingProfile.from_storage(VehicleCategory.AUTO, one_way, return_rate, None)


def tier_profile(tiers=None, category=VehicleCategory.CAR):
    return PricingProfile.from_storage(category, None, None, tiers or FULL_TIERS)


class TestAutoRate:
    def test_per_km_rate_times_distance(self):
        assert compute_fare(auto_profile(15), 10, TripType.ONE_WAY) == 150

    def test_return_rate_used_for_return_trips(self):
        profile = auto_profile(15, 12)
        assert compute_fare(profile, 10, TripType.RETURN) == 120

    def test_missing_trip_type_rate_is_unavailable(self):
        with pytest.raises(PricingUnavailable):
            compute_fare(auto_profile(15), 10, TripType.RETURN)

    def test_zero_rate_counts_as_unconfigured(self):
        with pytest.raises(PricingUnavailable):
            compute_fare(auto_profile(0), 10, TripType.ONE_WAY)

    def test_fractional_distance_rounds_to_whole_units(self):
        # 15 * 2.5 = 37.5 -> 38
        assert compute_fare(auto_profile(15), 2.5, TripType.ONE_WAY) == 38


class TestDistanceTiers:
    def test_eighty_km_uses_hundred_km_tier(self):
        profile = tier_profile({"one-way": {"50km": 20, "100km": 18}})
        assert compute_fare(profile, 80, TripType.ONE_WAY) == 1440

    @pytest.mark.parametrize(
        "distance, boundary",
        [(0, 50), (50, 50), (50.1, 100), (100, 100), (299.9, 300), (300, 300), (720, 300)],
    )
    def test_smallest_boundary_at_or_above_distance(self, distance, boundary):
        assert select_tier(distance) == boundary

    def test_beyond_top_tier_uses_top_rate(self):
        assert compute_fare(tier_profile(), 400, TripType.ONE_WAY) == 14 * 400

    def test_bus_prices_like_car(self):
        bus = tier_profile(category=VehicleCategory.BUS)
        car = tier_profile()
        assert compute_fare(bus, 120, TripType.ONE_WAY) == compute_fare(car, 120, TripType.ONE_WAY)

    def test_missing_tier_is_unavailable_without_fallback(self):
        # 120 km needs the 150km return rate, which is not configured.
        with pytest.raises(PricingUnavailable, match="150km"):
            compute_fare(tier_profile(), 120, TripType.RETURN)

    def test_missing_trip_type_table_is_unavailable(self):
        profile = tier_profile({"one-way": {"50km": 20}})
        with pytest.raises(PricingUnavailable):
            compute_fare(profile, 10, TripType.RETURN)


class TestFareProperties:
    def test_deterministic(self):
        profile = tier_profile()
        fares = {compute_fare(profile, 137.4, TripType.ONE_WAY) for _ in range(20)}
        assert len(fares) == 1

    def test_result_is_non_negative_int(self):
        fare = compute_fare(tier_profile(), 42.42, TripType.ONE_WAY)
        assert isinstance(fare, int)
        assert fare >= 0

    def test_zero_distance_prices_at_zero(self):
        assert compute_fare(auto_profile(15), 0, TripType.ONE_WAY) == 0

    @pytest.mark.parametrize("distance", [-1, math.inf, math.nan])
    def test_rejects_negative_or_non_finite_distance(self, distance):
        with pytest.raises(ValueError):
            compute_fare(auto_profile(15), distance, TripType.ONE_WAY)

    def test_rounding_is_half_up(self):
        assert round_fare(0.5) == 1
        assert round_fare(2.5) == 3
        assert round_fare(2.49) == 2


class TestRecomputeThreshold:
    def test_small_deviation_keeps_snapshot(self):
        assert not needs_recompute(100, 109, 0.10)

    def test_large_deviation_recomputes(self):
        assert needs_recompute(100, 111, 0.10)
        assert needs_recompute(100, 80, 0.10)

    def test_missing_actual_distance_keeps_snapshot(self):
        assert not needs_recompute(100, None, 0.10)
