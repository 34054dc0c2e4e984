"""Tests for deterministic city profiles."""

import random
import string

import pytest

from data.city_profile import (
    ALL_METRICS,
    TRAFFIC_RECOMMENDATIONS,
    build_city_profile,
    derive_key,
    derive_metrics,
    display_name,
    fallback_coordinates,
    hourly_traffic_pattern,
    metric_value,
    traffic_outlook,
)


def _random_names(count: int, seed: int = 7):
    rng = random.Random(seed)
    alphabet = string.ascii_letters + " -'" + "éüñ京東دকা"
    for _ in range(count):
        yield "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 24)))


class TestLocationKey:

    def test_sums_code_points_of_city_part(self):
        assert derive_key("Dhaka") == 473
        assert derive_key("Dhaka, Bangladesh") == 473
        assert derive_key("  Dhaka  , BD") == 473

    def test_empty_and_missing_names_map_to_zero(self):
        assert derive_key("") == 0
        assert derive_key(None) == 0
        assert derive_key(", Nowhere") == 0

    def test_case_is_preserved(self):
        assert derive_key("dhaka") != derive_key("Dhaka")

    def test_display_name(self):
        assert display_name("  Paris , France") == "Paris"
        assert display_name("Tokyo") == "Tokyo"
        assert display_name(None) == ""


class TestDerivedMetrics:

    def test_known_values_for_dhaka(self):
        assert metric_value("Dhaka", "green_coverage") == 38
        assert metric_value("Dhaka", "congestion_rate") == 78
        assert metric_value("Dhaka", "average_speed") == 38

    def test_same_name_gives_same_profile(self):
        assert build_city_profile("Chattogram, Bangladesh") == build_city_profile("Chattogram, Bangladesh")

    def test_country_suffix_does_not_change_metrics(self):
        assert derive_metrics("Dhaka") == derive_metrics("Dhaka, Bangladesh")

    def test_every_metric_in_range_for_random_names(self):
        for name in _random_names(1000):
            for metric in derive_metrics(name):
                assert metric.minimum <= metric.value <= metric.maximum, (name, metric)

    def test_profile_covers_every_metric(self):
        profile = build_city_profile("Sylhet")
        assert [m.name for m in profile.metrics] == [spec.name for spec in ALL_METRICS]
        assert profile.metric("park_accessibility").value == metric_value("Sylhet", "park_accessibility")

    def test_unknown_metric_raises_key_error(self):
        profile = build_city_profile("Sylhet")
        with pytest.raises(KeyError):
            profile.metric("not_a_metric")


class TestTrafficPattern:

    def test_pattern_has_24_hours_in_range(self):
        for name in _random_names(200, seed=11):
            pattern = hourly_traffic_pattern(name)
            assert [p.hour for p in pattern] == list(range(24))
            assert all(5 <= p.value <= 100 for p in pattern)

    def test_rush_hour_busier_than_night(self):
        pattern = {p.hour: p.value for p in hourly_traffic_pattern("Khulna")}
        assert pattern[8] > pattern[3]
        assert pattern[18] > pattern[23]

    def test_outlook_picks_four_known_recommendations(self):
        outlook = traffic_outlook("Rajshahi")
        assert len(outlook.recommendations) == 4
        assert all(r in TRAFFIC_RECOMMENDATIONS for r in outlook.recommendations)
        assert 30 <= outlook.congestion_rate <= 85

    def test_peak_windows_depend_on_key_parity(self):
        outlook = traffic_outlook("Dhaka")  # 473 is odd
        assert outlook.peak_hours.morning == "8:30 - 10:00"
        assert outlook.peak_hours.evening == "18:00 - 20:00"


class TestCoordinates:

    def test_known_city_matches_by_substring(self):
        coords = fallback_coordinates("Greater Dhaka, Bangladesh")
        assert coords.source == "known"
        assert (coords.lat, coords.lon) == (23.8103, 90.4125)

    def test_unknown_city_gets_derived_point(self):
        # "Ab" -> 163: odd, so latitude is mirrored
        coords = fallback_coordinates("Ab")
        assert coords.source == "derived"
        assert coords.lat == -73.0
        assert coords.lon == 146.0

    def test_derived_points_are_valid(self):
        for name in _random_names(300, seed=3):
            coords = fallback_coordinates(name)
            assert -90 <= coords.lat <= 90
            assert -180 <= coords.lon < 180
