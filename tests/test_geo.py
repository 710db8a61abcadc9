"""
Tests for the geospatial helpers.
"""

import pytest

from safetrack.utils.geo import bearing_to_compass, haversine


class TestHaversine:

    def test_zero_distance(self):
        assert haversine((48.1, 11.5), (48.1, 11.5)) == 0.0

    def test_munich_nuremberg(self):
        assert 140_000 < haversine((48.137, 11.575), (49.452, 11.077)) < 160_000

    def test_symmetric(self):
        a, b = (48.10, 11.50), (48.12, 11.60)
        assert haversine(a, b) == pytest.approx(haversine(b, a))

    def test_antipodal_is_finite(self):
        assert haversine((0.0, 0.0), (0.0, 180.0)) == pytest.approx(20_015_086.8, rel=1e-6)


class TestCompass:

    @pytest.mark.parametrize("bearing, label", [
        (0.0, "N"),
        (22.4, "N"),
        (22.5, "NE"),
        (90.0, "E"),
        (135.0, "SE"),
        (180.0, "S"),
        (225.0, "SW"),
        (270.0, "W"),
        (315.0, "NW"),
        (337.5, "N"),
        (359.9, "N"),
    ])
    def test_sectors(self, bearing, label):
        assert bearing_to_compass(bearing) == label
