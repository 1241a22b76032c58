"""Tests for quake_insight.geo module."""

from quake_insight.geo import degree_distance, degrees_to_km, haversine_km


class TestHaversine:
    def test_same_point(self):
        assert haversine_km(0.0, 0.0, 0.0, 0.0) == 0.0

    def test_known_distance(self):
        # London (51.5074, -0.1278) to Paris (48.8566, 2.3522) ≈ 343 km
        dist = haversine_km(51.5074, -0.1278, 48.8566, 2.3522)
        assert 340 < dist < 346

    def test_antipodal(self):
        # North pole to south pole ≈ half circumference ≈ 20015 km
        dist = haversine_km(90.0, 0.0, -90.0, 0.0)
        assert 20010 < dist < 20020

    def test_symmetric(self):
        d1 = haversine_km(10.0, 20.0, 30.0, 40.0)
        d2 = haversine_km(30.0, 40.0, 10.0, 20.0)
        assert abs(d1 - d2) < 1e-9


class TestDegreeDistance:
    def test_pythagorean(self):
        assert degree_distance(0.0, 0.0, 3.0, 4.0) == 5.0

    def test_flat_earth_conversion(self):
        """One degree is taken as 111 km regardless of latitude."""
        assert degrees_to_km(1.0) == 111.0
        assert degrees_to_km(degree_distance(60.0, 10.0, 60.0, 12.0)) == 222.0
