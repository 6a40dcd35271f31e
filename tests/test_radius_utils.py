"""
test_radius_utils.py — Great-circle geometry used by the proximity query.

Run with:
    pytest tests/test_radius_utils.py -v
"""

from __future__ import annotations

import math

import pytest

from backend.app.spatial.radius_utils import (
    EARTH_RADIUS_M,
    METERS_PER_DEGREE_LAT,
    Coordinate,
    haversine_m,
    is_inside_zone,
    latitude_in_range,
    longitude_in_range,
    offset_north,
)

MOSCOW = Coordinate(55.7558, 37.6173)


class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_m(MOSCOW, MOSCOW) == 0.0

    def test_one_degree_of_latitude(self):
        d = haversine_m(Coordinate(0, 0), Coordinate(1, 0))
        assert d == pytest.approx(METERS_PER_DEGREE_LAT, rel=1e-9)

    def test_symmetric(self):
        other = Coordinate(59.9343, 30.3351)
        assert haversine_m(MOSCOW, other) == pytest.approx(haversine_m(other, MOSCOW))

    def test_longitude_shrinks_with_latitude(self):
        at_equator = haversine_m(Coordinate(0, 0), Coordinate(0, 1))
        at_60n = haversine_m(Coordinate(60, 0), Coordinate(60, 1))
        assert at_60n == pytest.approx(at_equator / 2, rel=1e-3)

    def test_antipodal_points(self):
        d = haversine_m(Coordinate(0, 0), Coordinate(0, 180))
        assert d == pytest.approx(math.pi * EARTH_RADIUS_M)

    def test_across_antimeridian(self):
        d = haversine_m(Coordinate(0, 179.9995), Coordinate(0, -179.9995))
        assert d < 200


class TestIsInsideZone:

    def test_center_is_inside(self):
        inside, dist = is_inside_zone(MOSCOW, MOSCOW, 100)
        assert inside
        assert dist == 0.0

    def test_just_inside_radius(self):
        inside, dist = is_inside_zone(offset_north(MOSCOW, 99.9), MOSCOW, 100)
        assert inside
        assert dist == pytest.approx(99.9, abs=1e-6)

    def test_just_outside_radius(self):
        inside, _ = is_inside_zone(offset_north(MOSCOW, 100.1), MOSCOW, 100)
        assert not inside

    def test_boundary_is_inclusive(self):
        point = offset_north(MOSCOW, 250.0)
        _, dist = is_inside_zone(point, MOSCOW, 1)
        inside, _ = is_inside_zone(point, MOSCOW, dist)
        assert inside

    def test_far_point_outside(self):
        inside, dist = is_inside_zone(Coordinate(60.0, 30.0), MOSCOW, 100)
        assert not inside
        assert dist > 500_000


class TestRanges:

    @pytest.mark.parametrize("lat", [-90.0, 0.0, 90.0])
    def test_latitude_valid(self, lat):
        assert latitude_in_range(lat)

    @pytest.mark.parametrize("lat", [-90.0001, 90.5, float("nan")])
    def test_latitude_invalid(self, lat):
        assert not latitude_in_range(lat)

    @pytest.mark.parametrize("lon", [-180.0, 180.0])
    def test_longitude_bounds(self, lon):
        assert longitude_in_range(lon)

    def test_longitude_out_of_range(self):
        assert not longitude_in_range(180.01)


class TestOffsetNorth:

    def test_southward_offset(self):
        point = offset_north(MOSCOW, -500)
        assert point.latitude < MOSCOW.latitude
        assert haversine_m(MOSCOW, point) == pytest.approx(500, abs=1e-6)
