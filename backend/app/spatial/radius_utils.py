"""
radius_utils.py — Great-circle geometry for incident geofences.

Contents:
    - haversine_m: great-circle distance between two points, in meters
    - is_inside_zone: point-in-circle test for an incident zone
    - METERS_PER_DEGREE_LAT: scale for the latitude-band filter done in SQL

All distances are in **meters**. Coordinates are in **decimal degrees**.

Haversine
=========
For points (φ₁, λ₁) and (φ₂, λ₂):

    h = sin²((φ₂ − φ₁) / 2) + cos φ₁ · cos φ₂ · sin²((λ₂ − λ₁) / 2)
    d = 2R · atan2(√h, √(1 − h))

Where φ is latitude and λ longitude in radians and R is Earth's mean
radius. Incident radii are meters over the Earth's surface, so planar
distance on raw degrees is never acceptable: one degree of longitude is
111 km at the equator and 56 km at 60°N.

Latitude-band bound
===================
For any two points, the great-circle distance is at least the meridian
arc between their latitudes:

    d(P₁, P₂) ≥ R · |φ₂ − φ₁|

So ``|Δlat_deg| · METERS_PER_DEGREE_LAT > radius`` proves a point is
outside a zone without any trigonometry. That test is plain arithmetic
and runs inside SQL on every backend.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_M: float = 6_371_008.8  # IUGG mean radius

# Length of one degree of latitude along a meridian on the sphere
METERS_PER_DEGREE_LAT: float = EARTH_RADIUS_M * math.pi / 180.0

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


# ---------------------------------------------------------------------------
# Core data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coordinate:
    """A geographic point in decimal degrees."""
    latitude: float
    longitude: float

    @property
    def lat_rad(self) -> float:
        return math.radians(self.latitude)

    @property
    def lon_rad(self) -> float:
        return math.radians(self.longitude)


def latitude_in_range(latitude: float) -> bool:
    # NaN fails both comparisons
    return LATITUDE_RANGE[0] <= latitude <= LATITUDE_RANGE[1]


def longitude_in_range(longitude: float) -> bool:
    return LONGITUDE_RANGE[0] <= longitude <= LONGITUDE_RANGE[1]


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def haversine_m(point1: Coordinate, point2: Coordinate) -> float:
    """
    Great-circle distance between two points, in meters.

    Examples
    --------
    >>> haversine_m(Coordinate(0, 0), Coordinate(0, 0))
    0.0
    >>> round(haversine_m(Coordinate(0, 0), Coordinate(1, 0)))
    111195
    """
    d_lat = point2.lat_rad - point1.lat_rad
    d_lon = point2.lon_rad - point1.lon_rad

    a = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(point1.lat_rad)
        * math.cos(point2.lat_rad)
        * math.sin(d_lon / 2.0) ** 2
    )
    # Guard against a drifting past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))

    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def is_inside_zone(
    point: Coordinate,
    center: Coordinate,
    radius_m: float,
) -> tuple[bool, float]:
    """
    Check whether ``point`` lies within the circle (center, radius_m).

    The boundary is inclusive.

    Returns
    -------
    (inside, distance_m)
    """
    dist = haversine_m(center, point)
    return (dist <= radius_m, dist)


def offset_north(center: Coordinate, distance_m: float) -> Coordinate:
    """
    Point ``distance_m`` due north (negative: south) of ``center``.

    A pure meridian move, so haversine_m(center, result) == |distance_m|.
    """
    lat = center.latitude + math.degrees(distance_m / EARTH_RADIUS_M)
    return Coordinate(lat, center.longitude)
