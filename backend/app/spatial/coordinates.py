"""
Coordinate Order Conversion
===========================
Bridges the two orderings a point can travel in:

1. **Storage order** ``[lng, lat]`` — what PostGIS and the GIST index
   expect (WKT ``POINT(x y)`` with x = longitude).
2. **Display order** ``[lat, lng]`` — what the map renders and what every
   human-facing payload carries.

The conversion is applied exactly once per boundary crossing:

    Gateway  ──from_location──►  storage pair  ──to_display──►  response
    request  ──(already storage order)──►  to_location  ──►  Gateway
    map UI   ──to_storage──►  request payload

No range validation happens here; values are expected to have passed
request validation already.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from geoalchemy2.elements import WKBElement
from geoalchemy2.shape import from_shape, to_shape
from shapely.geometry import Point

WGS84_SRID = 4326

Coordinate = tuple[float, float]


def to_display(point: Sequence[float]) -> Coordinate:
    """``[lng, lat]`` → ``(lat, lng)``."""
    return (point[1], point[0])


def to_storage(point: Sequence[float]) -> Coordinate:
    """``[lat, lng]`` → ``(lng, lat)``."""
    return (point[1], point[0])


def from_location(location: WKBElement) -> Coordinate:
    """Read a PostGIS point column into a storage-order pair."""
    shape = to_shape(location)
    return (shape.x, shape.y)


def to_location(point: Sequence[float]) -> WKBElement:
    """Build a PostGIS point from a storage-order ``[lng, lat]`` pair."""
    return from_shape(Point(point[0], point[1]), srid=WGS84_SRID)


# ── Proximity circle (query center + radius) ─────────────────────
@dataclass(frozen=True, slots=True)
class ProximityCircle:
    """A query center in storage order plus a radius in kilometers."""

    lng: float
    lat: float
    radius_km: float

    @property
    def radius_m(self) -> float:
        """Radius in meters, the native unit of geography distances."""
        return self.radius_km * 1000.0

    @property
    def center(self) -> Coordinate:
        return (self.lng, self.lat)

    def to_shapely(self) -> Point:
        return Point(self.lng, self.lat)

    def to_wkt(self) -> str:
        """EWKT for ``ST_GeogFromText``."""
        return f"SRID={WGS84_SRID};{self.to_shapely().wkt}"
