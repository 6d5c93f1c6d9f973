"""Spatial subpackage — coordinate-order conversion and PostGIS helpers."""

from app.spatial.coordinates import (
    Coordinate,
    ProximityCircle,
    from_location,
    to_display,
    to_location,
    to_storage,
)

__all__ = [
    "Coordinate",
    "ProximityCircle",
    "from_location",
    "to_display",
    "to_location",
    "to_storage",
]
