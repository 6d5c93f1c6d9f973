"""Client subpackage — map-side state and the HTTP gateway it talks to."""

from app.client.api import GatewayError, LensApiClient
from app.client.map_state import (
    LocationUnavailable,
    LoggingNotifier,
    MapMarker,
    MapState,
    MarkerDraft,
)
from app.client.routing import RoutingOptions, RoutingOverlay

__all__ = [
    "GatewayError",
    "LensApiClient",
    "LocationUnavailable",
    "LoggingNotifier",
    "MapMarker",
    "MapState",
    "MarkerDraft",
    "RoutingOptions",
    "RoutingOverlay",
]
