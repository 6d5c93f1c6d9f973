"""
Routing overlay binding.

``RoutingOverlay`` owns at most one route control on one map.  It
re-binds only when the map object or the waypoint tuple *identity*
changes, and always removes the previous control first.  The control is
also removed on ``unbind()`` / ``close()`` / context-manager exit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from app.spatial.coordinates import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineStyle:
    color: str
    opacity: float
    weight: int
    dash_array: str | None = None
    dash_offset: str | None = None


DEFAULT_LINE_STYLES: tuple[LineStyle, ...] = (
    LineStyle(color="blue", opacity=0.6, weight=4),
    LineStyle(color="white", opacity=0.8, weight=2, dash_array="20,15", dash_offset="0"),
    LineStyle(color="blue", opacity=1.0, weight=2, dash_array="5,15", dash_offset="5"),
)


@dataclass(frozen=True)
class RoutingOptions:
    # Clicking the route never creates markers or waypoints.
    create_markers: bool = False
    add_waypoints: bool = False
    fit_selected_routes: bool = False
    line_styles: tuple[LineStyle, ...] = field(default=DEFAULT_LINE_STYLES)


class RoutingEngine(Protocol):
    def add_control(
        self, map_: Any, waypoints: Sequence[Coordinate], options: RoutingOptions
    ) -> Any: ...

    def remove_control(self, map_: Any, control: Any) -> None: ...


class RoutingOverlay:
    def __init__(self, engine: RoutingEngine, options: RoutingOptions | None = None) -> None:
        self.engine = engine
        self.options = options or RoutingOptions()
        self._map: Any = None
        self._waypoints: Sequence[Coordinate] | None = None
        self._control: Any = None

    @property
    def bound(self) -> bool:
        return self._control is not None

    def bind(self, map_: Any, waypoints: Sequence[Coordinate]) -> bool:
        """Bind a route for ``waypoints``.  Returns True if a new control was added."""
        if map_ is None:
            return False
        if self.bound and map_ is self._map and waypoints is self._waypoints:
            return False

        self.unbind()
        self._control = self.engine.add_control(map_, list(waypoints), self.options)
        self._map = map_
        self._waypoints = waypoints
        logger.debug("Routing control bound with %d waypoints", len(waypoints))
        return True

    def unbind(self) -> None:
        if self._control is None:
            return
        control, map_ = self._control, self._map
        self._control = None
        self._map = None
        self._waypoints = None
        self.engine.remove_control(map_, control)

    close = unbind

    def __enter__(self) -> "RoutingOverlay":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unbind()
