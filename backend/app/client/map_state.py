"""
Map State Synchronizer
======================
Client-side owner of the active Lens's markers.

``MapState`` is an explicit state container: views receive the instance
and mutate it only through ``load_lens``, ``add_marker``,
``remove_marker``, ``reposition_marker`` and ``center_on_locate``.

Consistency rules
-----------------
- The marker list only changes after the gateway confirms with
  ``status == "success"``.  A raised ``GatewayError`` and a non-success
  acknowledgment lead to the same outcome: list untouched, error notice.
- The creation draft is cleared only on a confirmed add.
- Any confirmed removal switches routing mode off.
- Repositions carry a per-marker sequence number.  A confirmation older
  than the newest one already applied for that marker is discarded, so
  out-of-order completions cannot roll a marker back to a stale spot.
  The map widget's dragged position is not reverted on failure.

Coordinates
-----------
Everything held here is in display order ``(lat, lng)``, exactly as the
service returns it.  ``to_storage`` is applied once, when building a
write payload.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Protocol

from app.client.api import GatewayError
from app.client.routing import RoutingOverlay
from app.config import get_settings
from app.spatial.coordinates import Coordinate, to_storage

logger = logging.getLogger(__name__)


class LocationUnavailable(Exception):
    """The device position was denied or could not be determined."""


class MarkerGateway(Protocol):
    async def get_lens(self, lens_id: str) -> dict[str, Any]: ...
    async def create_marker(self, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def update_marker(self, marker_id: str, payload: dict[str, Any]) -> dict[str, Any]: ...
    async def delete_marker(self, marker_id: str) -> dict[str, Any]: ...


class Notifier(Protocol):
    def success(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Transient notifications routed to the log."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.warning(message)


Locator = Callable[[], Awaitable[Coordinate]]


# ── Markers and the creation draft ───────────────────────────────
@dataclass(frozen=True)
class MapMarker:
    id: str
    lens_id: str
    location: Coordinate
    title: str
    category: str
    description: str = ""
    image: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "MapMarker":
        lat, lng = data["location"]
        return cls(
            id=str(data["id"]),
            lens_id=str(data["lens_id"]),
            location=(float(lat), float(lng)),
            title=data["title"],
            category=data["category"],
            description=data.get("description") or "",
            image=data.get("image"),
        )


@dataclass
class MarkerDraft:
    lat: float | None = None
    lng: float | None = None
    title: str = ""
    description: str = ""
    category: str = ""
    image: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.title.strip() and self.category.strip())

    def to_payload(self, lens_id: str) -> dict[str, Any]:
        return {
            "lensId": lens_id,
            "location": {
                "type": "Point",
                "coordinates": list(to_storage((self.lat, self.lng))),
            },
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "image": self.image,
        }


def _is_success(envelope: dict[str, Any]) -> bool:
    return envelope.get("status") == "success"


# ── State container ──────────────────────────────────────────────
@dataclass
class MapState:
    gateway: MarkerGateway
    notifier: Notifier = field(default_factory=LoggingNotifier)
    locate: Locator | None = None

    lens: dict[str, Any] | None = None
    draft: MarkerDraft = field(default_factory=MarkerDraft)
    creating: bool = False
    routing_mode: bool = False
    center: Coordinate = field(default_factory=lambda: get_settings().map_default_center)
    max_bounds: tuple[Coordinate, Coordinate] = field(
        default_factory=lambda: get_settings().map_max_bounds
    )

    _markers: list[MapMarker] = field(default_factory=list, init=False, repr=False)
    _waypoints: tuple[Coordinate, ...] = field(default=(), init=False, repr=False)
    _issued_seq: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _applied_seq: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    # ── Read side ─────────────────────────────────────────────

    @property
    def markers(self) -> list[MapMarker]:
        return list(self._markers)

    @property
    def marker_count(self) -> int:
        return len(self._markers)

    @property
    def waypoints(self) -> tuple[Coordinate, ...]:
        """Marker positions; a new tuple object only when the set changes."""
        return self._waypoints

    def _set_markers(self, markers: list[MapMarker]) -> None:
        self._markers = markers
        self._waypoints = tuple(m.location for m in markers)

    def set_lens(self, lens: dict[str, Any] | None) -> None:
        """Adopt a Lens payload (display order) as the active Lens."""
        self.lens = lens
        self._issued_seq.clear()
        self._applied_seq.clear()
        markers = (lens or {}).get("markers") or []
        self._set_markers([MapMarker.from_payload(m) for m in markers])

    async def load_lens(self, lens_id: str) -> bool:
        """Fetch a Lens through the gateway and make it the active one."""
        try:
            envelope = await self.gateway.get_lens(lens_id)
        except GatewayError as exc:
            logger.warning("Lens load failed for %s: %s", lens_id, exc)
            envelope = None
        if envelope is None or not _is_success(envelope):
            self.notifier.error("Could not load lens")
            return False
        self.set_lens(envelope["data"])
        return True

    def set_routing_mode(self, enabled: bool) -> None:
        self.routing_mode = enabled

    def bind_routing(self, overlay: RoutingOverlay, map_: Any) -> None:
        """Keep ``overlay`` in step with routing mode and the marker set."""
        if self.routing_mode:
            overlay.bind(map_, self.waypoints)
        else:
            overlay.unbind()

    # ── Draft ─────────────────────────────────────────────────

    def begin_marker(self, lat: float, lng: float) -> None:
        self.draft = MarkerDraft(lat=lat, lng=lng)
        self.creating = True

    # ── Mutations ─────────────────────────────────────────────

    async def add_marker(self) -> MapMarker | None:
        if not self.draft.is_complete:
            self.notifier.error("You must provide a title and category")
            return None
        if self.lens is None:
            self.notifier.error("Open a lens before adding markers")
            return None
        if self.draft.lat is None or self.draft.lng is None:
            self.notifier.error("Pick a location on the map first")
            return None

        payload = self.draft.to_payload(str(self.lens["id"]))
        try:
            envelope = await self.gateway.create_marker(payload)
        except GatewayError as exc:
            logger.warning("Marker create failed: %s", exc)
            self.notifier.error("Could not add marker")
            return None
        if not _is_success(envelope):
            self.notifier.error(envelope.get("message") or "Could not add marker")
            return None

        marker = MapMarker.from_payload(envelope["data"])
        self._set_markers([*self._markers, marker])
        self.draft = MarkerDraft()
        self.creating = False
        self.notifier.success("Marker added")
        return marker

    async def remove_marker(self, marker_id: str) -> bool:
        try:
            envelope = await self.gateway.delete_marker(marker_id)
        except GatewayError as exc:
            logger.warning("Marker delete failed for %s: %s", marker_id, exc)
            envelope = None
        if envelope is None or not _is_success(envelope):
            self.notifier.error("Error while deleting marker")
            return False

        self._set_markers([m for m in self._markers if m.id != marker_id])
        self._issued_seq.pop(marker_id, None)
        self._applied_seq.pop(marker_id, None)
        self.routing_mode = False
        self.notifier.success("Marker deleted")
        return True

    async def reposition_marker(self, marker_id: str, position: Coordinate) -> bool:
        """
        Persist a drag to ``position`` (display order).

        Returns True when the confirmed position was applied locally.
        """
        seq = self._issued_seq.get(marker_id, 0) + 1
        self._issued_seq[marker_id] = seq

        payload = {
            "location": {"type": "Point", "coordinates": list(to_storage(position))}
        }
        try:
            envelope = await self.gateway.update_marker(marker_id, payload)
        except GatewayError as exc:
            logger.warning("Marker move failed for %s: %s", marker_id, exc)
            envelope = None
        if envelope is None or not _is_success(envelope):
            self.notifier.error("Could not update marker")
            return False

        if seq < self._applied_seq.get(marker_id, 0):
            logger.debug(
                "Discarding stale move #%d for marker %s (already at #%d)",
                seq, marker_id, self._applied_seq[marker_id],
            )
            return False

        if not any(m.id == marker_id for m in self._markers):
            logger.debug("Marker %s was removed before its move was confirmed", marker_id)
            return False

        confirmed = (envelope.get("data") or {}).get("location")
        location = (float(confirmed[0]), float(confirmed[1])) if confirmed else tuple(position)
        updated = [
            replace(m, location=location) if m.id == marker_id else m
            for m in self._markers
        ]
        self._set_markers(updated)
        self._applied_seq[marker_id] = seq
        return True

    async def center_on_locate(self) -> bool:
        """Move the center to the device position if one is available."""
        if self.locate is None:
            return False
        try:
            lat, lng = await self.locate()
        except (LocationUnavailable, PermissionError, TimeoutError, OSError) as exc:
            logger.info("Device location unavailable, keeping default center: %s", exc)
            return False
        self.center = (lat, lng)
        return True

    def start(self) -> asyncio.Task[bool]:
        """Kick off ``center_on_locate`` without waiting for it."""
        task = asyncio.get_running_loop().create_task(self.center_on_locate())
        task.add_done_callback(_log_locate_failure)
        return task


def _log_locate_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Locating the device failed: %s", exc, exc_info=exc)
