"""
Tests for app.client.map_state — the client-side marker state container.
"""
from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.client.api import GatewayError
from app.client.map_state import LocationUnavailable, MapMarker, MapState, MarkerDraft
from app.client.routing import RoutingOverlay
from app.config import get_settings

LENS_ID = "11111111-2222-3333-4444-555555555555"


def _marker_payload(marker_id: str = "m1", lat: float = 12.77, lng: float = 75.15, **extra) -> dict:
    payload = {
        "id": marker_id,
        "lens_id": LENS_ID,
        "location": [lat, lng],
        "title": "Temple",
        "category": "Culture",
        "description": "",
        "image": None,
    }
    payload.update(extra)
    return payload


def _lens_payload(*markers: dict) -> dict:
    return {"id": LENS_ID, "name": "Sunset Point", "markers": list(markers)}


def _ok(data=None) -> dict:
    return {"status": "success", "message": "", "data": data}


def _fail(message: str = "nope") -> dict:
    return {"status": "error", "message": message, "data": None}


@pytest.fixture()
def gateway():
    gw = MagicMock()
    gw.create_marker = AsyncMock()
    gw.update_marker = AsyncMock()
    gw.delete_marker = AsyncMock()
    gw.get_lens = AsyncMock()
    return gw


@pytest.fixture()
def notifier():
    return MagicMock()


@pytest.fixture()
def state(gateway, notifier):
    st = MapState(gateway=gateway, notifier=notifier)
    st.set_lens(_lens_payload(_marker_payload("m1"), _marker_payload("m2", 12.78, 75.16)))
    return st


# ═══════════════════════════════════════════════════════════════════
# Loading
# ═══════════════════════════════════════════════════════════════════
class TestSetLens:
    def test_markers_kept_in_display_order(self, state):
        assert state.marker_count == 2
        assert state.markers[0].location == (12.77, 75.15)

    def test_waypoints_follow_markers(self, state):
        assert state.waypoints == ((12.77, 75.15), (12.78, 75.16))

    def test_default_center_and_bounds(self, gateway):
        st = MapState(gateway=gateway)
        assert st.center == get_settings().map_default_center
        assert st.max_bounds == get_settings().map_max_bounds

    def test_no_lens(self, gateway):
        st = MapState(gateway=gateway)
        st.set_lens(None)
        assert st.markers == []


class TestLoadLens:
    @pytest.mark.asyncio
    async def test_load_replaces_markers(self, state, gateway):
        gateway.get_lens.return_value = _ok(_lens_payload(_marker_payload("m9", 1.0, 2.0)))

        assert await state.load_lens(LENS_ID) is True
        assert [m.id for m in state.markers] == ["m9"]
        assert state.waypoints == ((1.0, 2.0),)

    @pytest.mark.asyncio
    async def test_failed_load_keeps_current_lens(self, state, gateway, notifier):
        gateway.get_lens.side_effect = GatewayError("down")

        assert await state.load_lens(LENS_ID) is False
        assert state.marker_count == 2
        notifier.error.assert_called_once_with("Could not load lens")


# ═══════════════════════════════════════════════════════════════════
# add_marker
# ═══════════════════════════════════════════════════════════════════
class TestAddMarker:
    @pytest.mark.asyncio
    async def test_missing_title_makes_no_call(self, state, gateway, notifier):
        state.begin_marker(12.76, 75.12)
        state.draft.category = "Food"

        assert await state.add_marker() is None
        gateway.create_marker.assert_not_awaited()
        notifier.error.assert_called_once_with("You must provide a title and category")
        assert state.draft.category == "Food"
        assert state.creating is True
        assert state.marker_count == 2

    @pytest.mark.asyncio
    async def test_whitespace_category_rejected(self, state, gateway):
        state.begin_marker(12.76, 75.12)
        state.draft.title = "Cafe"
        state.draft.category = "   "

        assert await state.add_marker() is None
        gateway.create_marker.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_sends_storage_order_and_appends(self, state, gateway, notifier):
        state.begin_marker(12.76, 75.12)
        state.draft.title = "Cafe"
        state.draft.category = "Food"
        gateway.create_marker.return_value = _ok(_marker_payload("m3", 12.76, 75.12, title="Cafe"))

        marker = await state.add_marker()

        payload = gateway.create_marker.call_args[0][0]
        assert payload["lensId"] == LENS_ID
        assert payload["location"]["coordinates"] == [75.12, 12.76]
        assert marker.id == "m3"
        assert marker.location == (12.76, 75.12)
        assert state.marker_count == 3
        assert state.draft == MarkerDraft()
        assert state.creating is False
        notifier.success.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejected_add_keeps_draft(self, state, gateway, notifier):
        state.begin_marker(12.76, 75.12)
        state.draft.title = "Cafe"
        state.draft.category = "Food"
        gateway.create_marker.return_value = _fail("Lens not found")

        assert await state.add_marker() is None
        assert state.marker_count == 2
        assert state.draft.title == "Cafe"
        notifier.error.assert_called_once_with("Lens not found")

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_draft(self, state, gateway, notifier):
        state.begin_marker(12.76, 75.12)
        state.draft.title = "Cafe"
        state.draft.category = "Food"
        gateway.create_marker.side_effect = GatewayError("down")

        assert await state.add_marker() is None
        assert state.marker_count == 2
        assert state.draft.title == "Cafe"
        notifier.error.assert_called_once()


# ═══════════════════════════════════════════════════════════════════
# remove_marker
# ═══════════════════════════════════════════════════════════════════
class TestRemoveMarker:
    @pytest.mark.asyncio
    async def test_confirmed_remove_turns_routing_off(self, state, gateway):
        state.set_routing_mode(True)
        gateway.delete_marker.return_value = _ok()

        assert await state.remove_marker("m1") is True
        assert [m.id for m in state.markers] == ["m2"]
        assert state.routing_mode is False

    @pytest.mark.asyncio
    async def test_failed_remove_leaves_list(self, state, gateway, notifier):
        state.set_routing_mode(True)
        gateway.delete_marker.return_value = _fail()

        assert await state.remove_marker("m1") is False
        assert state.marker_count == 2
        assert state.routing_mode is True
        notifier.error.assert_called_once_with("Error while deleting marker")

    @pytest.mark.asyncio
    async def test_gateway_error_leaves_list(self, state, gateway, notifier):
        gateway.delete_marker.side_effect = GatewayError("timeout")

        assert await state.remove_marker("m1") is False
        assert state.marker_count == 2
        notifier.error.assert_called_once_with("Error while deleting marker")


# ═══════════════════════════════════════════════════════════════════
# reposition_marker
# ═══════════════════════════════════════════════════════════════════
class TestRepositionMarker:
    @pytest.mark.asyncio
    async def test_reposition_sends_location_only(self, state, gateway):
        gateway.update_marker.return_value = _ok(_marker_payload("m1", 12.79, 75.2))

        assert await state.reposition_marker("m1", (12.79, 75.2)) is True
        marker_id, payload = gateway.update_marker.call_args[0]
        assert marker_id == "m1"
        assert payload == {"location": {"type": "Point", "coordinates": [75.2, 12.79]}}
        assert state.markers[0].location == (12.79, 75.2)

    @pytest.mark.asyncio
    async def test_failed_reposition_notifies(self, state, gateway, notifier):
        gateway.update_marker.return_value = _fail()

        assert await state.reposition_marker("m1", (12.79, 75.2)) is False
        assert state.markers[0].location == (12.77, 75.15)
        notifier.error.assert_called_once_with("Could not update marker")

    @pytest.mark.asyncio
    async def test_stale_confirmation_is_discarded(self, state, gateway):
        release = asyncio.Event()

        async def update_marker(marker_id, payload):
            lng, lat = payload["location"]["coordinates"]
            if (lat, lng) == (1.0, 2.0):
                await release.wait()
            return _ok(_marker_payload(marker_id, lat, lng))

        gateway.update_marker.side_effect = update_marker

        first = asyncio.create_task(state.reposition_marker("m1", (1.0, 2.0)))
        await asyncio.sleep(0)
        assert await state.reposition_marker("m1", (3.0, 4.0)) is True

        release.set()
        assert await first is False
        assert state.markers[0].location == (3.0, 4.0)

    @pytest.mark.asyncio
    async def test_move_confirmed_after_removal_leaves_no_trace(self, state, gateway):
        release = asyncio.Event()

        async def update_marker(marker_id, payload):
            await release.wait()
            lng, lat = payload["location"]["coordinates"]
            return _ok(_marker_payload(marker_id, lat, lng))

        gateway.update_marker.side_effect = update_marker
        gateway.delete_marker.return_value = _ok()

        move = asyncio.create_task(state.reposition_marker("m1", (1.0, 2.0)))
        await asyncio.sleep(0)
        assert await state.remove_marker("m1") is True

        release.set()
        assert await move is False
        assert [m.id for m in state.markers] == ["m2"]
        assert "m1" not in state._applied_seq

    @pytest.mark.asyncio
    async def test_reposition_changes_waypoints_identity(self, state, gateway):
        gateway.update_marker.return_value = _ok(_marker_payload("m2", 12.8, 75.3))
        before = state.waypoints

        await state.reposition_marker("m2", (12.8, 75.3))
        assert state.waypoints is not before
        assert state.waypoints[1] == (12.8, 75.3)


# ═══════════════════════════════════════════════════════════════════
# center_on_locate
# ═══════════════════════════════════════════════════════════════════
class TestCenterOnLocate:
    @pytest.mark.asyncio
    async def test_located(self, gateway):
        st = MapState(gateway=gateway, locate=AsyncMock(return_value=(12.76, 75.13)))
        assert await st.center_on_locate() is True
        assert st.center == (12.76, 75.13)

    @pytest.mark.asyncio
    async def test_denied_keeps_default_center(self, gateway):
        st = MapState(
            gateway=gateway,
            locate=AsyncMock(side_effect=LocationUnavailable("denied")),
        )
        before = st.center
        assert await st.center_on_locate() is False
        assert st.center == before

    @pytest.mark.asyncio
    async def test_no_locator(self, gateway):
        st = MapState(gateway=gateway)
        assert await st.center_on_locate() is False

    @pytest.mark.asyncio
    async def test_start_runs_in_background(self, gateway):
        st = MapState(gateway=gateway, locate=AsyncMock(return_value=(5.0, 6.0)))
        task = st.start()
        assert await task is True
        assert st.center == (5.0, 6.0)

    @pytest.mark.asyncio
    async def test_start_logs_unexpected_locate_error(self, gateway, caplog):
        st = MapState(gateway=gateway, locate=AsyncMock(return_value=(5.0,)))
        before = st.center

        with caplog.at_level(logging.ERROR, logger="app.client.map_state"):
            task = st.start()
            await asyncio.wait([task])
            await asyncio.sleep(0)

        assert isinstance(task.exception(), ValueError)
        assert st.center == before
        assert "Locating the device failed" in caplog.text


# ═══════════════════════════════════════════════════════════════════
# Routing binding
# ═══════════════════════════════════════════════════════════════════
class TestBindRouting:
    def test_bind_only_in_routing_mode(self, state):
        overlay = MagicMock(spec=RoutingOverlay)
        map_ = object()

        state.bind_routing(overlay, map_)
        overlay.unbind.assert_called_once()
        overlay.bind.assert_not_called()

        state.set_routing_mode(True)
        state.bind_routing(overlay, map_)
        overlay.bind.assert_called_once_with(map_, state.waypoints)


def test_map_marker_from_payload():
    marker = MapMarker.from_payload(_marker_payload(description=None))
    assert marker.location == (12.77, 75.15)
    assert marker.description == ""
