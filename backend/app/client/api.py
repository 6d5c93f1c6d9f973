"""
HTTP gateway used by the map client.

Every call returns the decoded ``{status, message, data}`` envelope, even
for 4xx/5xx responses, so callers can tell a "not success" acknowledgment
apart from a call that never completed.  The latter is raised as
``GatewayError``.

No local timeout is imposed; failure is detected only through the call's
own error or a non-success payload.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The request could not be completed or its reply was unreadable."""


class LensApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url or get_settings().api_base_url
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=None)

    async def __aenter__(self) -> "LensApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise GatewayError(f"{method} {path} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError(
                f"{method} {path} returned a non-JSON body (HTTP {response.status_code})"
            ) from exc
        if not isinstance(body, dict):
            raise GatewayError(f"{method} {path} returned an unexpected payload")

        if response.is_error:
            logger.debug("%s %s -> %d %s", method, path, response.status_code, body.get("message"))
        return body

    # ── Lenses ────────────────────────────────────────────────

    async def get_lens(self, lens_id: uuid.UUID | str) -> dict[str, Any]:
        return await self._request("GET", f"/lenses/{lens_id}")

    async def list_lenses(self, **params: Any) -> dict[str, Any]:
        """Query-string keys follow the wire names (``creatorId``, ``clientLat``...)."""
        clean = {k: v for k, v in params.items() if v is not None}
        return await self._request("GET", "/lenses", params=clean)

    # ── Markers ───────────────────────────────────────────────

    async def create_marker(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/markers", json=payload)

    async def update_marker(
        self, marker_id: uuid.UUID | str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request("PATCH", f"/markers/{marker_id}", json=payload)

    async def delete_marker(self, marker_id: uuid.UUID | str) -> dict[str, Any]:
        return await self._request("DELETE", f"/markers/{marker_id}")
