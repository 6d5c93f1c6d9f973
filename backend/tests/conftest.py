"""
Shared fixtures for the Lensmap test suite.

This conftest provides:
- Reusable sample data factories that behave like ORM rows
- A helper that builds a bare FastAPI app around a router with the
  database dependency overridden by an ``AsyncMock`` session
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import APIRouter, FastAPI
from httpx import ASGITransport, AsyncClient

from app.errors import register_exception_handlers
from app.spatial.coordinates import to_location

# ---------------------------------------------------------------------------
# Sample data factories
# ---------------------------------------------------------------------------
SAMPLE_USER_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
SAMPLE_LENS_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")
SAMPLE_MARKER_ID = uuid.UUID("66666666-7777-8888-9999-000000000000")
SAMPLE_COMMENT_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")


def make_user_row(
    *,
    id: uuid.UUID | None = None,
    username: str = "ana",
    email: str | None = "ana@example.com",
) -> MagicMock:
    """Return a mock that behaves like a User ORM object."""
    user = MagicMock()
    user.id = id or SAMPLE_USER_ID
    user.username = username
    user.email = email
    user.created_at = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return user


def make_marker_row(
    *,
    id: uuid.UUID | None = None,
    lens_id: uuid.UUID | None = None,
    lng: float = 75.15,
    lat: float = 12.77,
    title: str = "Temple",
    category: str = "Culture",
    description: str = "",
    image: str | None = None,
) -> MagicMock:
    """Return a mock that behaves like a Marker ORM object (stored [lng, lat])."""
    marker = MagicMock()
    marker.id = id or SAMPLE_MARKER_ID
    marker.lens_id = lens_id or SAMPLE_LENS_ID
    marker.location = to_location((lng, lat))
    marker.title = title
    marker.category = category
    marker.description = description
    marker.image = image
    marker.created_at = datetime(2025, 1, 2, tzinfo=timezone.utc)
    return marker


def make_lens_row(
    *,
    id: uuid.UUID | None = None,
    name: str = "Sunset Point",
    description: str = "Best views at dusk",
    lng: float = 75.1,
    lat: float = 12.75,
    tags: list[str] | None = None,
    address: dict | None = None,
    views: int = 0,
    likes: int = 0,
    created_at: datetime | None = None,
    markers: list | None = None,
    creator: MagicMock | None = None,
) -> MagicMock:
    """Return a mock that behaves like a Lens ORM object (stored [lng, lat])."""
    lens = MagicMock()
    lens.id = id or SAMPLE_LENS_ID
    lens.name = name
    lens.description = description
    lens.thumbnail = None
    lens.tags = tags if tags is not None else ["beach"]
    lens.creator = creator if creator is not None else make_user_row()
    lens.creator_id = lens.creator.id
    lens.location = to_location((lng, lat))
    lens.address = address if address is not None else {
        "formatted": "Malpe, Karnataka, India",
        "components": {"country": "India", "state": "Karnataka"},
        "circle_bounds": {},
        "circle_bound_radius": 100,
    }
    lens.markers = markers if markers is not None else []
    lens.views = views
    lens.likes = likes
    lens.created_at = created_at or datetime(2025, 1, 1, tzinfo=timezone.utc)
    return lens


def make_comment_row(
    *,
    id: uuid.UUID | None = None,
    lens_id: uuid.UUID | None = None,
    body: str = "Lovely spot",
) -> MagicMock:
    comment = MagicMock()
    comment.id = id or SAMPLE_COMMENT_ID
    comment.lens_id = lens_id or SAMPLE_LENS_ID
    comment.user = make_user_row()
    comment.user_id = comment.user.id
    comment.body = body
    comment.created_at = datetime(2025, 1, 3, tzinfo=timezone.utc)
    return comment


# ---------------------------------------------------------------------------
# App / client helpers
# ---------------------------------------------------------------------------
def create_test_app(router: APIRouter) -> FastAPI:
    """Bare app (no lifespan) with the error envelope handlers installed."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")
    return app


def make_client(app: FastAPI, mock_db: AsyncMock) -> AsyncClient:
    from app.models.database import get_db

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://testserver")


@pytest.fixture()
def mock_db():
    return AsyncMock()
