"""
Pydantic schemas for API request/response serialization.

Inbound points are GeoJSON-style and in storage order ``[lng, lat]``.
Outbound ``location`` fields are in display order ``[lat, lng]``; the
``from_model`` builders are the single place where that flip happens on
the read path.
"""

from __future__ import annotations

import math
import uuid
from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.spatial.coordinates import from_location, to_display

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════
# Envelopes
# ═══════════════════════════════════════════════════════════════════
class Envelope(BaseModel, Generic[T]):
    """``{status, message, data}`` wrapper shared by every endpoint."""

    status: Literal["success", "error"] = "success"
    message: str = ""
    data: T | None = None


class PageEnvelope(BaseModel, Generic[T]):
    status: Literal["success", "error"] = "success"
    message: str = ""
    data: list[T] | None = None
    total: int = 0
    page: int = 1
    limit: int = 10
    disabled_stages: dict[str, str] = Field(
        default_factory=dict,
        description="Optional pipeline stages skipped for this query, with the reason",
    )


# ═══════════════════════════════════════════════════════════════════
# Geometry input
# ═══════════════════════════════════════════════════════════════════
class PointIn(BaseModel):
    """GeoJSON point, coordinates in storage order ``[lng, lat]``."""

    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(min_length=2, max_length=2)

    @field_validator("coordinates")
    @classmethod
    def within_wgs84(cls, v: list[float]) -> list[float]:
        lng, lat = v
        if not all(math.isfinite(c) for c in v):
            raise ValueError("Coordinates must be finite numbers")
        if not -180.0 <= lng <= 180.0:
            raise ValueError("Longitude must be within [-180, 180]")
        if not -90.0 <= lat <= 90.0:
            raise ValueError("Latitude must be within [-90, 90]")
        return v


# ═══════════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════════
class UserOut(BaseModel):
    id: uuid.UUID
    username: str
    email: str | None = None

    model_config = {"from_attributes": True}


# ═══════════════════════════════════════════════════════════════════
# Markers
# ═══════════════════════════════════════════════════════════════════
class MarkerCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lens_id: uuid.UUID = Field(alias="lensId")
    location: PointIn
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    description: str = ""
    image: str | None = None


class MarkerUpdate(BaseModel):
    """Partial update.  A drag-to-reposition carries only ``location``."""

    location: PointIn | None = None
    title: str | None = Field(default=None, min_length=1)
    category: str | None = Field(default=None, min_length=1)
    description: str | None = None
    image: str | None = None


class MarkerOut(BaseModel):
    id: uuid.UUID
    lens_id: uuid.UUID
    location: list[float] = Field(description="[lat, lng]")
    title: str
    description: str = ""
    category: str
    image: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, marker: Any) -> "MarkerOut":
        return cls(
            id=marker.id,
            lens_id=marker.lens_id,
            location=list(to_display(from_location(marker.location))),
            title=marker.title,
            description=marker.description or "",
            category=marker.category,
            image=marker.image,
            created_at=marker.created_at,
        )


# ═══════════════════════════════════════════════════════════════════
# Lenses
# ═══════════════════════════════════════════════════════════════════
class AddressIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    formatted: str = ""
    components: dict[str, str] = Field(default_factory=dict)
    circle_bounds: dict[str, Any] = Field(default_factory=dict, alias="circleBounds")
    circle_bound_radius: float | None = Field(
        default=None, gt=0, alias="circleBoundRadius"
    )


class LensCreate(BaseModel):
    """
    Required fields are checked by the service so that a missing one
    produces the documented 400 message rather than a schema error.
    """

    name: str | None = None
    description: str = ""
    thumbnail: str | None = None
    tags: list[str] = Field(default_factory=list)
    location: PointIn | None = None
    creator: uuid.UUID | None = None
    address: AddressIn | None = None


class LensUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    thumbnail: str | None = None
    tags: list[str] | None = None
    location: PointIn | None = None
    address: AddressIn | None = None


class LensOut(BaseModel):
    id: uuid.UUID
    name: str
    description: str = ""
    thumbnail: str | None = None
    tags: list[str] = Field(default_factory=list)
    creator: UserOut | None = None
    location: list[float] = Field(description="[lat, lng]")
    address: dict[str, Any] = Field(default_factory=dict)
    markers: list[MarkerOut] = Field(default_factory=list)
    views: int = 0
    likes: int = 0
    created_at: datetime | None = None
    distance: float | None = Field(
        default=None, description="Meters from the query center (proximity queries only)"
    )

    @classmethod
    def from_model(cls, lens: Any, distance: float | None = None) -> "LensOut":
        creator = lens.creator
        return cls(
            id=lens.id,
            name=lens.name,
            description=lens.description or "",
            thumbnail=lens.thumbnail,
            tags=list(lens.tags or []),
            creator=UserOut.model_validate(creator) if creator is not None else None,
            location=list(to_display(from_location(lens.location))),
            address=dict(lens.address or {}),
            markers=[MarkerOut.from_model(m) for m in lens.markers],
            views=lens.views,
            likes=lens.likes,
            created_at=lens.created_at,
            distance=distance,
        )


class LensCenterOut(BaseModel):
    location: list[float] = Field(description="[lat, lng]")
    circle_bounds: dict[str, Any] = Field(default_factory=dict)
    circle_bound_radius: float


# ═══════════════════════════════════════════════════════════════════
# Comments
# ═══════════════════════════════════════════════════════════════════
class CommentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: uuid.UUID = Field(alias="userId")
    body: str = Field(min_length=1)


class CommentOut(BaseModel):
    id: uuid.UUID
    lens_id: uuid.UUID
    user: UserOut | None = None
    body: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
