"""
Lens Endpoints
==============
List (query planner), create, fetch, center, update and delete.

Locations are accepted in storage order ``[lng, lat]`` and returned in
display order ``[lat, lng]``.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.database import get_db
from app.schemas.lens import (
    Envelope,
    LensCenterOut,
    LensCreate,
    LensOut,
    LensUpdate,
    PageEnvelope,
)
from app.services.lens import LensService
from app.services.lens_query import LensQueryService, plan_lens_query
from app.spatial.coordinates import from_location, to_display

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/lenses", tags=["Lenses"])
settings = get_settings()


# ── List / search ────────────────────────────────────────────────
@router.get("", response_model=PageEnvelope[LensOut])
async def list_lenses(
    creator_id: str | None = Query(default=None, alias="creatorId"),
    country: str | None = None,
    state: str | None = None,
    distance: str | None = Query(default=None, description="Radius in km"),
    client_lat: str | None = Query(default=None, alias="clientLat"),
    client_lng: str | None = Query(default=None, alias="clientLng"),
    sort: str | None = None,
    search: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Search Lenses by text, region, creator and proximity.

    Unparseable ``distance`` / ``clientLat`` / ``clientLng`` disable the
    proximity stage instead of failing; the reason is reported in
    ``disabled_stages``.  ``total`` counts the non-spatial filters only.
    """
    plan = plan_lens_query(
        creator_id=creator_id,
        country=country,
        state=state,
        search=search,
        distance=distance,
        client_lat=client_lat,
        client_lng=client_lng,
        sort=sort,
        page=page,
        limit=limit,
    )
    result = await LensQueryService(db).run(plan)
    return PageEnvelope[LensOut](
        message="Lenses retrieved successfully",
        data=result.items,
        total=result.total,
        page=result.page,
        limit=result.limit,
        disabled_stages=result.disabled,
    )


# ── Create ────────────────────────────────────────────────────────
@router.post("", response_model=Envelope[LensOut], status_code=201)
async def create_lens(
    payload: LensCreate,
    db: AsyncSession = Depends(get_db),
):
    if not payload.name or payload.location is None or payload.creator is None:
        raise HTTPException(400, "Name, location, and creator are required fields")

    lens = await LensService(db).create_lens(payload)
    if lens is None:
        raise HTTPException(404, "Invalid user id")
    return Envelope[LensOut](message="Lens created successfully", data=LensOut.from_model(lens))


# ── Fetch one (counts a view) ────────────────────────────────────
@router.get("/{lens_id}", response_model=Envelope[LensOut])
async def get_lens(
    lens_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    svc = LensService(db)
    lens = await svc.get_lens(lens_id)
    if lens is None:
        raise HTTPException(404, "Invalid lens id")

    # Serialize before the increment: a rolled-back attempt expires the
    # instance's loaded state.
    out = LensOut.from_model(lens)
    views = await svc.increment_views(lens_id)
    if views is not None:
        out.views = views
    return Envelope[LensOut](message="Lens retrieved successfully", data=out)


@router.get("/{lens_id}/center", response_model=Envelope[LensCenterOut])
async def get_lens_center(
    lens_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Center point and circular bound used to frame the map."""
    svc = LensService(db)
    lens = await svc.get_lens(lens_id)
    if lens is None:
        raise HTTPException(404, "Invalid lens id")

    address = lens.address or {}
    return Envelope[LensCenterOut](
        data=LensCenterOut(
            location=list(to_display(from_location(lens.location))),
            circle_bounds=address.get("circle_bounds") or {},
            circle_bound_radius=(
                address.get("circle_bound_radius") or settings.default_circle_radius_m
            ),
        )
    )


# ── Update ────────────────────────────────────────────────────────
@router.patch("/{lens_id}", response_model=Envelope[LensOut])
async def update_lens(
    lens_id: uuid.UUID,
    payload: LensUpdate,
    db: AsyncSession = Depends(get_db),
):
    lens = await LensService(db).update_lens(lens_id, payload)
    if lens is None:
        raise HTTPException(404, "Lens to update not found")
    return Envelope[LensOut](message="Lens updated successfully", data=LensOut.from_model(lens))


# ── Delete (cascades markers and comments) ───────────────────────
@router.delete("/{lens_id}", response_model=Envelope[None])
async def delete_lens(
    lens_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await LensService(db).delete_lens(lens_id)
    if not deleted:
        raise HTTPException(404, "Invalid lens id")
    return Envelope[None](message="Lens deleted successfully")
