"""
Marker Endpoints
================
Create, partially update (drag-to-reposition sends only ``location``)
and delete markers.  Every success carries ``status == "success"``,
which the map client treats as the confirmation signal.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import get_db
from app.schemas.lens import Envelope, MarkerCreate, MarkerOut, MarkerUpdate
from app.services.lens import LensService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/markers", tags=["Markers"])


@router.post("", response_model=Envelope[MarkerOut], status_code=201)
async def create_marker(
    payload: MarkerCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a marker and attach it to its Lens in one unit of work."""
    marker = await LensService(db).add_marker(payload)
    if marker is None:
        raise HTTPException(404, "Lens not found")
    logger.info("Added marker %s to lens %s", marker.id, marker.lens_id)
    return Envelope[MarkerOut](message="Marker created successfully", data=MarkerOut.from_model(marker))


@router.patch("/{marker_id}", response_model=Envelope[MarkerOut])
async def update_marker(
    marker_id: uuid.UUID,
    payload: MarkerUpdate,
    db: AsyncSession = Depends(get_db),
):
    marker = await LensService(db).update_marker(marker_id, payload)
    if marker is None:
        raise HTTPException(404, "Marker not found")
    return Envelope[MarkerOut](message="Marker updated successfully", data=MarkerOut.from_model(marker))


@router.delete("/{marker_id}", response_model=Envelope[None])
async def delete_marker(
    marker_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await LensService(db).delete_marker(marker_id)
    if not deleted:
        raise HTTPException(404, "Marker not found")
    logger.info("Deleted marker %s", marker_id)
    return Envelope[None](message="Marker deleted successfully")
