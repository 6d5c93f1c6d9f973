"""
Comment Endpoints
=================
Comments live under their Lens: ``/lenses/{lens_id}/comments``.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import get_db
from app.models.lens import Lens
from app.schemas.lens import CommentCreate, CommentOut, Envelope, PageEnvelope
from app.services.lens import LensService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/lenses/{lens_id}/comments", tags=["Comments"])


@router.get("", response_model=PageEnvelope[CommentOut])
async def list_comments(
    lens_id: uuid.UUID,
    sort: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Comments for a Lens; ``sort`` is ``latest`` (default) or ``oldest``."""
    lens = await db.get(Lens, lens_id)
    if not lens:
        raise HTTPException(404, "Lens not found")

    comments, total, page_no, page_size = await LensService(db).list_comments(
        lens_id, sort=sort, page=page, limit=limit
    )
    return PageEnvelope[CommentOut](
        data=[CommentOut.model_validate(c) for c in comments],
        total=total,
        page=page_no,
        limit=page_size,
    )


@router.post("", response_model=Envelope[CommentOut], status_code=201)
async def add_comment(
    lens_id: uuid.UUID,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db),
):
    comment = await LensService(db).add_comment(lens_id, payload)
    if comment is None:
        raise HTTPException(404, "Lens not found")
    return Envelope[CommentOut](
        message="Comment added successfully",
        data=CommentOut.model_validate(comment),
    )


@router.delete("/{comment_id}", response_model=Envelope[None])
async def delete_comment(
    lens_id: uuid.UUID,
    comment_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await LensService(db).delete_comment(lens_id, comment_id)
    if not deleted:
        raise HTTPException(404, "Comment not found")
    logger.info("Deleted comment %s from lens %s", comment_id, lens_id)
    return Envelope[None](message="Comment deleted successfully")
