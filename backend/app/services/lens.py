"""
Lens / Marker / Comment Service
===============================
Persistence operations that need more than a single ``session.get``.

Units of Work
-------------
Every mutating method issues exactly one ``commit``.  Markers and
comments point at their Lens through a foreign key, so "create child and
attach to parent" and "detach from parent and delete child" are each one
row write inside that single unit of work.  On ``SQLAlchemyError`` the
``get_db`` dependency rolls the session back; nothing is half-applied.

Coordinates
-----------
Inbound locations are already in storage order ``[lng, lat]`` and go
straight into ``to_location``.  Outbound conversion to display order is
done by the response schemas.

View Counter
------------
``increment_views`` is an atomic ``views = views + 1`` in its own
commit.  A failed attempt is rolled back, retried up to
``settings.view_increment_attempts`` times in total, and then given up
on with a warning.  It never raises, so the read it accompanies cannot
fail because of it.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.config import get_settings
from app.models.lens import Comment, Lens, Marker, User
from app.schemas.lens import (
    CommentCreate,
    LensCreate,
    LensUpdate,
    MarkerCreate,
    MarkerUpdate,
)
from app.services.lens_query import clamp_page
from app.spatial.coordinates import to_location

logger = logging.getLogger(__name__)
settings = get_settings()

COMMENT_SORTS = {
    "latest": Comment.created_at.desc(),
    "oldest": Comment.created_at.asc(),
}


class LensService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ── Lenses ────────────────────────────────────────────────

    async def get_lens(self, lens_id: uuid.UUID) -> Lens | None:
        """Load a Lens with its markers and creator."""
        stmt = (
            select(Lens)
            .where(Lens.id == lens_id)
            .options(selectinload(Lens.markers), joinedload(Lens.creator))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def increment_views(self, lens_id: uuid.UUID) -> int | None:
        """Return the new view count, or ``None`` if every attempt failed."""
        attempts = max(1, settings.view_increment_attempts)
        stmt = (
            update(Lens)
            .where(Lens.id == lens_id)
            .values(views=Lens.views + 1)
            .returning(Lens.views)
            .execution_options(synchronize_session=False)
        )
        for attempt in range(1, attempts + 1):
            try:
                result = await self.session.execute(stmt)
                views = result.scalar_one()
                await self.session.commit()
                return views
            except SQLAlchemyError as exc:
                await self.session.rollback()
                logger.warning(
                    "View increment for lens %s failed (attempt %d/%d): %s",
                    lens_id, attempt, attempts, exc,
                )
        return None

    async def create_lens(self, payload: LensCreate) -> Lens | None:
        """
        Create a Lens for an existing creator.

        Returns ``None`` when the creator does not exist; the caller has
        already checked that name, location and creator are present.
        """
        creator = await self.session.get(User, payload.creator)
        if creator is None:
            return None

        address = payload.address.model_dump() if payload.address else {}
        radius = address.get("circle_bound_radius") or settings.default_circle_radius_m
        lens = Lens(
            name=payload.name,
            description=payload.description,
            thumbnail=payload.thumbnail,
            tags=list(payload.tags),
            creator_id=creator.id,
            location=to_location(payload.location.coordinates),
            address={
                "formatted": address.get("formatted", ""),
                "components": address.get("components", {}),
                "circle_bounds": address.get("circle_bounds", {}),
                "circle_bound_radius": radius,
            },
        )
        self.session.add(lens)
        await self.session.commit()
        logger.info("Created lens %s for user %s", lens.id, creator.id)
        return await self.get_lens(lens.id)

    async def update_lens(self, lens_id: uuid.UUID, payload: LensUpdate) -> Lens | None:
        lens = await self.session.get(Lens, lens_id)
        if lens is None:
            return None

        # An explicit null leaves the field unchanged.
        changes = payload.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"location", "address"}
        )
        for key, value in changes.items():
            setattr(lens, key, value)
        if payload.location is not None:
            lens.location = to_location(payload.location.coordinates)
        if payload.address is not None:
            address = dict(lens.address or {})
            address.update(payload.address.model_dump(exclude_unset=True))
            if not address.get("circle_bound_radius"):
                address["circle_bound_radius"] = settings.default_circle_radius_m
            lens.address = address

        await self.session.commit()
        return await self.get_lens(lens_id)

    async def delete_lens(self, lens_id: uuid.UUID) -> bool:
        lens = await self.session.get(Lens, lens_id)
        if lens is None:
            return False
        await self.session.delete(lens)
        await self.session.commit()
        logger.info("Deleted lens %s (cascade-deleted markers and comments)", lens_id)
        return True

    # ── Markers ───────────────────────────────────────────────

    async def add_marker(self, payload: MarkerCreate) -> Marker | None:
        """Create a marker under its Lens.  ``None`` if the Lens is missing."""
        lens = await self.session.get(Lens, payload.lens_id)
        if lens is None:
            return None

        marker = Marker(
            lens_id=lens.id,
            location=to_location(payload.location.coordinates),
            title=payload.title,
            description=payload.description,
            category=payload.category,
            image=payload.image,
        )
        self.session.add(marker)
        await self.session.commit()
        await self.session.refresh(marker)
        return marker

    async def update_marker(
        self, marker_id: uuid.UUID, payload: MarkerUpdate
    ) -> Marker | None:
        marker = await self.session.get(Marker, marker_id)
        if marker is None:
            return None

        changes = payload.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"location"}
        )
        for key, value in changes.items():
            setattr(marker, key, value)
        if payload.location is not None:
            marker.location = to_location(payload.location.coordinates)

        await self.session.commit()
        await self.session.refresh(marker)
        return marker

    async def delete_marker(self, marker_id: uuid.UUID) -> bool:
        marker = await self.session.get(Marker, marker_id)
        if marker is None:
            return False
        await self.session.delete(marker)
        await self.session.commit()
        return True

    # ── Comments ──────────────────────────────────────────────

    async def add_comment(
        self, lens_id: uuid.UUID, payload: CommentCreate
    ) -> Comment | None:
        lens = await self.session.get(Lens, lens_id)
        if lens is None:
            return None

        comment = Comment(lens_id=lens.id, user_id=payload.user_id, body=payload.body)
        self.session.add(comment)
        await self.session.commit()

        stmt = (
            select(Comment)
            .where(Comment.id == comment.id)
            .options(joinedload(Comment.user))
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def delete_comment(self, lens_id: uuid.UUID, comment_id: uuid.UUID) -> bool:
        """Delete a comment only if it belongs to ``lens_id``."""
        stmt = (
            delete(Comment)
            .where(Comment.id == comment_id, Comment.lens_id == lens_id)
            .returning(Comment.id)
        )
        result = await self.session.execute(stmt)
        deleted = result.scalar_one_or_none()
        if deleted is None:
            await self.session.rollback()
            return False
        await self.session.commit()
        return True

    async def list_comments(
        self,
        lens_id: uuid.UUID,
        sort: str | None = None,
        page: str | int | None = None,
        limit: str | int | None = None,
    ) -> tuple[list[Comment], int, int, int]:
        """Return ``(comments, total, page, limit)`` for one Lens."""
        paging = clamp_page(page, limit)
        order = COMMENT_SORTS.get(sort or "latest", COMMENT_SORTS["latest"])

        count = await self.session.execute(
            select(func.count()).select_from(Comment).where(Comment.lens_id == lens_id)
        )
        total = count.scalar_one()

        stmt = (
            select(Comment)
            .where(Comment.lens_id == lens_id)
            .options(joinedload(Comment.user))
            .order_by(order, Comment.id.asc())
            .offset(paging.skip)
            .limit(paging.limit)
        )
        result = await self.session.execute(stmt)
        comments = list(result.scalars().all())
        return comments, total, paging.page, paging.limit
