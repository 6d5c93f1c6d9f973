"""
SQLAlchemy ORM models for Users, Lenses, Markers and Comments.

Spatial columns are GeoAlchemy2 ``Geography`` points on SRID 4326, so
PostGIS distances come back in meters.  The stored WKT is always
``POINT(lng lat)`` (storage order).

Schema:
    User  1──*  Lens  1──*  Marker
                Lens  1──*  Comment  *──1  User

Markers and comments reference their Lens by foreign key, so adding or
removing one is a single-row write and deleting a Lens cascades to both.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from geoalchemy2 import Geography
from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.database import Base


# ── Users ─────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    lenses: Mapped[list["Lens"]] = relationship(back_populates="creator")


# ── Lenses ────────────────────────────────────────────────────────
class Lens(Base):
    """
    A named, located collection of markers.

    ``address`` is a JSONB document::

        {
            "formatted": "...",
            "components": {"country": "...", "state": "...", ...},
            "circle_bounds": {...},
            "circle_bound_radius": 100,
        }

    ``components`` is the source of truth for country/state filtering.
    """
    __tablename__ = "lenses"
    __table_args__ = (
        Index("idx_lenses_location_gist", "location", postgresql_using="gist"),
        Index("idx_lenses_creator_id", "creator_id"),
        Index("idx_lenses_popularity", "views", "likes", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    thumbnail: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, default=list)
    creator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    location = mapped_column(
        Geography(geometry_type="POINT", srid=4326, spatial_index=False), nullable=False
    )
    address: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    likes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    creator: Mapped["User"] = relationship(back_populates="lenses")
    markers: Mapped[list["Marker"]] = relationship(
        back_populates="lens", cascade="all, delete-orphan"
    )
    comments: Mapped[list["Comment"]] = relationship(
        back_populates="lens",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )


# ── Markers (spatial) ────────────────────────────────────────────
class Marker(Base):
    __tablename__ = "markers"
    __table_args__ = (
        Index("idx_markers_location_gist", "location", postgresql_using="gist"),
        Index("idx_markers_lens_id", "lens_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lens_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lenses.id", ondelete="CASCADE"), nullable=False
    )
    location = mapped_column(
        Geography(geometry_type="POINT", srid=4326, spatial_index=False), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(Text, nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    lens: Mapped["Lens"] = relationship(back_populates="markers")


# ── Comments ─────────────────────────────────────────────────────
class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("idx_comments_lens_created", "lens_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lens_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lenses.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    lens: Mapped["Lens"] = relationship(back_populates="comments")
    user: Mapped["User"] = relationship()
