"""Schemas subpackage — Pydantic request/response models."""

from app.schemas.lens import (
    AddressIn,
    CommentCreate,
    CommentOut,
    Envelope,
    LensCenterOut,
    LensCreate,
    LensOut,
    LensUpdate,
    MarkerCreate,
    MarkerOut,
    MarkerUpdate,
    PageEnvelope,
    PointIn,
    UserOut,
)

__all__ = [
    "AddressIn",
    "CommentCreate",
    "CommentOut",
    "Envelope",
    "LensCenterOut",
    "LensCreate",
    "LensOut",
    "LensUpdate",
    "MarkerCreate",
    "MarkerOut",
    "MarkerUpdate",
    "PageEnvelope",
    "PointIn",
    "UserOut",
]
