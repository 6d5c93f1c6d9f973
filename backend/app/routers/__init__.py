"""Routers subpackage — HTTP layer for all API endpoints."""

from app.routers import comments, lenses, markers

__all__ = ["comments", "lenses", "markers"]
