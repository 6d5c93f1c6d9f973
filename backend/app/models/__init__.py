"""Models subpackage."""

from app.models.database import Base, engine, async_session_factory, get_db, init_models
from app.models.lens import Comment, Lens, Marker, User

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "get_db",
    "init_models",
    "Comment",
    "Lens",
    "Marker",
    "User",
]
