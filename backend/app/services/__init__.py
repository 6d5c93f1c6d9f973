"""Services subpackage — query planning and persistence logic."""

from app.services.lens import LensService
from app.services.lens_query import (
    LensPage,
    LensQueryPlan,
    LensQueryService,
    MalformedFilterError,
    plan_lens_query,
)

__all__ = [
    "LensPage",
    "LensQueryPlan",
    "LensQueryService",
    "LensService",
    "MalformedFilterError",
    "plan_lens_query",
]
