"""
Lensmap — FastAPI Application
=============================
Publish and browse Lenses: geographically anchored collections of
point-of-interest markers, searchable by text, region and proximity.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import get_settings
from app.errors import register_exception_handlers
from app.routers import comments, lenses, markers

logger = logging.getLogger(__name__)
settings = get_settings()


# ── Lifespan (startup / shutdown) ─────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Verify DB connectivity and PostGIS availability.
        - Create tables (idempotent).
    Shutdown:
        - Dispose engine pool.
    """
    logger.info("%s starting up...", settings.app_name)

    from app.models.database import engine as db_engine
    async with db_engine.begin() as conn:
        result = await conn.execute(text("SELECT PostGIS_Version()"))
        version = result.scalar()
        logger.info("PostGIS connected (version=%s)", version)

    # All ORM models are imported through the routers, so
    # Base.metadata is fully populated by this point.
    from app.models.database import init_models
    await init_models()
    logger.info("Database schema verified / created.")

    yield

    await db_engine.dispose()
    logger.info("%s shut down.", settings.app_name)


# ── App factory ───────────────────────────────────────────────────
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Lenses and markers with text, region and proximity search "
            "over a PostGIS-indexed store."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS for the map frontend (configurable via LENSMAP_CORS_ORIGINS).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(lenses.router, prefix=settings.api_prefix)
    app.include_router(comments.router, prefix=settings.api_prefix)
    app.include_router(markers.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": settings.app_name}

    return app


# ── Module-level app instance (for `uvicorn app.main:app`) ───────
app = create_app()  # pragma: no cover
