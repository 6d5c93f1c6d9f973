"""
Lensmap — Configuration via pydantic-settings.

Environment variables override defaults.  Coordinates in this module follow
the display convention ``[lat, lng]`` because they only ever feed the map
client; anything persisted goes through ``app.spatial.coordinates``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env_path: ClassVar[str] = str(Path(__file__).resolve().parents[2] / ".env")
    model_config = SettingsConfigDict(
        env_file=env_path,
        env_file_encoding="utf-8",
        env_prefix="LENSMAP_",
        # Ignore unrelated environment variables (for example the
        # POSTGRES_* variables used by Docker) so loading the env_file
        # does not cause validation errors for unknown keys.
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────
    app_name: str = "Lensmap"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # ── Database (PostGIS) ─────────────────────────────────────────
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "lensmap"
    db_password: str = "lensmap_secret"
    db_name: str = "lensmap"
    db_pool_size: int = 10
    db_max_overflow: int = 10

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy connection string (asyncpg driver)."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Lens listing ───────────────────────────────────────────────
    default_page_size: int = 10
    max_page_size: int = 100
    # Collation used by every Lens-list ORDER BY.  ``init_models`` creates
    # it from the ICU locale below (case-insensitive, locale aware).
    sort_collation: str = "lensmap_ci"
    sort_collation_locale: str = "und-u-ks-level2"
    # Radius (meters) of a Lens's circular address bound when omitted.
    default_circle_radius_m: float = 100.0
    # A view-count write that fails is retried this many times in total
    # before it is given up on.  The read itself never fails because of it.
    view_increment_attempts: int = 2

    # ── Map client ─────────────────────────────────────────────────
    api_base_url: str = "http://localhost:8000/api/v1"
    map_default_center: tuple[float, float] = (1.0, 15.0)
    map_max_bounds: tuple[tuple[float, float], tuple[float, float]] = (
        (12.74116988678989, 75.09318351745607),
        (12.797405423615684, 75.22253036499025),
    )

    # ── CORS ───────────────────────────────────────────────────────
    # Allowed CORS origins.
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse the comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
