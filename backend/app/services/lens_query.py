"""
Lens Query Planner
==================
Turns the flat Lens-list query string into an ordered pipeline of stages
and compiles that pipeline into a single SQLAlchemy ``Select``.

Stage order is fixed::

    match | proximity(match)  →  sort  →  page  →  join

- **match** is always present.  When a proximity stage is planned, the
  match filters are pushed into it so the distance bound and the filters
  prune candidates together, before sorting.
- **proximity** is optional.  It is only planned when ``distance``,
  ``clientLat`` and ``clientLng`` all parse to finite numbers; otherwise
  it is recorded in ``plan.disabled`` with the reason.  The center is
  taken in storage order ``(lng, lat)`` straight from the query string.
- **sort** always resolves to one of ``latest`` / ``oldest`` / ``popular``
  (the default for missing or unknown modes), each with a deterministic
  tie-break chain: the mode keys, then ``name`` under the configured
  case-insensitive ICU collation, then the primary key.  The collation is
  therefore part of every list query.
- **page** clamps page/limit before computing ``skip = (page-1)*limit``.
- **join** eager-loads markers and the single creator.

The total count is a second statement over the match filters only; the
proximity bound is intentionally *not* part of it.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Union

from geoalchemy2 import Geography
from sqlalchemy import ColumnElement, Select, Text, and_, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.config import get_settings
from app.models.lens import Lens
from app.schemas.lens import LensOut
from app.spatial.coordinates import ProximityCircle

logger = logging.getLogger(__name__)
settings = get_settings()


class MalformedFilterError(ValueError):
    """A filter value that cannot be turned into a valid predicate."""


# ── Stages ────────────────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class MatchStage:
    """Exact creator match, substring country/state, free-text search."""

    creator_id: uuid.UUID | None = None
    country: str | None = None
    state: str | None = None
    search: str | None = None

    name = "match"

    def clauses(self) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = []
        if self.creator_id is not None:
            clauses.append(Lens.creator_id == self.creator_id)
        if self.country:
            clauses.append(
                Lens.address[("components", "country")].astext.icontains(
                    self.country, autoescape=True
                )
            )
        if self.state:
            clauses.append(
                Lens.address[("components", "state")].astext.icontains(
                    self.state, autoescape=True
                )
            )
        if self.search:
            clauses.append(or_(*self._search_clauses(self.search)))
        return clauses

    @staticmethod
    def _search_clauses(term: str) -> list[ColumnElement[bool]]:
        tag = func.unnest(Lens.tags, type_=Text).column_valued("tag")
        return [
            Lens.name.icontains(term, autoescape=True),
            Lens.description.icontains(term, autoescape=True),
            Lens.address["formatted"].astext.icontains(term, autoescape=True),
            select(tag).where(tag.icontains(term, autoescape=True)).exists(),
        ]

    def apply(self, stmt: Select) -> Select:
        clauses = self.clauses()
        return stmt.where(and_(*clauses)) if clauses else stmt


@dataclass(frozen=True, slots=True)
class ProximityStage:
    """
    Distance-bounded, distance-annotated search around ``circle``.

    ``ST_DWithin`` lets PostGIS use the GIST index to bound the search;
    the strict ``ST_Distance < radius`` makes the bound exclusive, so a
    zero radius yields nothing.
    """

    circle: ProximityCircle
    match: MatchStage

    name = "proximity"

    def _center(self) -> ColumnElement:
        return cast(
            func.ST_GeogFromText(self.circle.to_wkt()),
            Geography(geometry_type="POINT", srid=4326),
        )

    def distance(self) -> ColumnElement[float]:
        return func.ST_Distance(Lens.location, self._center())

    def clauses(self) -> list[ColumnElement[bool]]:
        radius_m = self.circle.radius_m
        return [
            func.ST_DWithin(Lens.location, self._center(), radius_m),
            self.distance() < radius_m,
            *self.match.clauses(),
        ]

    def apply(self, stmt: Select) -> Select:
        return stmt.add_columns(self.distance().label("distance")).where(
            and_(*self.clauses())
        )


@dataclass(frozen=True, slots=True)
class SortKey:
    column: str
    descending: bool = True
    text: bool = False


SORT_MODES: dict[str, tuple[SortKey, ...]] = {
    "latest": (SortKey("created_at"),),
    "oldest": (SortKey("created_at", descending=False),),
    "popular": (SortKey("views"), SortKey("likes"), SortKey("created_at")),
}
DEFAULT_SORT = "popular"

# Appended to every mode: the name under the sort collation, then the key.
TIE_BREAK: tuple[SortKey, ...] = (SortKey("name", descending=False, text=True),)


@dataclass(frozen=True, slots=True)
class SortStage:
    mode: str
    keys: tuple[SortKey, ...]
    collation: str

    name = "sort"

    def apply(self, stmt: Select) -> Select:
        order_by = []
        for key in (*self.keys, *TIE_BREAK):
            col = getattr(Lens, key.column)
            if key.text:
                col = col.collate(self.collation)
            order_by.append(col.desc() if key.descending else col.asc())
        # Primary key closes any remaining tie.
        order_by.append(Lens.id.asc())
        return stmt.order_by(*order_by)


@dataclass(frozen=True, slots=True)
class PageStage:
    page: int
    limit: int

    name = "page"

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, stmt: Select) -> Select:
        return stmt.offset(self.skip).limit(self.limit)


@dataclass(frozen=True, slots=True)
class JoinStage:
    name = "join"

    def apply(self, stmt: Select) -> Select:
        return stmt.options(
            selectinload(Lens.markers),
            joinedload(Lens.creator),
        )


Stage = Union[MatchStage, ProximityStage, SortStage, PageStage, JoinStage]


# ── Plan ──────────────────────────────────────────────────────────
@dataclass(frozen=True)
class LensQueryPlan:
    stages: tuple[Stage, ...]
    disabled: dict[str, str] = field(default_factory=dict)
    collation: str = "lensmap_ci"

    def _stage(self, kind: type) -> Stage | None:
        for stage in self.stages:
            if isinstance(stage, kind):
                return stage
        return None

    @property
    def match(self) -> MatchStage:
        proximity = self.proximity
        if proximity is not None:
            return proximity.match
        return self._stage(MatchStage)  # type: ignore[return-value]

    @property
    def proximity(self) -> ProximityStage | None:
        return self._stage(ProximityStage)  # type: ignore[return-value]

    @property
    def sort(self) -> SortStage:
        return self._stage(SortStage)  # type: ignore[return-value]

    @property
    def page(self) -> PageStage:
        return self._stage(PageStage)  # type: ignore[return-value]

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    def statement(self) -> Select:
        stmt = select(Lens)
        for stage in self.stages:
            stmt = stage.apply(stmt)
        return stmt

    def count_statement(self) -> Select:
        return self.match.apply(select(func.count()).select_from(Lens))


# ── Parameter parsing ─────────────────────────────────────────────
def _parse_float(raw: str | float | None) -> float | None:
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _parse_int(raw: str | int | None) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def clamp_page(
    page: str | int | None,
    limit: str | int | None,
    default_limit: int | None = None,
    max_limit: int | None = None,
) -> PageStage:
    """page < 1 → 1; limit < 1 → default; limit capped at ``max_limit``."""
    default_limit = default_limit or settings.default_page_size
    max_limit = max_limit or settings.max_page_size

    p = _parse_int(page)
    n = _parse_int(limit)
    p = p if p is not None and p >= 1 else 1
    n = n if n is not None and n >= 1 else default_limit
    return PageStage(page=p, limit=min(n, max_limit))


def _parse_creator(raw: str | uuid.UUID | None) -> uuid.UUID | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError as exc:
        raise MalformedFilterError(f"creatorId is not a valid id: {raw!r}") from exc


def _plan_proximity(
    distance: str | float | None,
    client_lat: str | float | None,
    client_lng: str | float | None,
) -> tuple[ProximityCircle | None, str | None]:
    if distance is None and client_lat is None and client_lng is None:
        return None, "no distance or center given"

    radius = _parse_float(distance)
    lat = _parse_float(client_lat)
    lng = _parse_float(client_lng)
    if radius is None:
        return None, "distance is not a number"
    if radius < 0:
        return None, "distance is negative"
    if lat is None or lng is None:
        return None, "clientLat/clientLng are not both numbers"
    return ProximityCircle(lng=lng, lat=lat, radius_km=radius), None


def plan_lens_query(
    *,
    creator_id: str | uuid.UUID | None = None,
    country: str | None = None,
    state: str | None = None,
    search: str | None = None,
    distance: str | float | None = None,
    client_lat: str | float | None = None,
    client_lng: str | float | None = None,
    sort: str | None = None,
    page: str | int | None = None,
    limit: str | int | None = None,
) -> LensQueryPlan:
    """Build the ordered stage pipeline for a Lens-list query.  Pure."""
    match = MatchStage(
        creator_id=_parse_creator(creator_id),
        country=country or None,
        state=state or None,
        search=search or None,
    )

    disabled: dict[str, str] = {}
    circle, reason = _plan_proximity(distance, client_lat, client_lng)
    first: Stage
    if circle is not None:
        first = ProximityStage(circle=circle, match=match)
    else:
        first = match
        disabled["proximity"] = reason or "disabled"

    mode = sort if sort in SORT_MODES else DEFAULT_SORT
    collation = settings.sort_collation
    stages: tuple[Stage, ...] = (
        first,
        SortStage(mode=mode, keys=SORT_MODES[mode], collation=collation),
        clamp_page(page, limit),
        JoinStage(),
    )
    return LensQueryPlan(stages=stages, disabled=disabled, collation=collation)


# ── Execution ─────────────────────────────────────────────────────
@dataclass
class LensPage:
    items: list[LensOut]
    total: int
    page: int
    limit: int
    disabled: dict[str, str] = field(default_factory=dict)


class LensQueryService:
    """Runs a ``LensQueryPlan`` against the injected AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def run(self, plan: LensQueryPlan) -> LensPage:
        result = await self.session.execute(plan.statement())
        rows = result.all()

        with_distance = plan.proximity is not None
        items = [
            LensOut.from_model(
                row[0], distance=row.distance if with_distance else None
            )
            for row in rows
        ]

        count = await self.session.execute(plan.count_statement())
        total = count.scalar_one()

        logger.debug(
            "Lens query stages=%s disabled=%s -> %d/%d",
            plan.stage_names, plan.disabled, len(items), total,
        )
        return LensPage(
            items=items,
            total=total,
            page=plan.page.page,
            limit=plan.page.limit,
            disabled=dict(plan.disabled),
        )
