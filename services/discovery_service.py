"""
Nearby musician discovery.

The pipeline fetches at most ``DISCOVERY_FETCH_LIMIT`` visible profiles and
filters/ranks them in Python. There is no geospatial query: with more visible
profiles than the fetch limit, nearby musicians outside the fetched page are
not found.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import BackendUnavailableError
from models.user import User
from schemas.discovery import DiscoveryFilters, DiscoveryItem, SortMode
from services import request_service
from utils.geo import Coordinate, haversine_miles
from utils.location import DEFAULT_CENTER, display_name, normalize
from utils.user_helpers import to_user_card

logger = logging.getLogger(__name__)

# Radius at or above this value means "browse out of range"
UNLIMITED_RADIUS_MILES = 100


@dataclass
class RankedProfile:
    user: User
    distance: float
    genre_overlap: int = 0


def radius_is_unbounded(radius: Optional[float]) -> bool:
    return radius is None or radius >= UNLIMITED_RADIUS_MILES


def matches_filters(user: User, filters: DiscoveryFilters) -> bool:
    if filters.instrument and user.instrument != filters.instrument:
        return False
    if filters.genres and not set(filters.genres) & set(user.genres or []):
        return False
    if filters.skill_level and user.skill_level != filters.skill_level:
        return False
    return True


def matches_search(user: User, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    haystack = [
        user.name,
        user.instrument,
        user.bio,
        display_name(user.location),
        *(user.genres or []),
    ]
    return any(needle in value.lower() for value in haystack if value)


def sort_ranked(ranked: List[RankedProfile], sort: SortMode, genres: List[str]) -> List[RankedProfile]:
    if sort == SortMode.RECENT:
        # newest first, nearer first among equals
        return sorted(
            ranked,
            key=lambda r: (r.user.created_at is not None, r.user.created_at or 0, -r.distance),
            reverse=True,
        )
    if sort == SortMode.BEST_MATCH and genres:
        return sorted(ranked, key=lambda r: (-r.genre_overlap, r.distance))
    return sorted(ranked, key=lambda r: r.distance)


def rank_candidates(
    candidates: Iterable[User],
    center: Coordinate,
    filters: DiscoveryFilters,
    radius: Optional[float] = None,
    sort: SortMode = SortMode.DISTANCE,
    search: Optional[str] = None,
    exclude_user_id: Optional[str] = None,
) -> List[RankedProfile]:
    """
    Attribute filters, then distance cutoff, then free-text search, then sort.
    """
    wanted_genres = set(filters.genres)
    ranked: List[RankedProfile] = []
    for user in candidates:
        if user.id == exclude_user_id or not user.visibility:
            continue
        if not matches_filters(user, filters):
            continue
        distance = haversine_miles(center, normalize(user.location))
        if not radius_is_unbounded(radius) and distance > radius:
            continue
        ranked.append(RankedProfile(
            user=user,
            distance=distance,
            genre_overlap=len(wanted_genres & set(user.genres or [])),
        ))

    if search:
        ranked = [r for r in ranked if matches_search(r.user, search)]

    return sort_ranked(ranked, sort, filters.genres)


async def fetch_candidates(db: AsyncSession, limit: Optional[int] = None) -> List[User]:
    try:
        result = await db.execute(
            select(User)
            .where(User.visibility.is_(True))
            .limit(limit or settings.DISCOVERY_FETCH_LIMIT)
        )
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.exception("Discovery fetch failed: %s", e)
        raise BackendUnavailableError("Could not load musicians") from e


async def reference_point(db: AsyncSession, viewer_id: str) -> Coordinate:
    """The viewer's own location, or the default center."""
    try:
        viewer = await db.get(User, viewer_id)
    except SQLAlchemyError as e:
        logger.exception("Viewer profile fetch failed: %s", e)
        raise BackendUnavailableError("Could not load your profile") from e
    if viewer is None or viewer.location is None:
        return DEFAULT_CENTER
    return normalize(viewer.location)


async def discover(
    db: AsyncSession,
    viewer_id: str,
    filters: DiscoveryFilters,
    radius: Optional[float] = None,
    sort: SortMode = SortMode.DISTANCE,
    search: Optional[str] = None,
    center: Optional[Coordinate] = None,
) -> List[DiscoveryItem]:
    if center is None:
        center = await reference_point(db, viewer_id)
    if radius is None:
        radius = settings.DEFAULT_RADIUS_MILES

    candidates = await fetch_candidates(db)
    ranked = rank_candidates(
        candidates,
        center,
        filters,
        radius=radius,
        sort=sort,
        search=search,
        exclude_user_id=viewer_id,
    )

    try:
        requested = await request_service.requested_receiver_ids(db, viewer_id)
    except SQLAlchemyError as e:
        logger.exception("Sent-request lookup for %s failed: %s", viewer_id, e)
        raise BackendUnavailableError("Could not load musicians") from e
    return [
        DiscoveryItem(
            **to_user_card(r.user).model_dump(),
            distance=round(r.distance, 2),
            requested=r.user.id in requested,
        )
        for r in ranked
    ]
