import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_session, get_websocket_session
from core.database import AsyncSessionLocal, get_db
from core.errors import JamspotError, http_status_for
from core.session import SessionContext
from schemas.discovery import DiscoveryFilters, DiscoveryItem, DiscoveryQuery, SortMode
from services import discovery_service
from services.live import subscribe_snapshots
from services.profile_service import PROFILES_TOPIC
from utils.geo import Coordinate

router = APIRouter(prefix="/discover", tags=["discover"])
logger = logging.getLogger(__name__)


def _center(lat: Optional[float], lng: Optional[float]) -> Optional[Coordinate]:
    if lat is None or lng is None:
        return None
    return Coordinate(lat, lng)


@router.get(
    "",
    response_model=List[DiscoveryItem],
    summary="Nearby musicians, filtered and ranked",
)
async def discover(
    instrument: Optional[str] = Query(None, description="Primary instrument"),
    genres: Optional[List[str]] = Query(None, description="Any of these genres"),
    skill_level: Optional[str] = Query(None, description="Beginner, Intermediate or Advanced"),
    radius: Optional[float] = Query(
        None, ge=0, description=f"Miles; {discovery_service.UNLIMITED_RADIUS_MILES} or more means unlimited"
    ),
    sort: SortMode = Query(SortMode.DISTANCE),
    q: Optional[str] = Query(None, max_length=100, description="Free-text search"),
    lat: Optional[float] = Query(None, ge=-90, le=90, description="Reference latitude"),
    lng: Optional[float] = Query(None, ge=-180, le=180, description="Reference longitude"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
) -> List[DiscoveryItem]:
    filters = DiscoveryFilters(instrument=instrument, genres=genres or [], skill_level=skill_level)
    try:
        return await discovery_service.discover(
            db,
            session.user_id,
            filters,
            radius=radius,
            sort=sort,
            search=q,
            center=_center(lat, lng),
        )
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)


@router.websocket("/ws")
async def discover_live(
    websocket: WebSocket,
    session: Optional[SessionContext] = Depends(get_websocket_session),
):
    """
    Live discovery. Every JSON message is a DiscoveryQuery and replaces the
    previous one; results are pushed again whenever a profile changes.
    Each push is {"type": "results", "items": [...]} or
    {"type": "error", "detail": ...}. A frame that is not a valid query, or a
    failed load, yields an error push and the socket stays open; a failed
    load is retried on the next profile change.
    """
    if session is None:
        await websocket.close(code=4401)
        return
    await websocket.accept()
    viewer_id = session.user_id
    unsubscribe = None

    async def send(payload: dict) -> None:
        await websocket.send_json(payload)

    async def report(exc: Exception) -> None:
        detail = exc.detail if isinstance(exc, JamspotError) else "Could not load musicians"
        await send({"type": "error", "detail": detail})

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                query = DiscoveryQuery.model_validate_json(raw)
            except PydanticValidationError as exc:
                await send({"type": "error", "detail": exc.errors(include_url=False, include_context=False)})
                continue

            if unsubscribe is not None:
                await unsubscribe()

            async def load(query: DiscoveryQuery = query) -> dict:
                async with AsyncSessionLocal() as db:
                    items = await discovery_service.discover(
                        db,
                        viewer_id,
                        DiscoveryFilters(
                            instrument=query.instrument,
                            genres=query.genres,
                            skill_level=query.skill_level,
                        ),
                        radius=query.radius,
                        sort=query.sort,
                        search=query.q,
                        center=_center(query.lat, query.lng),
                    )
                return {"type": "results", "items": [item.model_dump(mode="json") for item in items]}

            unsubscribe = subscribe_snapshots(PROFILES_TOPIC, load, send, on_error=report)
    except WebSocketDisconnect:
        logger.debug("Discovery socket closed for %s", viewer_id)
    finally:
        if unsubscribe is not None:
            await unsubscribe()
