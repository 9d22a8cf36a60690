import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from core.auth import get_session, get_websocket_session
from core.session import SessionContext
from schemas.location import LocationData, LocationInfo, LocationSuggestion, ReverseGeocodeRead
from services import geocoding_service
from services.geocoding_service import SuggestionDebouncer

router = APIRouter(prefix="/locations", tags=["locations"])
logger = logging.getLogger(__name__)


@router.get("/suggest", response_model=List[LocationSuggestion], summary="Place suggestions for free text")
async def suggest(
    q: str = Query(..., max_length=200, description="What the user typed"),
    session: SessionContext = Depends(get_session),
) -> List[LocationSuggestion]:
    return await geocoding_service.suggest(q)


@router.get("/resolve/{place_id}", response_model=LocationData, summary="Coordinates for a suggested place")
async def resolve(
    place_id: str,
    session: SessionContext = Depends(get_session),
) -> LocationData:
    data = await geocoding_service.resolve(place_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Place not found")
    return data


@router.get("/reverse", response_model=ReverseGeocodeRead, summary="Place name for coordinates")
async def reverse(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    session: SessionContext = Depends(get_session),
) -> ReverseGeocodeRead:
    return ReverseGeocodeRead(place_name=await geocoding_service.reverse_geocode(lat, lng))


@router.get("/info", response_model=LocationInfo, summary="City, state and country for coordinates")
async def info(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    session: SessionContext = Depends(get_session),
) -> LocationInfo:
    return await geocoding_service.location_info(lat, lng)


@router.websocket("/ws/suggest")
async def suggest_live(
    websocket: WebSocket,
    session: Optional[SessionContext] = Depends(get_websocket_session),
):
    """
    Autocomplete as you type: each text frame is the current input value.
    Replies {"query": ..., "suggestions": [...]} only for queries that were
    not superseded within the debounce window or while in flight.
    """
    if session is None:
        await websocket.close(code=4401)
        return
    await websocket.accept()
    debouncer = SuggestionDebouncer()
    tasks: set[asyncio.Task] = set()

    async def handle(query: str) -> None:
        suggestions = await debouncer.submit(query)
        if suggestions is None:
            return
        await websocket.send_json({
            "query": query,
            "suggestions": [s.model_dump() for s in suggestions],
        })

    try:
        while True:
            query = await websocket.receive_text()
            task = asyncio.create_task(handle(query))
            tasks.add(task)
            task.add_done_callback(tasks.discard)
    except WebSocketDisconnect:
        logger.debug("Suggestion socket closed")
    finally:
        for task in tasks:
            task.cancel()
