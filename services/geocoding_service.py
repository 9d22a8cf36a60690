"""
Places autocomplete, place details and (reverse) geocoding.

Every call here degrades instead of raising: a failed lookup yields an empty
suggestion list, ``None`` or a coordinate string, so a flaky third-party API
can never break profile editing or discovery.
"""
import asyncio
import logging
from typing import Iterable, List, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from core.config import settings
from schemas.location import Coords, LocationData, LocationInfo, LocationSuggestion
from utils.geo import Coordinate
from utils.location import DEFAULT_CENTER, format_coordinate

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_SUGGESTIONS = 5
DEBOUNCE_SECONDS = 0.3


def _get_json(url: str, params: dict) -> dict:
    resp = requests.get(
        url,
        params=params,
        proxies=settings.proxies,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


# ---- blocking calls, run in the threadpool ----

def get_location_suggestions(query: str) -> List[LocationSuggestion]:
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []
    try:
        data = _get_json(
            f"{settings.PLACES_API_URL}/autocomplete/json",
            {"input": query, "types": "(regions)", "key": settings.PLACES_API_KEY},
        )
        predictions = data.get("predictions") or []
        return [
            LocationSuggestion(display_name=p["description"], place_id=p["place_id"])
            for p in predictions[:MAX_SUGGESTIONS]
            if isinstance(p, dict) and p.get("description") and p.get("place_id")
        ]
    except (requests.RequestException, ValueError, KeyError, TypeError) as e:
        logger.warning("Location suggestions for %r failed: %s", query, e)
        return []


def get_place_details(place_id: str) -> Optional[LocationData]:
    try:
        data = _get_json(
            f"{settings.PLACES_API_URL}/details/json",
            {
                "place_id": place_id,
                "fields": "formatted_address,geometry",
                "key": settings.PLACES_API_KEY,
            },
        )
        result = data.get("result")
        if not isinstance(result, dict):
            return None
        point = result["geometry"]["location"]
        return LocationData(
            location=result.get("formatted_address") or "",
            coords=Coords(lat=point["lat"], lng=point["lng"]),
            place_id=place_id,
        )
    except (requests.RequestException, ValueError, KeyError, TypeError) as e:
        logger.warning("Place details for %s failed: %s", place_id, e)
        return None


def _reverse_lookup(latitude: float, longitude: float) -> dict:
    return _get_json(
        settings.REVERSE_GEOCODE_URL,
        {"latitude": latitude, "longitude": longitude, "localityLanguage": "en"},
    )


def _place_name(data: dict) -> str:
    parts = [data.get("city"), data.get("principalSubdivision"), data.get("countryName")]
    return ", ".join(part for part in parts if part)


def get_place_name_from_coordinates(latitude: float, longitude: float) -> str:
    fallback = format_coordinate(Coordinate(latitude, longitude))
    try:
        return _place_name(_reverse_lookup(latitude, longitude)) or fallback
    except (requests.RequestException, ValueError, TypeError) as e:
        logger.warning("Reverse geocoding (%s, %s) failed: %s", latitude, longitude, e)
        return fallback


def get_location_info(latitude: float, longitude: float) -> LocationInfo:
    coords = Coords(lat=latitude, lng=longitude)
    fallback = format_coordinate(Coordinate(latitude, longitude))
    try:
        data = _reverse_lookup(latitude, longitude)
        return LocationInfo(
            coords=coords,
            place_name=_place_name(data) or fallback,
            city=data.get("city") or None,
            state=data.get("principalSubdivision") or None,
            country=data.get("countryName") or None,
        )
    except (requests.RequestException, ValueError, TypeError) as e:
        logger.warning("Location info (%s, %s) failed: %s", latitude, longitude, e)
        return LocationInfo(coords=coords, place_name=fallback)


def get_coordinates_from_place_name(place_name: str) -> Coordinate:
    try:
        data = _get_json(
            settings.FORWARD_GEOCODE_URL,
            {"query": place_name, "localityLanguage": "en"},
        )
        results = data.get("results") or []
        if isinstance(results, list) and results and isinstance(results[0], dict):
            return Coordinate(float(results[0]["latitude"]), float(results[0]["longitude"]))
        logger.info("No coordinates found for %r", place_name)
    except (requests.RequestException, ValueError, KeyError, TypeError) as e:
        logger.warning("Forward geocoding %r failed: %s", place_name, e)
    return DEFAULT_CENTER


# ---- async API ----

async def suggest(query: str) -> List[LocationSuggestion]:
    if len(query.strip()) < MIN_QUERY_LENGTH:
        return []
    return await run_in_threadpool(get_location_suggestions, query)


async def resolve(place_id: str) -> Optional[LocationData]:
    return await run_in_threadpool(get_place_details, place_id)


async def reverse_geocode(latitude: float, longitude: float) -> str:
    return await run_in_threadpool(get_place_name_from_coordinates, latitude, longitude)


async def reverse_geocode_many(points: Iterable[Coordinate]) -> List[str]:
    """Independent lookups, issued together."""
    return list(await asyncio.gather(*(reverse_geocode(p.lat, p.lng) for p in points)))


async def location_info(latitude: float, longitude: float) -> LocationInfo:
    return await run_in_threadpool(get_location_info, latitude, longitude)


async def forward_geocode(place_name: str) -> Coordinate:
    return await run_in_threadpool(get_coordinates_from_place_name, place_name)


class SuggestionDebouncer:
    """
    Debounces keystroke-driven suggestion queries for one input field.

    ``submit`` waits out the debounce window; if a newer query arrived in the
    meantime, or arrives while the lookup is in flight, the older call
    returns None and its result is dropped.
    """

    def __init__(self, fetch=suggest, delay: float = DEBOUNCE_SECONDS) -> None:
        self.fetch = fetch
        self.delay = delay
        self._generation = 0

    async def submit(self, query: str) -> Optional[List[LocationSuggestion]]:
        self._generation += 1
        generation = self._generation

        await asyncio.sleep(self.delay)
        if generation != self._generation:
            return None
        if len(query.strip()) < MIN_QUERY_LENGTH:
            return []

        results = await self.fetch(query)
        if generation != self._generation:
            return None
        return results
