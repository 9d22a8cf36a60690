"""
The two stored location encodings and the single place they are normalized.

A profile location is either a bare coordinate pair
``{"latitude": .., "longitude": ..}`` or a resolved place
``{"location": "Brooklyn, NY, USA", "coords": {"lat": .., "lng": ..}, "place_id": ".."}``.
Consumers go through ``parse_location`` / ``normalize`` instead of
inspecting the shape themselves.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from utils.geo import Coordinate

logger = logging.getLogger(__name__)

# New York City; used when a viewer has no location or a stored one is unreadable
DEFAULT_CENTER = Coordinate(40.7128, -74.0060)


@dataclass(frozen=True)
class RawCoordinate:
    coordinate: Coordinate


@dataclass(frozen=True)
class ResolvedPlace:
    display_name: str
    coordinate: Coordinate
    place_id: str = ""


ProfileLocation = Union[RawCoordinate, ResolvedPlace]


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_location(raw: Any) -> Optional[ProfileLocation]:
    """Tag a stored location. Returns None for shapes it does not know."""
    if not isinstance(raw, dict):
        return None

    coords = raw.get("coords")
    if isinstance(coords, dict):
        lat, lng = _as_float(coords.get("lat")), _as_float(coords.get("lng"))
        if lat is not None and lng is not None:
            return ResolvedPlace(
                display_name=str(raw.get("location") or ""),
                coordinate=Coordinate(lat, lng),
                place_id=str(raw.get("place_id") or ""),
            )

    lat, lng = _as_float(raw.get("latitude")), _as_float(raw.get("longitude"))
    if lat is not None and lng is not None:
        return RawCoordinate(Coordinate(lat, lng))
    return None


def normalize(raw: Any, default: Coordinate = DEFAULT_CENTER) -> Coordinate:
    """Coordinate for distance calculation; unknown shapes fall back to ``default``."""
    parsed = parse_location(raw)
    if parsed is None:
        if raw is not None:
            logger.warning("Unrecognized location shape %r, using default center", raw)
        return default
    return parsed.coordinate


def format_coordinate(coordinate: Coordinate) -> str:
    return f"{coordinate.lat:.2f}, {coordinate.lng:.2f}"


def display_name(raw: Any) -> Optional[str]:
    """Human-readable location without a network call."""
    parsed = parse_location(raw)
    if parsed is None:
        return None
    if isinstance(parsed, ResolvedPlace) and parsed.display_name:
        return parsed.display_name
    return format_coordinate(parsed.coordinate)


def to_document(location) -> dict:
    """Serialize a validated location schema into the stored JSON shape."""
    data = location.model_dump()
    if "coords" in data:
        return {
            "location": data["location"],
            "coords": {"lat": data["coords"]["lat"], "lng": data["coords"]["lng"]},
            "place_id": data.get("place_id") or "",
        }
    return {"latitude": data["latitude"], "longitude": data["longitude"]}
