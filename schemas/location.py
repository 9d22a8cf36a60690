from typing import Optional, Union

from pydantic import BaseModel, Field


class Coords(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class RawCoordinate(BaseModel):
    """Bare coordinate pair, the older stored location shape."""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ResolvedPlace(BaseModel):
    """Place picked from autocomplete: display name, coordinates and place id."""
    location: str = Field(..., max_length=255, description="Display name")
    coords: Coords
    place_id: str = Field("", max_length=255)


LocationInput = Union[ResolvedPlace, RawCoordinate]


class LocationSuggestion(BaseModel):
    display_name: str
    place_id: str
    coords: Optional[Coords] = None


class LocationData(ResolvedPlace):
    pass


class LocationInfo(BaseModel):
    coords: Coords
    place_name: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class ReverseGeocodeRead(BaseModel):
    place_name: str
