import enum
from typing import Optional, List

from pydantic import BaseModel, Field

from schemas.user import UserCard


class SortMode(str, enum.Enum):
    DISTANCE = "distance"
    RECENT = "recent"
    BEST_MATCH = "best_match"


class DiscoveryFilters(BaseModel):
    instrument: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    skill_level: Optional[str] = None


class DiscoveryQuery(DiscoveryFilters):
    """Message accepted by the live discovery socket."""
    radius: Optional[float] = Field(None, ge=0)
    sort: SortMode = SortMode.DISTANCE
    q: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)


class DiscoveryItem(UserCard):
    distance: float = Field(..., description="Distance from the reference point, miles")
    requested: bool = Field(False, description="Viewer already sent a connection request")
