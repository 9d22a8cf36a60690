from typing import Optional, List, Literal
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from schemas.location import LocationInput

INSTRUMENTS = ("Guitar", "Bass", "Drums", "Piano", "Vocals", "Saxophone", "Violin", "Other")
GENRES = ("Rock", "Jazz", "Blues", "Pop", "Metal", "Classical", "Electronic", "Hip Hop")
SKILL_LEVELS = ("Beginner", "Intermediate", "Advanced")

Instrument = Literal["Guitar", "Bass", "Drums", "Piano", "Vocals", "Saxophone", "Violin", "Other"]
Genre = Literal["Rock", "Jazz", "Blues", "Pop", "Metal", "Classical", "Electronic", "Hip Hop"]
SkillLevel = Literal["Beginner", "Intermediate", "Advanced"]
MediaKind = Literal["image_gallery", "video_clips", "audio_clips"]


class UserCard(BaseModel):
    """Short profile used in lists: discovery, inbox, chats."""
    user_id: str = Field(..., description="User id")
    name: Optional[str] = Field(None, description="Display name")
    instrument: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    skill_level: Optional[str] = None
    bio: Optional[str] = None
    image_url: Optional[str] = None
    location_name: Optional[str] = Field(None, description="Human-readable location")

    class Config:
        from_attributes = True


class UserRead(UserCard):
    location: Optional[dict] = Field(None, description="Stored location, raw or resolved")
    visibility: bool = True
    image_gallery: List[str] = Field(default_factory=list)
    video_clips: List[str] = Field(default_factory=list)
    audio_clips: List[str] = Field(default_factory=list)
    created_at: datetime = Field(..., description="Profile creation time")


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100, description="Display name")
    instrument: Optional[Instrument] = Field(None, description="Primary instrument")
    genres: Optional[List[Genre]] = Field(None, description="Genres")
    skill_level: Optional[SkillLevel] = None
    bio: Optional[str] = Field(None, max_length=2000)
    location: Optional[LocationInput] = None
    visibility: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=1024)

    @field_validator("genres")
    @classmethod
    def dedupe_genres(cls, value):
        if value is None:
            return value
        return list(dict.fromkeys(value))


class MediaRemove(BaseModel):
    url: str = Field(..., description="Public URL of the file to remove")


class MediaRead(BaseModel):
    url: str
    urls: List[str] = Field(default_factory=list, description="List after the change")
