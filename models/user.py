# models/user.py
from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON

from .base import Base


class User(Base):
    """Musician profile. The id is the account id issued at sign-up."""

    __tablename__ = "users"

    id = Column(String(32), primary_key=True, index=True)
    name = Column(String(100), nullable=True)
    instrument = Column(String(32), nullable=True)
    genres = Column(JSON, nullable=False, default=list)
    skill_level = Column(String(16), nullable=True)
    bio = Column(Text, nullable=True)
    # Either {"latitude", "longitude"} or {"location", "coords": {"lat", "lng"}, "place_id"}
    location = Column(JSON, nullable=True)
    visibility = Column(Boolean, nullable=False, default=True, index=True)

    image_url = Column(String(1024), nullable=True)
    image_gallery = Column(JSON, nullable=False, default=list)
    video_clips = Column(JSON, nullable=False, default=list)
    audio_clips = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False)

    @property
    def user_id(self) -> str:
        return self.id

    def __repr__(self):
        return f"<User id={self.id} instrument={self.instrument}>"
