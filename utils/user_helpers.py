"""Converters from profile models to the Pydantic response schemas."""
from models.user import User
from schemas.user import UserCard, UserRead
from utils.location import display_name


def to_user_card(user: User) -> UserCard:
    """Convert a profile into the short card used in lists."""
    return UserCard(
        user_id=user.id,
        name=user.name,
        instrument=user.instrument,
        genres=list(user.genres or []),
        skill_level=user.skill_level,
        bio=user.bio,
        image_url=user.image_url,
        location_name=display_name(user.location),
    )


def to_user_read(user: User) -> UserRead:
    """Convert a profile into the full UserRead."""
    return UserRead(
        **to_user_card(user).model_dump(),
        location=user.location,
        visibility=user.visibility,
        image_gallery=list(user.image_gallery or []),
        video_clips=list(user.video_clips or []),
        audio_clips=list(user.audio_clips or []),
        created_at=user.created_at,
    )
