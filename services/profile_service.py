import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import LocationRequiredError, ProfileNotFoundError
from models.user import User
from schemas.user import UserUpdate
from services.live import broker
from utils.location import to_document
from utils.s3 import delete_media_by_url

logger = logging.getLogger(__name__)

PROFILES_TOPIC = "profiles"
MEDIA_KINDS = ("image_gallery", "video_clips", "audio_clips")


async def get_profile(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def get_profiles(db: AsyncSession, user_ids: Iterable[str]) -> dict[str, User]:
    """Profiles by id in one query; missing ids are simply absent."""
    ids = list(set(user_ids))
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}


async def save_profile(db: AsyncSession, user_id: str, data: UserUpdate) -> User:
    """
    Merge-upsert of the caller's own profile.

    Only fields present in ``data`` are written. ``created_at`` is set on the
    first save and never touched again. A first save must carry a location.
    """
    user = await db.get(User, user_id)
    changes = data.model_dump(exclude_unset=True, exclude={"location"})
    location = data.location

    if user is None:
        if location is None:
            raise LocationRequiredError()
        user = User(
            id=user_id,
            genres=[],
            image_gallery=[],
            video_clips=[],
            audio_clips=[],
            visibility=True,
            created_at=datetime.now(timezone.utc),
        )
        db.add(user)
    elif "location" in data.model_fields_set and location is None:
        raise LocationRequiredError()

    for field, value in changes.items():
        if value is None and field in ("genres", "visibility"):
            continue
        setattr(user, field, value)
    if location is not None:
        user.location = to_document(location)

    await db.commit()
    await db.refresh(user)
    broker.publish(PROFILES_TOPIC)
    return user


async def _require_profile(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise ProfileNotFoundError()
    return user


async def set_profile_image(db: AsyncSession, user_id: str, url: str) -> User:
    user = await _require_profile(db, user_id)
    previous = user.image_url
    user.image_url = url
    await db.commit()
    await db.refresh(user)
    broker.publish(PROFILES_TOPIC)
    if previous and previous != url:
        try:
            await run_in_threadpool(delete_media_by_url, previous)
        except Exception as e:  # noqa: BLE001
            logger.warning("Old profile image %s was not deleted: %s", previous, e)
    return user


async def append_media(db: AsyncSession, user_id: str, kind: str, url: str) -> List[str]:
    if kind not in MEDIA_KINDS:
        raise ValueError(f"Unknown media kind: {kind}")
    user = await _require_profile(db, user_id)
    # Reassign instead of mutating so the JSON column is flagged dirty
    setattr(user, kind, [*(getattr(user, kind) or []), url])
    await db.commit()
    await db.refresh(user)
    broker.publish(PROFILES_TOPIC)
    return list(getattr(user, kind))


async def remove_media(db: AsyncSession, user_id: str, kind: str, url: str) -> List[str]:
    """
    Deletes the stored file and drops ``url`` from the list. The list is
    rewritten even when the file delete fails; that failure is then re-raised.
    """
    if kind not in MEDIA_KINDS:
        raise ValueError(f"Unknown media kind: {kind}")
    user = await _require_profile(db, user_id)
    try:
        await run_in_threadpool(delete_media_by_url, url)
    finally:
        setattr(user, kind, [u for u in (getattr(user, kind) or []) if u != url])
        await db.commit()
        await db.refresh(user)
        broker.publish(PROFILES_TOPIC)
    return list(getattr(user, kind))
