from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File
from fastapi.params import Path
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi.concurrency import run_in_threadpool

from core.auth import get_session
from core.database import get_db
from core.errors import JamspotError, http_status_for
from core.session import SessionContext
from schemas.user import MediaRead, MediaRemove, UserRead, UserUpdate
from services import profile_service
from utils.s3 import StorageError, upload_media
from utils.user_helpers import to_user_read

router = APIRouter(prefix="/users", tags=["users"])

# media list field -> object key prefix
MEDIA_FOLDERS = {
    "image_gallery": "gallery-images",
    "video_clips": "video-clips",
    "audio_clips": "audio-clips",
}


async def _upload(upload: UploadFile, folder: str, user_id: str) -> str:
    try:
        return await run_in_threadpool(
            upload_media,
            upload.file,
            upload.filename or "upload",
            folder,
            user_id,
            upload.content_type,
        )
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


async def _append(db: AsyncSession, user_id: str, kind: str, upload: UploadFile) -> MediaRead:
    url = await _upload(upload, MEDIA_FOLDERS[kind], user_id)
    try:
        urls = await profile_service.append_media(db, user_id, kind, url)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return MediaRead(url=url, urls=urls)


async def _remove(db: AsyncSession, user_id: str, kind: str, url: str) -> MediaRead:
    try:
        urls = await profile_service.remove_media(db, user_id, kind, url)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return MediaRead(url=url, urls=urls)


@router.get("/me", response_model=UserRead, summary="Get my profile")
async def read_my_profile(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    user = await profile_service.get_profile(db, session.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Profile not created yet")
    return to_user_read(user)


@router.put("/me", response_model=UserRead, summary="Create or update my profile")
async def update_my_profile(
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    try:
        user = await profile_service.save_profile(db, session.user_id, payload)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return to_user_read(user)


@router.post("/me/image", response_model=UserRead, summary="Upload profile image")
async def upload_profile_image(
    file: UploadFile = File(..., description="Profile image"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    if await profile_service.get_profile(db, session.user_id) is None:
        raise HTTPException(status_code=404, detail="Profile not created yet")
    url = await _upload(file, "profile-images", session.user_id)
    try:
        user = await profile_service.set_profile_image(db, session.user_id, url)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return to_user_read(user)


@router.post("/me/gallery", response_model=MediaRead, status_code=status.HTTP_201_CREATED,
             summary="Add a gallery image")
async def add_gallery_image(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await _append(db, session.user_id, "image_gallery", file)


@router.delete("/me/gallery", response_model=MediaRead, summary="Remove a gallery image")
async def remove_gallery_image(
    payload: MediaRemove,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await _remove(db, session.user_id, "image_gallery", payload.url)


@router.post("/me/videos", response_model=MediaRead, status_code=status.HTTP_201_CREATED,
             summary="Add a video clip")
async def add_video_clip(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await _append(db, session.user_id, "video_clips", file)


@router.delete("/me/videos", response_model=MediaRead, summary="Remove a video clip")
async def remove_video_clip(
    payload: MediaRemove,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await _remove(db, session.user_id, "video_clips", payload.url)


@router.post("/me/audio", response_model=MediaRead, status_code=status.HTTP_201_CREATED,
             summary="Add an audio clip")
async def add_audio_clip(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await _append(db, session.user_id, "audio_clips", file)


@router.delete("/me/audio", response_model=MediaRead, summary="Remove an audio clip")
async def remove_audio_clip(
    payload: MediaRemove,
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    return await _remove(db, session.user_id, "audio_clips", payload.url)


@router.get("/{user_id}", response_model=UserRead, summary="Public profile of another musician")
async def read_user_profile(
    user_id: str = Path(..., description="User id"),
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    user = await profile_service.get_profile(db, user_id)
    if not user or (not user.visibility and user.id != session.user_id):
        raise HTTPException(404, "Profile not found")
    return to_user_read(user)
