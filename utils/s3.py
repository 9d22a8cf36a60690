import time
from io import BytesIO
from typing import BinaryIO, Literal

from minio import Minio
from minio.error import S3Error

from core.config import settings
from utils.image_tools import normalize_image_bytes

# Object key prefixes per media kind
MediaFolder = Literal["profile-images", "gallery-images", "video-clips", "audio-clips"]

# ==== MinIO client ====
_endpoint = settings.AWS_S3_ENDPOINT_URL.replace("https://", "").replace("http://", "").rstrip("/")
_s3 = Minio(
    _endpoint,
    access_key=settings.AWS_ACCESS_KEY_ID,
    secret_key=settings.AWS_SECRET_ACCESS_KEY,
    region=settings.AWS_S3_REGION,
    secure=settings.AWS_S3_SECURE,
)


class StorageError(Exception):
    pass


def build_object_key(folder: str, user_id: str, file_name: str, now_ms: int | None = None) -> str:
    """{folder}/{user_id}/{upload time in ms}-{original file name}"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = file_name.replace("/", "_").replace("\\", "_") or "upload"
    return f"{folder}/{user_id}/{now_ms}-{safe_name}"


def public_url(s3_key: str) -> str:
    return f"{settings.s3_base_url}/{s3_key}"


def key_from_url(url: str) -> str:
    """
    Reverse of public_url. Raises ValueError for URLs outside our bucket.
    """
    prefix = settings.s3_base_url + "/"
    if not url.startswith(prefix):
        raise ValueError("URL does not belong to the media bucket")
    return url[len(prefix):]


def upload_media(
    file_like: BinaryIO,
    file_name: str,
    folder: MediaFolder,
    user_id: str,
    content_type: str | None = None,
) -> str:
    """
    Uploads a media file and returns its public URL.
    Images are re-encoded through normalize_image_bytes first.
    Raises ValueError if an image upload is not an image, StorageError on S3 problems.
    """
    data = file_like.read()

    if folder in ("profile-images", "gallery-images"):
        data, ext = normalize_image_bytes(data)
        stem = file_name.rsplit(".", 1)[0] if "." in file_name else file_name
        file_name = f"{stem}.{ext}"
        content_type = f"image/{'jpeg' if ext == 'jpg' else ext}"

    s3_key = build_object_key(folder, user_id, file_name)
    try:
        _s3.put_object(
            settings.AWS_S3_BUCKET_NAME,
            s3_key,
            BytesIO(data),
            length=len(data),
            content_type=content_type or "application/octet-stream",
        )
    except S3Error as e:
        raise StorageError(f"Upload to S3 failed: {e}")

    return public_url(s3_key)


def delete_media_by_url(url: str) -> None:
    """
    Removes the object behind a public URL.
    """
    s3_key = key_from_url(url)
    try:
        _s3.remove_object(settings.AWS_S3_BUCKET_NAME, s3_key)
    except S3Error as e:
        raise StorageError(f"Delete from S3 failed: {e}")
