# utils/image_tools.py
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError


def normalize_image_bytes(
    data: bytes,
    quality: int = 85
) -> tuple[bytes, str]:
    """
    Prepares an uploaded photo for the profile gallery:
    - applies EXIF orientation and drops the EXIF block (no GPS leaks);
    - converts to RGB;
    - keeps WebP as WebP, everything else becomes a progressive JPEG.

    Returns (bytes, ext), ext is "webp" or "jpg".
    Raises ValueError if the data is not an image.
    """
    try:
        img = Image.open(BytesIO(data))
    except UnidentifiedImageError:
        raise ValueError("Unsupported file: not an image")

    orig_fmt = (img.format or "JPEG").upper()
    img = ImageOps.exif_transpose(img)

    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buf = BytesIO()
    if orig_fmt == "WEBP":
        img.save(buf, "WEBP", quality=quality)
        ext = "webp"
    else:
        img.save(buf, "JPEG", quality=quality, optimize=True, progressive=True)
        ext = "jpg"

    return buf.getvalue(), ext
