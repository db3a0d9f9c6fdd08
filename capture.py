"""
Media capture adapter: turns a file-picker selection or a camera snapshot into
an EncodedImage.

Both inputs come from Streamlit widgets (st.file_uploader / st.camera_input),
which hand back UploadedFile objects. The camera stream itself lives in the
browser and is released when the camera widget leaves the page.
"""

from __future__ import annotations

import io
import logging
import mimetypes
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from errors import CaptureError
from models import EncodedImage

logger = logging.getLogger(__name__)

ACCEPTED_TYPES = ["png", "jpg", "jpeg", "webp", "heic", "heif"]
CAMERA_MAX_SIZE: Tuple[int, int] = (1280, 720)
CAMERA_MEDIA_TYPE = "image/jpeg"
JPEG_QUALITY = 92


def guess_media_type(name: Optional[str]) -> str:
    if name:
        guessed, _ = mimetypes.guess_type(name)
        if guessed:
            return guessed
    return "application/octet-stream"


def bytes_to_image_safe(data: bytes) -> Image.Image:
    """Decode bytes into a PIL Image, forcing the pixel data to load."""
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def fit_within(img: Image.Image, max_size: Tuple[int, int] = CAMERA_MAX_SIZE) -> Image.Image:
    """Downscale so the image fits inside max_size, preserving aspect ratio."""
    w, h = img.size
    max_w, max_h = max_size
    if w <= max_w and h <= max_h:
        return img
    scale = min(max_w / float(w), max_h / float(h))
    new_size = (max(1, int(w * scale)), max(1, int(h * scale)))
    return img.resize(new_size, resample=Image.LANCZOS)


def image_to_bytes_jpeg(img: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def from_uploaded_file(uploaded) -> Optional[EncodedImage]:
    """Encode a file-picker selection.

    Returns None when nothing is selected, so the caller emits no event.
    """
    if uploaded is None:
        return None
    data = uploaded.getvalue()
    media_type = getattr(uploaded, "type", None) or guess_media_type(getattr(uploaded, "name", None))
    logger.info("Captured file %s (%s, %d bytes)", getattr(uploaded, "name", "?"), media_type, len(data))
    return EncodedImage.from_bytes(data, media_type)


def from_camera_frame(frame) -> Optional[EncodedImage]:
    """Encode a camera snapshot as a JPEG no larger than 1280x720.

    Raises:
        CaptureError: the frame is empty or cannot be decoded.
    """
    if frame is None:
        return None
    data = frame.getvalue()
    if not data:
        raise CaptureError("Could not access camera. Please check permissions.")
    try:
        img = bytes_to_image_safe(data)
    except (UnidentifiedImageError, OSError) as ex:
        logger.error("Unreadable camera frame: %s", ex)
        raise CaptureError("Could not read the camera frame. Please try again or upload a file.") from ex
    img = fit_within(img, CAMERA_MAX_SIZE)
    logger.info("Captured camera frame %dx%d", img.width, img.height)
    return EncodedImage.from_bytes(image_to_bytes_jpeg(img), CAMERA_MEDIA_TYPE)
