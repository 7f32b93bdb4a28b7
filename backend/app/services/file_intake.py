"""
File intake — validates an uploaded drawing image and produces the base64
payload consumed by the analysis provider.

Rejections raise UploadValidationError subclasses; the upload route turns them
into an inline message and nothing reaches the pipeline.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

from app.config import ACCEPTED_MEDIA_TYPES, MAX_UPLOAD_BYTES
from app.services.errors import (
    EmptyUploadError,
    UnsupportedMediaTypeError,
    UploadTooLargeError,
    UploadValidationError,
)

logger = logging.getLogger("sbc-intake")


@dataclass(frozen=True)
class DrawingUpload:
    file_name: str
    mime_type: str
    image_base64: str
    image_size: Optional[tuple[int, int]] = None    # (width, height) in px


def _normalize_media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def _image_size(data: bytes) -> Optional[tuple[int, int]]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Could not read image dimensions: {e}")
        return None


def intake_upload(
    file_name: str,
    content_type: Optional[str],
    data: bytes,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> DrawingUpload:
    """Validate media type and size, then base64-encode the raw bytes."""
    media_type = _normalize_media_type(content_type)
    if media_type not in ACCEPTED_MEDIA_TYPES:
        raise UnsupportedMediaTypeError(media_type, ACCEPTED_MEDIA_TYPES)
    if not data:
        raise EmptyUploadError(file_name)
    if len(data) > max_bytes:
        raise UploadTooLargeError(len(data), max_bytes)

    logger.info(f"Accepted drawing '{file_name}' ({media_type}, {len(data)} bytes)")
    return DrawingUpload(
        file_name=file_name,
        mime_type=media_type,
        image_base64=base64.b64encode(data).decode("ascii"),
        image_size=_image_size(data),
    )


def intake_data_url(file_name: str, data_url: str) -> DrawingUpload:
    """
    Accept a browser FileReader result ("data:image/png;base64,....").
    The media type is taken from the URL prefix.
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:"):
        raise UnsupportedMediaTypeError("", ACCEPTED_MEDIA_TYPES)
    media_type = header[len("data:"):].split(";")[0]
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise UploadValidationError(f"File '{file_name}' is not valid base64 data.")
    return intake_upload(file_name, media_type, raw)
