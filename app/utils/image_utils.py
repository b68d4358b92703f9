"""
Image decoding helpers for uploaded drawings.
"""

import base64
import binascii
import io
import logging
import re

from PIL import Image, UnidentifiedImageError

from techdraw_reconstruct import SurfaceUnavailableError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX_RE = re.compile(r"^data:image/[\w.+-]+;base64,")

# Register AVIF/HEIF support
try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
    logger.info("AVIF/HEIF support enabled")
except ImportError:
    logger.warning("pillow-heif not installed; AVIF/HEIF uploads are unavailable")


def open_rgb_image(image_bytes: bytes) -> Image.Image:
    """
    Decode an uploaded drawing into an RGB image.

    Transparent drawings (RGBA, LA, P) are composited onto white paper.

    Raises:
        SurfaceUnavailableError: the bytes are not a readable image.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise SurfaceUnavailableError(f"Cannot decode image: {e}") from e

    logger.info(f"Image format: {img.format}, size: {img.size}, mode: {img.mode}")

    if img.mode in ("RGBA", "LA", "P"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def decode_base64_image(image_base64: str) -> bytes:
    """Decode a base64 image, tolerating a data URL prefix."""
    data = DATA_URL_PREFIX_RE.sub("", image_base64.strip())
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SurfaceUnavailableError(f"Invalid base64 image: {e}") from e
