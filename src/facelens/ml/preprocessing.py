"""Image decoding and detector input preparation."""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, UnidentifiedImageError

from facelens.errors import ImageDecodeError, ImageTooLargeError
from facelens.models import ImageHandle

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

# ITU-R 601-2 luma weights, applied to RGB channels.
_LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)

# Pillow decoders matching the accepted image/* content types.
DECODER_FORMATS = ("JPEG", "PNG", "GIF", "WEBP")


def decode_image(image_bytes: bytes, max_width: int, max_height: int) -> tuple[ImageHandle, str]:
    """Decode raw image bytes into an immutable RGB handle.

    Only JPEG, PNG, GIF and WebP data is decoded, whatever the declared
    content type. Animated formats contribute their first frame only.

    Args:
        image_bytes: Raw response body.
        max_width: Largest accepted width in pixels.
        max_height: Largest accepted height in pixels.

    Returns:
        The image handle and the upper-case decoder format name (e.g. ``JPEG``).

    Raises:
        ImageDecodeError: If the bytes are not a decodable image.
        ImageTooLargeError: If the image exceeds the dimension limits.
    """
    try:
        image = Image.open(io.BytesIO(image_bytes), formats=DECODER_FORMATS)
    except Image.DecompressionBombError as exc:
        raise ImageTooLargeError(str(exc)) from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(f"unrecognised image data: {exc}") from exc

    with image:
        width, height = image.size
        if width > max_width or height > max_height:
            raise ImageTooLargeError(
                f"image dimensions too large: {width}x{height} (max: {max_width}x{max_height})"
            )

        image_format = (image.format or "unknown").upper()
        try:
            rgb = image.convert("RGB")
        except (OSError, ValueError, SyntaxError) as exc:
            raise ImageDecodeError(f"failed to decode {image_format} data: {exc}") from exc

    pixels = np.array(rgb, dtype=np.uint8)
    return ImageHandle(pixels=pixels), image_format


def to_grayscale(image: ImageHandle) -> NDArray[np.uint8]:
    """Convert an RGB handle into a row-major, single-channel sample buffer."""
    luma = image.pixels.astype(np.float32) @ _LUMA_WEIGHTS
    return np.ascontiguousarray(np.clip(np.rint(luma), 0, 255).astype(np.uint8))
