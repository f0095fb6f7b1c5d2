"""Annotation rendering: circles around detected faces, JPEG data-URL output."""

from __future__ import annotations

import base64
import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from facelens.errors import RenderFailedError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from facelens.models import Face, ImageHandle, RenderOptions

logger = logging.getLogger(__name__)

JPEG_QUALITY = 90
DATA_URL_PREFIX = "data:image/jpeg;base64,"

RGBA = tuple[int, int, int, int]

COLORS: dict[str, RGBA] = {
    "red": (255, 0, 0, 255),
    "green": (0, 255, 0, 255),
    "blue": (0, 0, 255, 255),
    "yellow": (255, 255, 0, 255),
    "white": (255, 255, 255, 255),
    "black": (0, 0, 0, 255),
    "orange": (255, 165, 0, 255),
    "purple": (128, 0, 128, 255),
    "pink": (255, 192, 203, 255),
    "cyan": (0, 255, 255, 255),
}
DEFAULT_COLOR = "red"


def parse_color(name: str) -> RGBA:
    """Map a colour name to RGBA. Names are case-sensitive; unknown names give red."""
    return COLORS.get(name, COLORS[DEFAULT_COLOR])


def circle_offsets(radius: int) -> tuple[NDArray[np.int64], NDArray[np.int64]]:
    """Outline offsets of a circle from the integer midpoint algorithm.

    Computes one octant and reflects it into all eight. Returns empty arrays
    for ``radius <= 0``.
    """
    if radius <= 0:
        empty = np.empty(0, dtype=np.int64)
        return empty, empty

    xs: list[int] = []
    ys: list[int] = []
    x, y = 0, radius
    d = 3 - 2 * radius
    while x <= y:
        xs.append(x)
        ys.append(y)
        if d < 0:
            d += 4 * x + 6
        else:
            d += 4 * (x - y) + 10
            y -= 1
        x += 1

    ox = np.array(xs, dtype=np.int64)
    oy = np.array(ys, dtype=np.int64)
    dx = np.concatenate([ox, -ox, ox, -ox, oy, -oy, oy, -oy])
    dy = np.concatenate([oy, oy, -oy, -oy, ox, ox, -ox, -ox])
    return dx, dy


def set_pixels(canvas: NDArray[np.uint8], xs: NDArray[np.int64], ys: NDArray[np.int64], color: RGBA) -> None:
    """Paint the given points, silently skipping any outside the canvas."""
    height, width = canvas.shape[:2]
    inside = (xs >= 0) & (xs < width) & (ys >= 0) & (ys < height)
    canvas[ys[inside], xs[inside]] = color[:3]


def draw_circle(
    canvas: NDArray[np.uint8],
    center_x: int,
    center_y: int,
    radius: int,
    color: RGBA,
    stroke_width: int,
) -> None:
    """Draw a circle outline of the given stroke width onto ``canvas`` in place.

    The stroke is built from concentric one-pixel outlines at
    ``radius + i - stroke_width // 2`` for ``i`` in ``range(stroke_width)``;
    non-positive radii are skipped.
    """
    for i in range(stroke_width):
        r = radius + i - stroke_width // 2
        if r <= 0:
            continue
        dx, dy = circle_offsets(r)
        set_pixels(canvas, center_x + dx, center_y + dy, color)


def encode_data_url(canvas: NDArray[np.uint8]) -> str:
    """Encode an RGB array as a base64 JPEG data URL.

    Raises:
        RenderFailedError: If JPEG encoding fails.
    """
    buffer = io.BytesIO()
    try:
        Image.fromarray(canvas).save(buffer, format="JPEG", quality=JPEG_QUALITY)
    except (OSError, ValueError, TypeError) as exc:
        raise RenderFailedError(f"JPEG encoding failed: {exc}") from exc
    return DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def render(image: ImageHandle, faces: Sequence[Face], options: RenderOptions) -> str:
    """Draw a circle around every face on a copy of ``image`` and return it as a data URL."""
    canvas = np.array(image.pixels, dtype=np.uint8, copy=True)

    for face in faces:
        center_x = face.x + face.width // 2
        center_y = face.y + face.height // 2
        radius = max(face.width, face.height) // 2
        draw_circle(canvas, center_x, center_y, radius, options.color, options.stroke_width)

    encoded = encode_data_url(canvas)
    logger.debug(
        "Circles drawn: faces=%d color=%s stroke_width=%d",
        len(faces),
        options.color,
        options.stroke_width,
    )
    return encoded
