"""Shared fixtures: synthetic images, a scripted classifier and a fake image host."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import httpx
import numpy as np
from PIL import Image

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from numpy.typing import NDArray

    from facelens.ml.classifier import CascadeParams, RawDetection


def make_image_bytes(
    width: int = 640,
    height: int = 480,
    fmt: str = "JPEG",
    color: tuple[int, int, int] = (120, 130, 140),
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeCascade:
    """Classifier stand-in returning scripted detections and recording its calls."""

    model_name = "fake_cascade"

    def __init__(self, detections: Sequence[RawDetection] = (), error: Exception | None = None) -> None:
        self._detections = list(detections)
        self._error = error
        self.calls: list[tuple[int, int, int, CascadeParams, float]] = []

    def run(
        self,
        samples: NDArray[np.uint8],
        rows: int,
        cols: int,
        params: CascadeParams,
        angle: float = 0.0,
    ) -> list[RawDetection]:
        self.calls.append((int(np.asarray(samples).size), rows, cols, params, angle))
        if self._error is not None:
            raise self._error
        return list(self._detections)


def image_host(routes: Mapping[str, Callable[[], httpx.Response]]) -> httpx.MockTransport:
    """Serve a freshly built response per request, keyed by URL path; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        build = routes.get(request.url.path)
        if build is None:
            return httpx.Response(404, text="not found")
        return build()

    return httpx.MockTransport(handler)


def image_response(body: bytes, content_type: str = "image/jpeg", status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=body, headers={"Content-Type": content_type})
